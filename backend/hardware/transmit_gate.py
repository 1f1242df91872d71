"""
Transmit gate.

Converts hardware input edges into start/stop on the audio stream.

Called from the GPIO library's listener thread, concurrently with the
event loop. Each call holds the session lock from the status check to the
end of the transition, so a disconnect processed on the loop can never
interleave with a start that already passed the check.
"""

from __future__ import annotations

from audio.stream_manager import AudioStreamManager
from hardware.indicators import IndicatorController
from observability.logger import log_event
from orchestrator.enums.indicator import Indicator
from session.device_session import DeviceSession


class TransmitGate:
    """
    Push-to-talk gate.

    start() and stop() are idempotent: the edge detector may report the
    same level twice.
    """

    def __init__(
        self,
        *,
        session: DeviceSession,
        streams: AudioStreamManager,
        indicators: IndicatorController,
    ) -> None:
        self._session = session
        self._streams = streams
        self._indicators = indicators

    def start(self) -> None:
        with self._session.lock:
            if not self._session.is_connected:
                return
            if self._session.is_transmitting:
                return

            self._session.set_transmitting(True)
            self._indicators.set_on(Indicator.TRANSMITTING)
            self._streams.start_source()

        log_event({"level": "DEBUG", "event_type": "TRANSMIT_START"})

    def stop(self) -> None:
        with self._session.lock:
            if not self._session.is_connected:
                return
            if not self._session.is_transmitting:
                return

            self._streams.stop_source()
            self._indicators.set_off(Indicator.TRANSMITTING)
            self._session.set_transmitting(False)

        log_event({"level": "DEBUG", "event_type": "TRANSMIT_STOP"})
