"""
PyAudio audio backend.

Implements AudioBackendProtocol for a Mumble session handle.

Role in the system:
- Capture: 48kHz mono PCM16 from the default input device, pushed into the
  session's sound output only while the source is started
- Playback: voice received from the server written to the default output
  device
- destroy(): close both device streams and unhook playback

Codec work (Opus) is done by pymumble. No resampling or mixing here.
"""

from __future__ import annotations

import threading
from typing import Any

import pyaudio
from pymumble_py3.constants import PYMUMBLE_CLBK_SOUNDRECEIVED

from adapters.transport.mumble import MumbleSession
from constants import AUDIO_CHANNELS, AUDIO_SAMPLE_RATE_HZ, AUDIO_SAMPLES_PER_FRAME
from observability.logger import log_event


class PyAudioStream:
    """One capture + one playback stream bound to a MumbleSession."""

    def __init__(self, *, pa: pyaudio.PyAudio, session: MumbleSession) -> None:
        self._session = session
        self._sourcing = threading.Event()

        self._output = pa.open(
            format=pyaudio.paInt16,
            channels=AUDIO_CHANNELS,
            rate=AUDIO_SAMPLE_RATE_HZ,
            output=True,
            frames_per_buffer=AUDIO_SAMPLES_PER_FRAME,
        )
        try:
            self._input = pa.open(
                format=pyaudio.paInt16,
                channels=AUDIO_CHANNELS,
                rate=AUDIO_SAMPLE_RATE_HZ,
                input=True,
                frames_per_buffer=AUDIO_SAMPLES_PER_FRAME,
                stream_callback=self._capture_callback,
            )
        except Exception:
            self._output.close()
            raise

        mumble = session.mumble
        mumble.callbacks.set_callback(PYMUMBLE_CLBK_SOUNDRECEIVED, self._on_sound)
        mumble.set_receive_sound(True)

    # ------------------------------------------------------------------
    # AudioStreamProtocol
    # ------------------------------------------------------------------

    def start_source(self) -> None:
        self._sourcing.set()

    def stop_source(self) -> None:
        self._sourcing.clear()

    def destroy(self) -> None:
        self._sourcing.clear()

        mumble = self._session.mumble
        mumble.set_receive_sound(False)
        mumble.callbacks.remove_callback(PYMUMBLE_CLBK_SOUNDRECEIVED, self._on_sound)

        self._input.stop_stream()
        self._input.close()
        self._output.stop_stream()
        self._output.close()

    # ------------------------------------------------------------------
    # Device callbacks
    # ------------------------------------------------------------------

    def _capture_callback(
        self,
        in_data: bytes | None,
        frame_count: int,
        time_info: Any,
        status: int,
    ) -> tuple[None, int]:
        if self._sourcing.is_set() and in_data:
            self._session.mumble.sound_output.add_sound(in_data)
        return (None, pyaudio.paContinue)

    def _on_sound(self, user: Any, soundchunk: Any) -> None:
        # Runs on the pymumble thread
        self._output.write(soundchunk.pcm)


class PyAudioBackend:
    """Owns the PortAudio instance; opens one PyAudioStream per session."""

    def __init__(self) -> None:
        self._pa = pyaudio.PyAudio()

    def open_stream(self, handle: MumbleSession) -> PyAudioStream:
        stream = PyAudioStream(pa=self._pa, session=handle)
        log_event({
            "level": "DEBUG",
            "event_type": "AUDIO_DEVICE_OPENED",
            "sample_rate_hz": AUDIO_SAMPLE_RATE_HZ,
        })
        return stream

    def close(self) -> None:
        self._pa.terminate()
