"""
Audio stream manager.

Owns the single AudioStream bound to the current session handle.

Responsibilities:
- Open a stream for the session handle
- Destroy it (reconnect teardown)
- Reset it: destroy, cool down, reopen
- Forward start/stop of the capture source

Non-responsibilities:
- Deciding when to open or reset (supervisor)
- Deciding whether transmission is allowed (transmit gate)
- Codec, mixing or device selection (audio backend)

The stream is replaced, never mutated in place. All access goes through
this class; the lock makes start/stop from the GPIO thread safe against
close/reset on the event loop.
"""

from __future__ import annotations

import asyncio
import threading

from constants import STREAM_RESET_COOLDOWN_S
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.errors import StreamOpenError
from orchestrator.runtime_context import AudioBackendProtocol, AudioStreamProtocol
from session.device_session import DeviceSession


class AudioStreamManager:
    """Single owner of the live AudioStream."""

    def __init__(
        self,
        *,
        session: DeviceSession,
        backend: AudioBackendProtocol,
        reset_cooldown_s: float = STREAM_RESET_COOLDOWN_S,
    ) -> None:
        self._session = session
        self._backend = backend
        self._reset_cooldown_s = reset_cooldown_s
        self._stream: AudioStreamProtocol | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._stream is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """
        Open a new stream for the current session handle.

        Raises:
            StreamOpenError if the backend fails. Not retried: the caller
            treats it as fatal.
        """
        handle = self._session.handle
        try:
            with timed("stream_open", attempt=self._session.connect_attempts):
                stream = self._backend.open_stream(handle)
        except Exception as e:
            log_event({
                "level": "ERROR",
                "event_type": "STREAM_OPEN_FAILED",
                "message": f"Stream open error ({e})",
                "error": str(e),
            })
            raise StreamOpenError(str(e)) from e

        with self._lock:
            previous, self._stream = self._stream, stream

        if previous is not None:
            previous.destroy()

        log_event({"event_type": "STREAM_OPENED"})

    def close(self) -> None:
        """Destroy the current stream if there is one."""
        with self._lock:
            stream, self._stream = self._stream, None

        if stream is None:
            return

        stream.destroy()
        log_event({"event_type": "STREAM_DESTROYED"})

    async def reset(self) -> None:
        """
        Destroy the stream, let the audio device settle, then reopen.

        The reopen is skipped when the session was lost or replaced during
        the cooldown; reconnect owns the stream from then on.

        Raises:
            StreamOpenError if the reopen fails.
        """
        handle = self._session.handle
        log_event({"event_type": "STREAM_RESET"})
        self.close()
        await asyncio.sleep(self._reset_cooldown_s)

        if not self._session.is_connected or self._session.handle is not handle:
            log_event({
                "level": "WARNING",
                "event_type": "STREAM_RESET_ABANDONED",
                "connection_status": self._session.status.value,
            })
            return

        self.open()

    # ------------------------------------------------------------------
    # Capture source
    # ------------------------------------------------------------------

    def start_source(self) -> None:
        with self._lock:
            if self._stream is not None:
                self._stream.start_source()

    def stop_source(self) -> None:
        with self._lock:
            if self._stream is not None:
                self._stream.stop_source()
