"""
Device session container.

- Owns connection status, the transport handle and the attempt counter
- Owned by ConnectionSupervisor; mutated only by it and the dispatcher
  callbacks it registers
- NOT a state machine
- Contains no orchestration logic

status and is_transmitting are read from the hardware input thread, so both
live behind one lock. Callers that need check-then-act (the transmit gate)
hold `session.lock` across the whole operation.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from observability.logger import log_event
from session.connection_status import ConnectionStatus


@dataclass
class DeviceSession:
    """Mutable runtime container for the single voice-server session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    address: str

    # Monotonic across the whole process; never reset on success.
    connect_attempts: int = 0
    current_channel: str | None = None

    # ------------------------------------------------------------------
    # Transport handle (opaque, owned by the transport adapter)
    # ------------------------------------------------------------------

    handle: Any = None

    # ------------------------------------------------------------------
    # Lock-guarded state
    # ------------------------------------------------------------------

    _status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    _is_transmitting: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        with self.lock:
            return self._status

    def set_status(self, status: ConnectionStatus) -> None:
        """
        Transition to `status`. Same-status writes are silent.

        Leaving CONNECTED always clears the transmit flag.
        """
        with self.lock:
            previous = self._status
            if previous is status:
                return
            self._status = status
            if status is not ConnectionStatus.CONNECTED:
                self._is_transmitting = False

        log_event({
            "event_type": "STATUS_CHANGED",
            "from": previous.value,
            "to": status.value,
            "attempt": self.connect_attempts,
            "address": self.address,
        })

    @property
    def is_connected(self) -> bool:
        with self.lock:
            return self._status is ConnectionStatus.CONNECTED

    # ------------------------------------------------------------------
    # Transmit flag
    # ------------------------------------------------------------------

    @property
    def is_transmitting(self) -> bool:
        with self.lock:
            return self._is_transmitting

    def set_transmitting(self, value: bool) -> None:
        """Set the transmit flag. Only valid while CONNECTED."""
        with self.lock:
            if value and self._status is not ConnectionStatus.CONNECTED:
                raise RuntimeError("cannot transmit while not connected")
            self._is_transmitting = value

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Return standard logging context for this session."""
        with self.lock:
            return {
                "address": self.address,
                "connection_status": self._status.value,
                "attempt": self.connect_attempts,
                "channel": self.current_channel,
            }
