"""
Device error taxonomy.

- TransportError: transient network failure, recovered by bounded retry
- StreamOpenError: audio device failure, fatal
- FatalDeviceError: any condition that ends the process with a status

Protocol-level denials and unknown events are not errors; they are logged.
"""

from __future__ import annotations


class DeviceError(Exception):
    """Base class for all device errors."""


class TransportError(DeviceError):
    """Dial or transport failure reported by the transport adapter."""


class StreamOpenError(DeviceError):
    """The audio collaborator could not open a stream."""


class FatalDeviceError(DeviceError):
    """
    Unrecoverable condition. The process exits with `exit_status`.

    `message` is shown to the operator on stderr.
    """

    def __init__(self, exit_status: int, message: str) -> None:
        super().__init__(message)
        self.exit_status = exit_status
        self.message = message
