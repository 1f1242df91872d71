"""
Session event dispatcher.

Registered by the ConnectionSupervisor as the transport's only event sink.

Responsibilities:
- Apply each transport event to the DeviceSession and the indicators
- Join the configured channel once connected
- Produce operator-facing log records (sanitized where text is untrusted)
- Hand disconnects back to the supervisor

Non-responsibilities:
- Retry policy (supervisor)
- Audio stream lifecycle (stream manager)
- Transmit gating (transmit gate)

Events arrive serially on the event loop; handlers never block.
"""

from __future__ import annotations

from typing import Any, Callable

from hardware.indicators import IndicatorController
from observability.logger import log_event
from orchestrator.enums.change_types import DisconnectType, PermissionDeniedType
from orchestrator.enums.indicator import Indicator
from orchestrator.events import (
    ACL,
    BanList,
    ChannelChange,
    Connected,
    ContextActionChange,
    Disconnected,
    PermissionDenied,
    ServerConfig,
    TextMessage,
    UserChange,
    UserList,
)
from orchestrator.retry import FailureType
from orchestrator.runtime_context import SanitizerProtocol, TransportProtocol
from session.connection_status import ConnectionStatus
from session.device_session import DeviceSession


PERMISSION_DENIED_LABELS: dict[PermissionDeniedType, str] = {
    PermissionDeniedType.PERMISSION: "insufficient permissions",
    PermissionDeniedType.SUPER_USER: "cannot modify SuperUser",
    PermissionDeniedType.INVALID_CHANNEL_NAME: "invalid channel name",
    PermissionDeniedType.TEXT_TOO_LONG: "text too long",
    PermissionDeniedType.H9K: "flood protection",
    PermissionDeniedType.TEMPORARY_CHANNEL: "temporary channel",
    PermissionDeniedType.MISSING_CERTIFICATE: "missing certificate",
    PermissionDeniedType.INVALID_USER_NAME: "invalid user name",
    PermissionDeniedType.CHANNEL_FULL: "channel full",
    PermissionDeniedType.NESTING_LIMIT: "nesting limit",
    PermissionDeniedType.CHANNEL_COUNT_LIMIT: "channel count limit",
}

_METADATA_EVENTS = (
    ChannelChange,
    UserList,
    ACL,
    BanList,
    ContextActionChange,
    ServerConfig,
)


def describe_permission_denied(event: PermissionDenied) -> str:
    """Human-readable reason; OTHER uses the server's own text."""
    if event.denied_type is PermissionDeniedType.OTHER:
        return event.detail or ""
    return PERMISSION_DENIED_LABELS[event.denied_type]


def describe_disconnect(event: Disconnected) -> str | None:
    """Only transport errors get a reason in the log line."""
    if event.disconnect_type is DisconnectType.ERROR:
        return "connection error"
    return None


class SessionEventDispatcher:
    """
    One handling arm per SessionEventType.

    on_disconnect is the supervisor's reconnect entry point.
    """

    def __init__(
        self,
        *,
        session: DeviceSession,
        indicators: IndicatorController,
        transport: TransportProtocol,
        sanitizer: SanitizerProtocol,
        on_disconnect: Callable[[FailureType], None],
        channel_name: str | None = None,
    ) -> None:
        self._session = session
        self._indicators = indicators
        self._transport = transport
        self._sanitizer = sanitizer
        self._on_disconnect = on_disconnect
        self._channel_name = channel_name

    def dispatch(self, event: Any) -> None:
        """Single entry point for transport events."""
        if self._session.status is ConnectionStatus.FAILED:
            log_event({
                "level": "DEBUG",
                "event_type": "EVENT_AFTER_FAILURE",
                "dropped_event": type(event).__name__,
            })
            return

        if isinstance(event, Connected):
            self._on_connected(event)
        elif isinstance(event, Disconnected):
            self._on_disconnected(event)
        elif isinstance(event, UserChange):
            self._on_user_change(event)
        elif isinstance(event, TextMessage):
            self._on_text_message(event)
        elif isinstance(event, PermissionDenied):
            self._on_permission_denied(event)
        elif isinstance(event, _METADATA_EVENTS):
            # Reserved extension points: acknowledged, no state change
            log_event({
                "level": "DEBUG",
                "event_type": "EVENT_ACKNOWLEDGED",
                "session_event": event.event_type.value,
            })
        else:
            log_event({
                "level": "DEBUG",
                "event_type": "EVENT_IGNORED",
                "event_class": type(event).__name__,
            })

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _is_stale(self, event: Connected) -> bool:
        # Queued before its dial failed, or for a handle already replaced
        if self._session.status is ConnectionStatus.DISCONNECTED:
            return True
        handle = self._session.handle
        return handle is not None and handle is not event.handle

    def _on_connected(self, event: Connected) -> None:
        if self._is_stale(event):
            log_event({
                "level": "WARNING",
                "event_type": "CONNECTED_STALE",
                "connection_status": self._session.status.value,
            })
            return

        self._session.handle = event.handle
        self._session.set_status(ConnectionStatus.CONNECTED)
        self._indicators.set_on(Indicator.ONLINE)
        self._indicators.set(
            Indicator.PARTICIPANTS,
            event.local_channel_user_count > 1,
        )

        remote = self._transport.remote_address(event.handle)
        log_event({
            "event_type": "CONNECTED",
            "message": f"Connected to {remote} ({self._session.connect_attempts})",
            "remote": remote,
            "attempt": self._session.connect_attempts,
        })

        if event.welcome_message:
            log_event({
                "event_type": "WELCOME_MESSAGE",
                "message": f"Welcome message: {self._sanitizer.sanitize(event.welcome_message)}",
            })

        if self._channel_name:
            self.change_channel(self._channel_name)

    def change_channel(self, name: str) -> bool:
        """
        Move into the channel called `name`.

        A missing channel is reported and otherwise ignored.
        """
        handle = self._session.handle
        channel = self._transport.find_channel(handle, name)
        if channel is None:
            log_event({
                "level": "WARNING",
                "event_type": "CHANNEL_NOT_FOUND",
                "message": f"Unable to find channel: {name}",
                "channel": name,
            })
            return False

        self._transport.move_self(handle, channel)
        self._session.current_channel = name
        log_event({"event_type": "CHANNEL_JOINED", "channel": name})
        return True

    def _on_disconnected(self, event: Disconnected) -> None:
        self._session.set_status(ConnectionStatus.DISCONNECTED)
        self._session.current_channel = None
        self._indicators.all_off()

        reason = describe_disconnect(event)
        address = self._session.address
        message = (
            f"Connection to {address} disconnected ({reason})"
            if reason else f"Connection to {address} disconnected"
        )
        log_event({
            "level": "WARNING",
            "event_type": "DISCONNECTED",
            "message": message,
            "disconnect_type": event.disconnect_type.value,
            "detail": event.reason,
        })

        self._on_disconnect(FailureType.SESSION_LOST)

    # ------------------------------------------------------------------
    # Presence / messaging
    # ------------------------------------------------------------------

    def _on_user_change(self, event: UserChange) -> None:
        # More than just ourselves in the channel
        self._indicators.set(
            Indicator.PARTICIPANTS,
            event.local_channel_user_count > 1,
        )

        log_event({
            "event_type": "USER_CHANGE",
            "message": f"Change event for {event.user_name}: {event.change_type.value}",
            "change": event.change_type.name,
            "local_channel_users": event.local_channel_user_count,
        })

    def _on_text_message(self, event: TextMessage) -> None:
        text = self._sanitizer.sanitize(event.message).strip()
        log_event({
            "event_type": "TEXT_MESSAGE",
            "message": f"Message from {event.sender_name}: {text}",
        })

    def _on_permission_denied(self, event: PermissionDenied) -> None:
        log_event({
            "level": "WARNING",
            "event_type": "PERMISSION_DENIED",
            "message": f"Permission denied: {describe_permission_denied(event)}",
            "denied_type": event.denied_type.name,
        })
