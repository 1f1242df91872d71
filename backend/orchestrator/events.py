"""
Session event definitions delivered by the transport.

Rules:
- Events describe facts the transport has observed.
- Events carry data only (no behavior).
- The set is closed: the dispatcher has exactly one arm per SessionEventType.
- No clocks, no timers, no async, no side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.enums.change_types import (
    DisconnectType,
    PermissionDeniedType,
    UserChangeType,
)


# =============================================================================
# Event Type Enumeration
# =============================================================================

class SessionEventType(str, Enum):
    """
    Canonical event types emitted by the transport.

    Every event type must be explicitly handled or explicitly ignored by
    the dispatcher.
    """

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"

    # ------------------------------------------------------------------
    # Presence / messaging
    # ------------------------------------------------------------------
    USER_CHANGE = "USER_CHANGE"
    TEXT_MESSAGE = "TEXT_MESSAGE"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # ------------------------------------------------------------------
    # Server metadata (acknowledged, no state change)
    # ------------------------------------------------------------------
    CHANNEL_CHANGE = "CHANNEL_CHANGE"
    USER_LIST = "USER_LIST"
    ACL = "ACL"
    BAN_LIST = "BAN_LIST"
    CONTEXT_ACTION_CHANGE = "CONTEXT_ACTION_CHANGE"
    SERVER_CONFIG = "SERVER_CONFIG"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class SessionEvent:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the transport (or fake in tests)
    """

    event_type: SessionEventType
    ts_ms: int


# =============================================================================
# Connection Events
# =============================================================================

@dataclass(frozen=True)
class Connected(SessionEvent):
    """
    Server accepted the session and finished synchronization.

    local_channel_user_count covers users that were already present before
    synchronization finished; it includes this device.
    """
    handle: Any
    welcome_message: str | None = None
    local_channel_user_count: int = 1


@dataclass(frozen=True)
class Disconnected(SessionEvent):
    """Session lost or closed."""
    disconnect_type: DisconnectType = DisconnectType.OTHER
    reason: str | None = None


# =============================================================================
# Presence / Messaging Events
# =============================================================================

@dataclass(frozen=True)
class UserChange(SessionEvent):
    """
    A remote (or the local) user changed.

    local_channel_user_count is computed by the transport at delivery time
    and includes this device.
    """
    user_name: str
    change_type: UserChangeType
    local_channel_user_count: int


@dataclass(frozen=True)
class TextMessage(SessionEvent):
    """Text chat message. `message` is untrusted markup."""
    sender_name: str
    message: str


@dataclass(frozen=True)
class PermissionDenied(SessionEvent):
    """Server refused an action."""
    denied_type: PermissionDeniedType
    detail: str | None = None


# =============================================================================
# Metadata Events (reserved extension points)
# =============================================================================

@dataclass(frozen=True)
class ChannelChange(SessionEvent):
    """A channel was created, updated or removed."""
    channel_name: str | None = None


@dataclass(frozen=True)
class UserList(SessionEvent):
    """Registered user list received."""


@dataclass(frozen=True)
class ACL(SessionEvent):
    """Channel ACL received."""


@dataclass(frozen=True)
class BanList(SessionEvent):
    """Server ban list received."""


@dataclass(frozen=True)
class ContextActionChange(SessionEvent):
    """Server-defined context action added or removed."""


@dataclass(frozen=True)
class ServerConfig(SessionEvent):
    """Server configuration (limits, welcome text) received."""
