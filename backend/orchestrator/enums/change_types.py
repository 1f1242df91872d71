"""
Closed sets of transport-reported reasons.

These enums carry the discriminants of the Disconnected, UserChange and
PermissionDenied events. Labels are for operator-facing logs only; no
state decision is ever taken on them.
"""

from __future__ import annotations

from enum import Enum


class DisconnectType(str, Enum):
    """
    Why the transport dropped the session.

    pymumble reports every remote close the same way, so kicks and bans
    arrive as ERROR. Local disconnects are never reported.
    """

    ERROR = "error"    # transport / socket failure
    OTHER = "other"


class UserChangeType(str, Enum):
    """What changed about a remote user. Values are the log labels."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    NAME = "changed name"
    CHANNEL = "changed channel"
    AUDIO = "changed audio"
    PRIORITY_SPEAKER = "is priority speaker"
    RECORDING = "changed recording status"
    STATS = "changed stats"


class PermissionDeniedType(int, Enum):
    """
    Server denial reasons, numbered as the Mumble wire protocol numbers them.

    OTHER carries free text from the server instead of a fixed label.
    """

    OTHER = 0
    PERMISSION = 1
    SUPER_USER = 2
    INVALID_CHANNEL_NAME = 3
    TEXT_TOO_LONG = 4
    H9K = 5
    TEMPORARY_CHANNEL = 6
    MISSING_CERTIFICATE = 7
    INVALID_USER_NAME = 8
    CHANNEL_FULL = 9
    NESTING_LIMIT = 10
    CHANNEL_COUNT_LIMIT = 11
