"""
Connection status tracking for the device session.

connection_status: DISCONNECTED | CONNECTING | CONNECTED | FAILED

This is pure data owned by DeviceSession; transitions are made by the
ConnectionSupervisor and the SessionEventDispatcher only.
"""
from enum import Enum


class ConnectionStatus(str, Enum):
    """
    Connection lifecycle status.

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED (loop).
    FAILED is terminal: the process exits once it is reached.
    """
    DISCONNECTED = "DISCONNECTED"  # No session, retry may be pending
    CONNECTING = "CONNECTING"      # Dial in flight
    CONNECTED = "CONNECTED"        # Live session, audio stream open
    FAILED = "FAILED"              # Reconnects exhausted or audio unusable
