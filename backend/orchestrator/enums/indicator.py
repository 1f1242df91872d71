"""
Logical indicator enumeration.

Rules:
- This enum names the three physical outputs only.
- No behavior; the IndicatorController drives them.
"""

from __future__ import annotations

from enum import Enum


class Indicator(str, Enum):
    """
    Physical on/off outputs, each a projection of session state.

    ONLINE:
        Lit exactly while the session is CONNECTED.

    PARTICIPANTS:
        Lit while someone besides this device is in the local channel.

    TRANSMITTING:
        Lit exactly while outbound audio is being sent.
    """

    ONLINE = "online"
    PARTICIPANTS = "participants"
    TRANSMITTING = "transmitting"
