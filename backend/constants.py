"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for the device's behavioral invariants.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Reconnect policy
# =============================================================================

# Attempts are counted across the whole process lifetime (never reset).
MAX_CONNECT_ATTEMPTS: Final[int] = 5
RECONNECT_DELAY_S: Final[float] = 10.0

# =============================================================================
# Audio stream lifecycle
# =============================================================================

STREAM_RESET_COOLDOWN_S: Final[float] = 0.050

# Mumble carries 48kHz mono PCM16 in 10ms steps
AUDIO_SAMPLE_RATE_HZ: Final[int] = 48_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_FRAME_MS: Final[int] = 10
AUDIO_SAMPLES_PER_FRAME: Final[int] = (AUDIO_SAMPLE_RATE_HZ * AUDIO_FRAME_MS) // 1000

# =============================================================================
# Transport
# =============================================================================

DEFAULT_SERVER_PORT: Final[int] = 64738
DEFAULT_SERVER_ADDRESS: Final[str] = f"127.0.0.1:{DEFAULT_SERVER_PORT}"
DIAL_TIMEOUT_S: Final[float] = 30.0

# =============================================================================
# GPIO (BCM numbering)
# =============================================================================

ONLINE_LED_PIN: Final[int] = 18
PARTICIPANTS_LED_PIN: Final[int] = 23
TRANSMIT_LED_PIN: Final[int] = 24
BUTTON_PIN: Final[int] = 25
BUTTON_BOUNCE_S: Final[float] = 0.02

# =============================================================================
# Process exit statuses
# =============================================================================

EXIT_RECONNECT_EXHAUSTED: Final[int] = 1
EXIT_STREAM_OPEN_FAILED: Final[int] = 1
