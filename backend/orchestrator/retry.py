"""
Reconnect policy helpers.

Purpose:
- Centralize the bounded reconnect rules
- Keep the supervisor free of policy arithmetic
- Allow deterministic retry decisions in tests

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from constants import MAX_CONNECT_ATTEMPTS, RECONNECT_DELAY_S


# =============================================================================
# Failure Types
# =============================================================================

class FailureType(str, Enum):
    """
    Failure classification used by the reconnect log record.

    DIAL_ERROR:
        The dial itself failed (unreachable, refused, TLS rejected).

    SESSION_LOST:
        A live session was reported disconnected by the transport.

    Both route through the same policy; the type only feeds the log.
    """

    DIAL_ERROR = "dial_error"
    SESSION_LOST = "session_lost"


# =============================================================================
# Retry Decision
# =============================================================================

@dataclass(frozen=True)
class RetryDecision:
    """
    Outcome of a reconnect policy check.

    retry:
        True if another connect() should be scheduled.

    delay_s:
        Backoff before the next attempt (0.0 when not retrying).

    attempts:
        Attempts made so far, echoed for logging.
    """
    retry: bool
    delay_s: float
    attempts: int


# =============================================================================
# Policy
# =============================================================================

def should_retry(attempts: int, *, max_attempts: int = MAX_CONNECT_ATTEMPTS) -> bool:
    """
    Returns True if another attempt is allowed.

    attempts = number of connect() calls already made (process lifetime).
    """
    return attempts < max_attempts


def decide(
    attempts: int,
    *,
    delay_s: float = RECONNECT_DELAY_S,
    max_attempts: int = MAX_CONNECT_ATTEMPTS,
) -> RetryDecision:
    """
    Fixed backoff: every retry waits the same delay_s.

    The counter is lifetime-wide, so a device that reconnected earlier has
    fewer attempts left after a later drop.
    """
    if should_retry(attempts, max_attempts=max_attempts):
        return RetryDecision(retry=True, delay_s=delay_s, attempts=attempts)
    return RetryDecision(retry=False, delay_s=0.0, attempts=attempts)
