"""
Timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit metrics as log records via observability.logger
- Never aggregate: one metric = one log record

Used to time dial attempts and stream (re)opens so reconnect timelines can
be read back from the device log.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


@contextmanager
def timed(
    name: str,
    *,
    attempt: int | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Metric is emitted exactly once
    - Exceptions inside the block are not suppressed; the metric records
      whether the block failed

    Usage:
        with timed("dial", attempt=session.connect_attempts):
            handle = await transport.dial(...)
    """
    start_ns = time.monotonic_ns()
    failed = False
    try:
        yield
    except BaseException:
        failed = True
        raise
    finally:
        log_event({
            "level": "DEBUG",
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": (time.monotonic_ns() - start_ns) // 1_000_000,
            "attempt": attempt,
            "failed": failed,
            "details": details or {},
        })
