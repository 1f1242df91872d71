"""
Device event logger.

- Write one record per line
- Output to stdout (JSONL by default, key=value text for a bare console)
- No buffering, no batching
- No side effects beyond logging

Operator-facing fatal messages go to stderr via log_operator_message().
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}


# ------------------------------------------------------------------
# Explicit output sinks (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def _stderr_print(line: str) -> None:
    sys.stderr.write(line + "\n")
    sys.stderr.flush()


_print: Callable[[str], None] = _stdout_print
_print_err: Callable[[str], None] = _stderr_print

_json_output: bool = True
_min_level: int = _LEVELS["INFO"]


def configure(*, level: str = "INFO", json_output: bool = True) -> None:
    """
    Set the process-wide output format and threshold.

    Called once from the entry point. Unknown level names fall back to INFO.
    """
    global _json_output, _min_level
    _json_output = json_output
    _min_level = _LEVELS.get(level.upper(), _LEVELS["INFO"])


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _render_text(event: Mapping[str, Any]) -> str:
    head = str(event.get("event_type", "EVENT"))
    message = event.get("message")
    rest = " ".join(
        f"{k}={v}" for k, v in event.items()
        if k not in ("event_type", "message", "ts_ms", "level")
    )
    parts = [head]
    if message:
        parts.append(str(message))
    if rest:
        parts.append(f"[{rest}]")
    return " ".join(parts)


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single log record.

    The caller supplies event_type and any structured fields; ts_ms is
    filled in when absent. An optional "level" key (default INFO) is
    compared against the configured threshold.

    This function:
    - Serializes to JSON (or key=value text)
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    level = _LEVELS.get(str(event.get("level", "INFO")).upper(), _LEVELS["INFO"])
    if level < _min_level:
        return

    record = dict(event)
    record.setdefault("ts_ms", _now_ms())

    if not _json_output:
        _print(_render_text(record))
        return

    try:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback, logging must never crash the device
        fallback: dict[str, Any] = {
            "ts_ms": record.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


def log_operator_message(text: str) -> None:
    """Write a plain operator-visible line to stderr (fatal conditions)."""
    _print_err(text)
