import json
import sys
from pathlib import Path

def normalize_timestamps(log_text: str) -> str:
    """
    Normalize all 'ts_ms' values in a device JSONL log:
    - subtract the first ts_ms found
    - divide by 1e3 (milliseconds -> seconds)

    Lines that are not JSON objects (operator messages, tracebacks) are
    passed through unchanged.
    """

    t0: int | None = None
    out: list[str] = []

    for line in log_text.splitlines():
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            out.append(line)
            continue

        if not isinstance(record, dict) or "ts_ms" not in record:
            out.append(line)
            continue

        if t0 is None:
            t0 = int(record["ts_ms"])
        record["ts_ms"] = round((int(record["ts_ms"]) - t0) / 1e3, 3)
        out.append(json.dumps(record))

    return "\n".join(out)


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: normalize_log.py DEVICE_LOG.jsonl")

    in_path = Path(sys.argv[1])
    normalized = normalize_timestamps(in_path.read_text(encoding="utf-8"))

    out_path = in_path.with_suffix(".normalized.jsonl")
    out_path.write_text(normalized, encoding="utf-8")
