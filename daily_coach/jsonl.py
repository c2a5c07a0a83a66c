"""Tolerant reader for newline-delimited JSON record files."""

from __future__ import annotations

import json
from pathlib import Path


def _parse_line(line: str) -> dict | None:
    line = line.strip()
    if not line:
        return None
    try:
        record = json.loads(line)
    except (ValueError, RecursionError):
        # JSONDecodeError, oversized integers, pathological nesting
        return None
    return record if isinstance(record, dict) else None


def read_jsonl(path: Path) -> list[dict]:
    """Read every JSON object line from ``path``.

    A missing or unreadable file yields ``[]``.  Malformed lines, and lines
    that decode to something other than an object, are skipped one by one.
    """
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError:
        return []
    return [r for r in map(_parse_line, lines) if r is not None]
