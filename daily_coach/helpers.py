"""Timestamp, path and console helpers shared by the collector and the CLI."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from pathlib import PurePath

import click


def log(message: str, verbose: bool = True, level: str = "INFO"):
    """Log message if verbose or if error."""
    if verbose or level == "ERROR":
        click.echo(f"[{level}] {message}", err=(level == "ERROR"))


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

# datetime.fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def _six_digit_fraction(match: re.Match) -> str:
    return f"{match.group(1)}.{(match.group(2) + '000000')[:6]}"


def parse_timestamp(value) -> datetime | None:
    """Parse an epoch-millis number or an ISO 8601 string into an aware datetime.

    Naive ISO strings are read as local wall-clock time.  Anything that cannot
    be resolved to an instant returns ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value:
        return None
    ts = value.strip()
    try:
        if ts.endswith("Z"):
            ts = ts[:-1] + "+00:00"
        ts = _FRACTION_RE.sub(_six_digit_fraction, ts, count=1)
        parsed = datetime.fromisoformat(ts)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def to_iso(dt: datetime) -> str:
    """Format an instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def local_day(dt: datetime) -> date:
    return dt.astimezone().date()


def local_today() -> date:
    return datetime.now().astimezone().date()


def timestamp_on_day(value, day: date) -> datetime | None:
    """Return the parsed instant when it falls on ``day`` (local time), else None."""
    ts = parse_timestamp(value)
    if ts is None or local_day(ts) != day:
        return None
    return ts


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def project_label(path: str) -> str:
    """Display name for a project: the last component of its path."""
    if not path:
        return ""
    return PurePath(path).name
