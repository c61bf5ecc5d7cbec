"""Parsing helpers for command-line time arguments"""

import re
from datetime import UTC, datetime, timedelta

# e.g., "20s", "5m", "1h30m", "2d3h", "90m", "  2h  "
DELAY_RE = re.compile(
    r"(?i)^\s*(?:(\d+)\s*d)?\s*(?:(\d+)\s*h)?\s*(?:(\d+)\s*m)?\s*(?:(\d+)\s*s)?\s*$"
)


def parse_delay(value: str) -> timedelta:
    """
    Parse delay strings like '20s', '5m', '1h30m', '2d3h', '90m'.
    Raises ValueError on bad input or a zero delay.
    """
    if not value or not value.strip():
        raise ValueError("delay string is empty")
    match = DELAY_RE.match(value)
    if not match:
        raise ValueError(f"Invalid delay format: {value!r}")
    days, hours, minutes, seconds = (int(part or 0) for part in match.groups())
    delay = timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
    if delay <= timedelta(0):
        raise ValueError("delay must be > 0 seconds")
    return delay


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; values without an offset are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Invalid timestamp: {value!r} ({e})") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
