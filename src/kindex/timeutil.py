"""Human-friendly rendering of node timestamps."""

from datetime import datetime, timezone

from .constants import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    SECONDS_PER_MONTH,
    SECONDS_PER_WEEK,
    SECONDS_PER_YEAR,
)

_UNITS = (
    (SECONDS_PER_YEAR, "year"),
    (SECONDS_PER_MONTH, "month"),
    (SECONDS_PER_WEEK, "week"),
    (SECONDS_PER_DAY, "day"),
    (SECONDS_PER_HOUR, "hour"),
    (SECONDS_PER_MINUTE, "minute"),
)


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime as a human-readable relative string.

    Args:
        dt: The datetime to format (naive values are taken as UTC)
        now: Reference point (default: utcnow)

    Returns:
        Human-readable string like "just now", "2 days ago", "3 weeks ago"
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    seconds = int((now - dt).total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < SECONDS_PER_MINUTE:
        return "just now"

    for unit_seconds, unit in _UNITS:
        if seconds >= unit_seconds:
            amount = seconds // unit_seconds
            return f"{amount} {unit}{'s' if amount != 1 else ''} ago"
    return "just now"
