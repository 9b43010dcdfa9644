"""Relative-time rendering of last activity."""

from datetime import datetime, timedelta
from typing import Any

from accessroster.shared.timestamps import to_datetime

NEVER = "Never"
INVALID = "Invalid date"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit if count == 1 else unit + 's'} ago"


def _clock_time(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    return f"{hour}:{dt.minute:02d} {'AM' if dt.hour < 12 else 'PM'}"


def format_last_active(timestamp: Any, now: datetime) -> str:
    """Render a last-activity timestamp relative to now.

    Args:
        timestamp: datetime, ISO string or None.
        now: Reference time; the rendering is a pure function of both.

    Returns:
        "Never", "just now", "N minutes ago", "N hours ago", a weekday and
        time within a week, or a full date beyond that.
    """
    if timestamp is None or timestamp == "":
        return NEVER

    dt = to_datetime(timestamp)
    ref = to_datetime(now)
    if dt is None or ref is None:
        return INVALID

    # render in the reference clock's zone
    dt = dt.astimezone(ref.tzinfo)
    diff = ref - dt

    if diff < timedelta(minutes=1):
        return "just now"
    if diff < timedelta(hours=1):
        return _plural(int(diff.total_seconds() // 60), "minute")
    if diff < timedelta(hours=24):
        return _plural(int(diff.total_seconds() // 3600), "hour")
    if diff < timedelta(days=7):
        return f"{dt.strftime('%a')} {_clock_time(dt)}"
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}, {_clock_time(dt)}"
