"""
Timestamp helpers.

Stores may hand back timezone-aware datetimes, naive datetimes (assumed UTC)
or ISO-8601 strings. Anything else has no comparable value.
"""

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> datetime | None:
    """Convert a stored timestamp to an aware datetime.

    Args:
        value: datetime, ISO-8601 string or anything else.

    Returns:
        Aware datetime, or None when the value is not comparable.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def pick_most_recent(
    current: datetime | None,
    candidate: datetime | None,
) -> datetime | None:
    """Pick the fresher of two timestamps.

    A present value beats an absent one and a tie keeps the current value.

    Args:
        current: Value already held.
        candidate: Incoming value.

    Returns:
        The winning value, None when both are absent.
    """
    if current is None:
        return candidate
    if candidate is None:
        return current
    return current if current >= candidate else candidate
