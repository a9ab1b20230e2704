"""
Time utility functions.

The review engine works with timezone-aware UTC datetimes. Databases that
drop timezone information (SQLite) hand back naive values, which are taken
to be UTC.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Args:
        value: Datetime to normalize (naive values are assumed to be UTC)

    Returns:
        Aware UTC datetime, or None if value is None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
