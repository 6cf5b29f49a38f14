"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; leave aware ones untouched."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from start to end."""
    return (ensure_aware(end) - ensure_aware(start)) / timedelta(hours=1)
