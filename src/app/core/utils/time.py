"""Timezone helpers.

Some backends (SQLite) hand back naive datetimes even for
``DateTime(timezone=True)`` columns, so comparisons go through ``as_utc``.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_past(value: datetime | None, now: datetime | None = None) -> bool:
    """Check whether a datetime lies in the past. ``None`` never expires."""
    if value is None:
        return False
    return as_utc(value) <= (now or utcnow())  # type: ignore[operator]
