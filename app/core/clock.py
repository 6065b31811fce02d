"""UTC time helpers shared by models and services."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a stored timestamp to aware UTC.

    SQLite hands DateTime(timezone=True) columns back without tzinfo; every value
    we write is UTC, so a naive value is interpreted as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
