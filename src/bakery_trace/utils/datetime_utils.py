"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from bakery_trace.utils.datetime_utils import utc_now

    timestamp = utc_now()

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    This is the replacement for the deprecated datetime.utcnow().

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def as_utc_naive(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC.

    SQLite stores DateTime columns without tzinfo, so values read back from
    the database are naive. Normalizing before comparison keeps ordering by
    instant consistent between freshly created and reloaded rows.

    Args:
        value: Aware or naive datetime (naive values are assumed to be UTC)

    Returns:
        Naive datetime in UTC
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def calendar_date(value: datetime) -> date:
    """Calendar date (UTC) of a timestamp, used as the daily log key."""
    return as_utc_naive(value).date()


def today() -> date:
    """Local calendar date, the bakery's production day for the daily log."""
    return date.today()
