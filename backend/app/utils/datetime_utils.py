"""
Timezone-aware datetime utilities.

Chat records store epoch milliseconds; these helpers convert between that
representation and timezone-aware datetimes.
"""

from datetime import datetime, timezone

# UTC timezone constant
UTC = timezone.utc


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def now_millis() -> int:
    """Current time as integer epoch milliseconds."""
    return to_millis(now_utc())


def to_millis(dt: datetime) -> int:
    """
    Convert a datetime to epoch milliseconds.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)
