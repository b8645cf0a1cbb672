"""Timestamp normalization for stored records.

Records may arrive with timestamps in several representations (aware or naive
datetimes, plain dates, epoch seconds or milliseconds). Everything crossing the
store boundary is converted to a timezone-aware UTC datetime, so lifecycle code
never has to inspect the representation.
"""

from datetime import date, datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

# Epoch values above this are treated as milliseconds (year 5138 in seconds)
_EPOCH_MILLIS_THRESHOLD = 100_000_000_000


def normalize_timestamp(value: datetime | date | int | float | None) -> datetime | None:
    """Convert a supported timestamp representation to an aware UTC datetime.

    Args:
        value: datetime (naive values are taken as UTC), date (midnight UTC),
            or epoch seconds/milliseconds

    Returns:
        Aware UTC datetime, or None when value is None

    Raises:
        TypeError: If the value has an unsupported type
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise TypeError("Boolean is not a timestamp")
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")


class UTCDateTime(TypeDecorator):
    """DateTime column that always binds and returns aware UTC datetimes.

    SQLite drops tzinfo on storage, so values read back are re-stamped as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return normalize_timestamp(value)

    def process_result_value(self, value, dialect):
        return normalize_timestamp(value)


__all__ = ["UTCDateTime", "normalize_timestamp"]
