"""
Datetime utilities for persisted timestamps.

All timestamps are stored as UTC ISO-8601 strings with a 'Z' suffix and
handed back as timezone-aware datetimes.
"""

from datetime import datetime, timezone
from typing import Optional, Union

# Sort value for rows without a timestamp
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        datetime: Current time in UTC with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is UTC timezone-aware.

    Converts naive datetime (assumed to be UTC) to timezone-aware UTC.
    If datetime is already timezone-aware, converts to UTC.

    Args:
        dt: Datetime object (naive or aware) or None

    Returns:
        UTC timezone-aware datetime or None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def to_iso_utc(dt: Optional[datetime]) -> Optional[str]:
    """
    Convert datetime to ISO format with 'Z' suffix (UTC indicator).

    Args:
        dt: Datetime object or None

    Returns:
        ISO 8601 string with 'Z' suffix (e.g., "2025-12-16T11:30:00.123456Z")
        or None if input is None

    Example:
        >>> to_iso_utc(datetime(2025, 12, 16, 11, 30, tzinfo=timezone.utc))
        '2025-12-16T11:30:00Z'
    """
    if dt is None:
        return None

    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def parse_iso_utc(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a stored ISO timestamp back into a UTC-aware datetime.

    Empty strings and None yield None; malformed strings raise ValueError.

    Example:
        >>> parse_iso_utc("2024-01-02T00:00:00Z")
        datetime.datetime(2024, 1, 2, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def sort_value(value: Union[str, datetime, None]) -> datetime:
    """Timestamp used for ordering; missing values sort as the oldest."""
    parsed = parse_iso_utc(value)
    return parsed if parsed is not None else EPOCH
