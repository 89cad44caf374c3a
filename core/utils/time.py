"""
Time Utilities

Binance speaks epoch milliseconds everywhere: the `timestamp` parameter of
signed requests, `startTime`/`endTime` filters, and the server time endpoint.
These helpers convert between Python datetimes and those integers.
"""

import time
from datetime import datetime, timezone


def to_utc_datetime(timestamp_ms: int) -> datetime:
    """
    Convert an epoch-millisecond timestamp to a UTC datetime.

    Raises:
        ValueError: If the timestamp is negative

    Example:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp_ms < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp_ms}")
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (can be naive or timezone-aware)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400

        >>> datetime_to_timestamp(dt, milliseconds=True)
        1704110400250

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
        - Sub-unit precision is truncated
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    if milliseconds:
        return int(dt.timestamp() * 1000)

    return int(dt.timestamp())


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """
    Get current UTC timestamp from the wall clock.

    Args:
        milliseconds: If True, return milliseconds; if False, return seconds

    Example:
        >>> current_utc_timestamp(milliseconds=True)
        1704110400000
    """
    now = time.time()
    return int(now * 1000) if milliseconds else int(now)
