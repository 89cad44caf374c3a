"""
Core Utilities Package

Modules:
    - time: Epoch-millisecond conversion helpers
"""

from core.utils.time import to_utc_datetime, datetime_to_timestamp, current_utc_timestamp

__all__ = ["to_utc_datetime", "datetime_to_timestamp", "current_utc_timestamp"]
