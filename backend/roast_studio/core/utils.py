"""
Time helpers

All timestamps are stored as naive UTC datetimes and sent to clients as ISO
strings with a 'Z' suffix.
"""

from typing import Optional
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp_with_timezone(timestamp: Optional[datetime]) -> Optional[str]:
    """Format a timestamp with the UTC 'Z' designator"""
    if not timestamp:
        return None
    return timestamp.isoformat() + 'Z'


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp (with or without offset) into naive UTC"""
    if not value:
        return None
    return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def to_naive_utc(timestamp: datetime) -> datetime:
    """Drop tzinfo after converting to UTC; naive values are assumed UTC already"""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    return timestamp
