"""
Epoch-millisecond time helpers and duration formatting.

The fasting core stores every timestamp as integer milliseconds since the
epoch. These helpers centralize reading the wall clock and turning durations
into the strings shown on the phone, widget and wearable surfaces.
"""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

MILLIS_PER_SECOND = 1000
MILLIS_PER_MINUTE = 60 * MILLIS_PER_SECOND
MILLIS_PER_HOUR = 60 * MILLIS_PER_MINUTE


class TimeFormat(str, Enum):
    """Display patterns for session timestamps."""
    DATE_TIME = "%a, %I:%M %p"
    TIME = "%I:%M %p"


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def get_hours(millis: Optional[int]) -> int:
    """Whole hours contained in a duration; None counts as zero."""
    if millis is None:
        return 0
    return int(millis) // MILLIS_PER_HOUR


def format_duration(millis: int) -> str:
    """
    Format a duration as HH:MM:SS.

    Hours are not wrapped at 24, so a 36 hour fast renders as "36:00:00".
    Negative durations render as zero.

    Args:
        millis: Duration in milliseconds

    Returns:
        Zero-padded duration string
    """
    millis = max(0, int(millis))
    seconds = (millis // MILLIS_PER_SECOND) % 60
    minutes = (millis // MILLIS_PER_MINUTE) % 60
    hours = get_hours(millis)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def millis_to_datetime(millis: int, tz: Optional[timezone] = None) -> datetime:
    """Convert epoch milliseconds to an aware datetime (local zone by default)."""
    dt = datetime.fromtimestamp(millis / MILLIS_PER_SECOND, tz=timezone.utc)
    return dt.astimezone(tz) if tz is not None else dt.astimezone()


def format_date_time(millis: int, fmt: TimeFormat = TimeFormat.DATE_TIME,
                     tz: Optional[timezone] = None) -> str:
    """Format an epoch-millisecond timestamp, e.g. "Mon, 08:30 PM"."""
    return millis_to_datetime(millis, tz).strftime(fmt.value)
