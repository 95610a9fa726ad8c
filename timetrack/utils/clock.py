"""Wall-clock helpers for time entry arithmetic.

Mongo hands back naive datetimes, so everything stored is naive UTC.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """
    Current time as a naive UTC datetime.

    Returns:
        Naive datetime in UTC

    Example:
        >>> utcnow().tzinfo is None
        True
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def elapsed_seconds(start_time: datetime, end_time: datetime) -> int:
    """
    Whole seconds between two times, floored and never negative.

    Args:
        start_time: Start time
        end_time: End time

    Returns:
        Duration in seconds

    Example:
        >>> elapsed_seconds(datetime(2024, 1, 1, 9, 0, 0), datetime(2024, 1, 1, 9, 1, 40, 900000))
        100
    """
    delta = end_time - start_time
    return max(0, int(delta.total_seconds()))


def format_elapsed(seconds: int) -> str:
    """
    Render a duration as HH:MM:SS.

    Example:
        >>> format_elapsed(3725)
        '01:02:05'
    """
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
