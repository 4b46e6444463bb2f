"""
Time handling utilities.

All persisted timestamps are UTC epoch seconds; request ranges are matched
against wall-clock time in a fixed reference timezone.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> float:
    """Convert an aware datetime to UTC epoch seconds for storage."""
    return value.timestamp()


def from_timestamp(value: Optional[float]) -> Optional[datetime]:
    """Convert stored epoch seconds back to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Epoch milliseconds, the unit the mini-app client expects."""
    return int(round(value.timestamp() * 1000))


def time_elapsed_seconds(start_time: datetime, end_time: Optional[datetime] = None) -> float:
    """
    Calculate elapsed time in seconds between two timestamps.

    Args:
        start_time: Start timestamp
        end_time: End timestamp, defaults to now

    Returns:
        Elapsed time in seconds
    """
    if end_time is None:
        end_time = utc_now()

    return (end_time - start_time).total_seconds()


def parse_time_of_day(value: Any) -> int:
    """
    Parse a "HH:MM" string into minutes after midnight.

    Raises:
        ValueError: if the value is not a valid time of day
    """
    if not isinstance(value, str):
        raise ValueError(f"Time of day must be a string, got {value!r}")

    parts = value.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Time of day must be HH:MM, got {value!r}")

    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time of day out of range: {value!r}")

    return hours * 60 + minutes


def is_time_in_range(current: int, start: int, end: int) -> bool:
    """
    Check a minute-of-day against an inclusive range.

    A range whose start is after its end wraps past midnight.
    """
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def minute_of_day(now: datetime, tz_name: str) -> int:
    """Minutes after midnight of ``now`` in the given timezone."""
    local = now.astimezone(ZoneInfo(tz_name))
    return local.hour * 60 + local.minute


def is_time_in_ranges(
    now: datetime,
    ranges: Iterable[tuple[int, int]],
    tz_name: str
) -> bool:
    """
    Check whether ``now`` falls in any of the given minute-of-day ranges.

    An empty range list means "always allowed".
    """
    ranges = list(ranges)
    if not ranges:
        return True

    current = minute_of_day(now, tz_name)
    return any(is_time_in_range(current, start, end) for start, end in ranges)
