"""Wall-clock helpers for period times (minute granularity, half-open ranges)."""

from datetime import datetime, time
from typing import Union


def parse_time_24(v: Union[str, time]) -> time:
    """Parse 24-hour time string (HH:MM or HH:MM:SS) to time, truncated to the minute."""
    if isinstance(v, time):
        return v.replace(second=0, microsecond=0)
    if isinstance(v, str):
        v = v.strip()
        if len(v) == 5:  # HH:MM
            return datetime.strptime(v, "%H:%M").time()
        return datetime.strptime(v, "%H:%M:%S").time().replace(second=0)
    raise ValueError("start_time/end_time must be 24-hour string (e.g. 09:00, 09:45) or time")


def format_time_24(t: time) -> str:
    return t.strftime("%H:%M")


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def duration_minutes(start: time, end: time) -> int:
    return to_minutes(end) - to_minutes(start)


def is_valid_range(start: time, end: time) -> bool:
    return to_minutes(start) < to_minutes(end)


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """[start1, end1) and [start2, end2) share at least one minute. Back-to-back ranges do not overlap."""
    return to_minutes(start1) < to_minutes(end2) and to_minutes(start2) < to_minutes(end1)
