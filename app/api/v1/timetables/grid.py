"""
Period grid: the (day x slot) structure of one class's week.

Pure helpers shared by timetable creation, template application and cloning.
Monday's slot names are the canonical structure; every other day must carry
the same names (times may differ per day).
"""

from datetime import time
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence
from uuid import UUID

from app.core.enums import WEEKDAYS, PeriodType
from app.core.exceptions import InvalidSlotTemplate, InvalidTimeRange
from app.core.timeslots import format_time_24, is_valid_range, parse_time_24


class PeriodSpec(NamedTuple):
    """One period row to be created."""

    day: str
    period_name: str
    start_time: time
    end_time: time
    period_type: str
    required_subject_id: Optional[str] = None
    required_subject_name: Optional[str] = None


class SlotRef(NamedTuple):
    """Plain snapshot of a period and its timetable, safe to hold across commits/rollbacks."""

    period_id: UUID
    timetable_id: UUID
    class_id: str
    class_name: str
    day: str
    period_name: str
    period_type: str
    start_time: time
    end_time: time


class GridSymmetry(NamedTuple):
    is_symmetric: bool
    canonical_day: Optional[str]
    missing: Dict[str, List[str]]
    extra: Dict[str, List[str]]


# Standard school day used when the caller supplies no slot template.
DEFAULT_SLOTS = [
    ("Assembly", "07:30", "08:00", PeriodType.BREAK),
    ("Period 1", "08:00", "09:10", PeriodType.CLASS),
    ("Period 2", "09:10", "10:20", PeriodType.CLASS),
    ("Break Time", "10:20", "10:40", PeriodType.BREAK),
    ("Period 3", "10:45", "11:55", PeriodType.CLASS),
    ("Period 4", "11:55", "13:05", PeriodType.CLASS),
    ("Lunch Time", "13:05", "13:35", PeriodType.BREAK),
    ("Period 5", "13:35", "14:45", PeriodType.CLASS),
    ("Period 6", "14:45", "15:55", PeriodType.CLASS),
    ("Closing", "15:55", "16:00", PeriodType.BREAK),
]


def default_slot_specs(day: str) -> List[PeriodSpec]:
    return [
        PeriodSpec(day, name, parse_time_24(start), parse_time_24(end), ptype.value)
        for name, start, end, ptype in DEFAULT_SLOTS
    ]


def validate_grid(days: Sequence[str], specs: Sequence[PeriodSpec]) -> None:
    """Raise on a malformed grid. Every day must carry the same slot names."""
    if not days:
        raise InvalidSlotTemplate("At least one day is required")
    unknown = [d for d in days if d not in WEEKDAYS]
    if unknown:
        raise InvalidSlotTemplate(f"Unknown day(s): {', '.join(unknown)}")
    if len(set(days)) != len(days):
        raise InvalidSlotTemplate("Days must not repeat")
    if not specs:
        raise InvalidSlotTemplate("At least one slot is required")

    seen: Dict[str, set] = {}
    for spec in specs:
        name = spec.period_name.strip()
        if not name:
            raise InvalidSlotTemplate("Slot names must not be blank")
        names = seen.setdefault(spec.day, set())
        if name in names:
            raise InvalidSlotTemplate(f"Slot name '{name}' is repeated on {spec.day}")
        names.add(name)
        if spec.period_type not in (PeriodType.CLASS.value, PeriodType.BREAK.value):
            raise InvalidSlotTemplate(f"Unknown period type '{spec.period_type}'")
        if spec.period_type == PeriodType.BREAK.value and (
            spec.required_subject_id or spec.required_subject_name
        ):
            raise InvalidSlotTemplate(f"Break slot '{name}' cannot carry a subject or teacher")
        if not is_valid_range(spec.start_time, spec.end_time):
            raise InvalidTimeRange(
                f"{name} on {spec.day}: end_time must be after start_time "
                f"({format_time_24(spec.start_time)}-{format_time_24(spec.end_time)})"
            )

    sym = check_symmetry(seen)
    if not sym.is_symmetric:
        uneven = sorted(set(sym.missing) | set(sym.extra))
        raise InvalidSlotTemplate(
            f"Slot names on {', '.join(uneven)} differ from {sym.canonical_day}"
        )


def expand_for_days(days: Iterable[str], specs: Sequence[PeriodSpec]) -> List[PeriodSpec]:
    """Repeat a one-day slot template on each day."""
    return [spec._replace(day=day) for day in days for spec in specs]


def check_symmetry(names_by_day: Dict[str, Iterable[str]]) -> GridSymmetry:
    """Compare each day's slot names to the canonical day (Monday, or the first weekday present)."""
    present = [d for d in WEEKDAYS if d in names_by_day]
    if not present:
        return GridSymmetry(True, None, {}, {})
    canonical_day = present[0]
    canonical = set(names_by_day[canonical_day])

    missing: Dict[str, List[str]] = {}
    extra: Dict[str, List[str]] = {}
    for day in present[1:]:
        names = set(names_by_day[day])
        if canonical - names:
            missing[day] = sorted(canonical - names)
        if names - canonical:
            extra[day] = sorted(names - canonical)
    return GridSymmetry(not missing and not extra, canonical_day, missing, extra)


def day_sort_key(day: str, start: time) -> tuple:
    return (WEEKDAYS.index(day) if day in WEEKDAYS else len(WEEKDAYS), start)
