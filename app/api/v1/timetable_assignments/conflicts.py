"""
Teacher conflict detection.

A teacher may not hold two live assignments in the same school on the same day
whose [start, end) ranges overlap, whichever timetables they belong to. Live
means the assignment belongs to an active timetable. A write into an inactive
timetable is checked against live rows and that timetable's own rows, and the
whole timetable is checked again when it is reactivated. Every check re-reads
persisted assignments; nothing is cached between calls.
"""

from collections import defaultdict
from datetime import time
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import ConflictSeverity, ConflictType, TimetableStatus
from app.core.exceptions import NotFound
from app.core.models import Timetable, TimetableAssignment
from app.core.timeslots import format_time_24, intervals_overlap, to_minutes

from .schemas import ConflictReport, ConflictResponse


async def find_teacher_conflict(
    db: AsyncSession,
    school_id: str,
    teacher_id: str,
    day: str,
    start_time: time,
    end_time: time,
    exclude_period_id: Optional[UUID] = None,
    timetable_id: Optional[UUID] = None,
) -> Optional[TimetableAssignment]:
    """
    Earliest live assignment of this teacher overlapping [start_time, end_time) on day, or None.

    Pass timetable_id to also count that timetable's own rows when it is inactive.
    """
    live = Timetable.status == TimetableStatus.ACTIVE.value
    if timetable_id is not None:
        live = or_(live, TimetableAssignment.timetable_id == timetable_id)
    stmt = (
        select(TimetableAssignment)
        .join(Timetable, Timetable.id == TimetableAssignment.timetable_id)
        .where(
            TimetableAssignment.school_id == school_id,
            TimetableAssignment.teacher_id == teacher_id,
            TimetableAssignment.day == day,
            TimetableAssignment.start_time < end_time,
            TimetableAssignment.end_time > start_time,
            live,
        )
    )
    if exclude_period_id is not None:
        stmt = stmt.where(TimetableAssignment.period_id != exclude_period_id)
    stmt = stmt.order_by(TimetableAssignment.start_time).limit(1).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def _double_bookings(
    timetable_id: UUID,
    school_assignments: List[TimetableAssignment],
) -> List[ConflictResponse]:
    by_teacher_day: Dict[Tuple[str, str], List[TimetableAssignment]] = defaultdict(list)
    for a in school_assignments:
        by_teacher_day[(a.teacher_id, a.day)].append(a)

    conflicts: List[ConflictResponse] = []
    for (teacher_id, day), day_assignments in by_teacher_day.items():
        ordered = sorted(day_assignments, key=lambda a: to_minutes(a.start_time))
        for i, first in enumerate(ordered):
            for second in ordered[i + 1:]:
                if to_minutes(second.start_time) >= to_minutes(first.end_time):
                    break
                if not intervals_overlap(first.start_time, first.end_time, second.start_time, second.end_time):
                    continue
                if timetable_id not in (first.timetable_id, second.timetable_id):
                    continue
                conflicts.append(
                    ConflictResponse(
                        type=ConflictType.TEACHER_DOUBLE_BOOKING,
                        severity=ConflictSeverity.ERROR,
                        message=(
                            f"{first.teacher_name} is double-booked on {day} "
                            f"({format_time_24(first.start_time)}-{format_time_24(first.end_time)})"
                        ),
                        details={
                            "teacher_id": teacher_id,
                            "teacher_name": first.teacher_name,
                            "day": day,
                            "periods": [format_time_24(first.start_time), format_time_24(second.start_time)],
                            "class_names": [first.class_name, second.class_name],
                        },
                    )
                )
    return conflicts


def _subject_clustering(assignments: List[TimetableAssignment]) -> List[ConflictResponse]:
    by_day_subject: Dict[Tuple[str, str], List[TimetableAssignment]] = defaultdict(list)
    for a in assignments:
        by_day_subject[(a.day, a.subject_name)].append(a)

    conflicts: List[ConflictResponse] = []
    for (day, subject_name), grouped in by_day_subject.items():
        if len(grouped) < 2:
            continue
        conflicts.append(
            ConflictResponse(
                type=ConflictType.SUBJECT_CLUSTERING,
                severity=ConflictSeverity.INFO,
                message=f"{subject_name} appears {len(grouped)} times on {day}",
                details={
                    "day": day,
                    "subject_name": subject_name,
                    "periods": sorted(format_time_24(a.start_time) for a in grouped),
                },
            )
        )
    return conflicts


async def check_timetable_conflicts(
    db: AsyncSession,
    school_id: str,
    timetable_id: UUID,
) -> ConflictReport:
    """Diagnostic report for one timetable: double bookings it takes part in and repeated subjects per day.

    Assignments written through assign/reassign can never double-book; the report
    surfaces rows written around that path (imports, manual fixes).
    """
    timetable = await db.get(Timetable, timetable_id)
    if not timetable or timetable.school_id != school_id:
        raise NotFound("Timetable", timetable_id)

    own = (
        await db.execute(
            select(TimetableAssignment).where(TimetableAssignment.timetable_id == timetable_id)
        )
    ).scalars().all()
    if not own:
        return ConflictReport(timetable_id=timetable_id, conflicts=[], has_errors=False)

    teacher_ids = {a.teacher_id for a in own}
    school_assignments = (
        await db.execute(
            select(TimetableAssignment)
            .join(Timetable, Timetable.id == TimetableAssignment.timetable_id)
            .where(
                TimetableAssignment.school_id == school_id,
                TimetableAssignment.teacher_id.in_(teacher_ids),
                or_(
                    Timetable.status == TimetableStatus.ACTIVE.value,
                    TimetableAssignment.timetable_id == timetable_id,
                ),
            )
        )
    ).scalars().all()

    conflicts = _double_bookings(timetable_id, list(school_assignments)) + _subject_clustering(list(own))
    return ConflictReport(
        timetable_id=timetable_id,
        conflicts=conflicts,
        has_errors=any(c.severity == ConflictSeverity.ERROR for c in conflicts),
    )
