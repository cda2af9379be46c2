"""Copy a timetable (grid and, optionally, teacher bindings) onto another class."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.timetable_assignments.service import SlotBinding, assign_many
from app.core.enums import WEEKDAYS
from app.core.models import TimetableAssignment
from app.core.roster import get_active_class
from app.core.schemas import CloneResult

from .grid import PeriodSpec, day_sort_key, validate_grid
from .schemas import CloneRequest
from .service import get_timetable_row, list_periods, materialize_timetable

logger = logging.getLogger(__name__)


async def clone_timetable(
    db: AsyncSession,
    school_id: str,
    source_timetable_id: UUID,
    payload: CloneRequest,
    created_by: str,
    result: Optional[CloneResult] = None,
) -> CloneResult:
    """
    Build a new timetable for payload.class_id identical to the source, then replay
    every source assignment onto the matching new period.

    Missing source, unknown class, an uneven source grid or an existing active
    timetable fail before anything is written. After the grid is committed each
    assignment is its own unit: conflicts are reported in result.skipped and do not
    roll back other slots. Pass a result to observe progress if the call may be
    cancelled.
    """
    source = await get_timetable_row(db, school_id, source_timetable_id)
    target = await get_active_class(db, school_id, payload.class_id)
    target_class_id, target_class_name = target.id, target.name
    academic_year_id, term_id = source.academic_year_id, source.term_id

    periods = await list_periods(db, source.id)
    specs = [
        PeriodSpec(
            day=p.day,
            period_name=p.period_name,
            start_time=p.start_time,
            end_time=p.end_time,
            period_type=p.period_type,
            required_subject_id=p.required_subject_id,
            required_subject_name=p.required_subject_name,
        )
        for p in periods
    ]
    validate_grid([d for d in WEEKDAYS if any(s.day == d for s in specs)], specs)
    key_by_period = {p.id: (p.day, p.period_name) for p in periods}

    source_assignments: List[TimetableAssignment] = []
    if payload.include_assignments:
        rows = await db.execute(
            select(TimetableAssignment).where(TimetableAssignment.timetable_id == source.id)
        )
        source_assignments = sorted(rows.scalars().all(), key=lambda a: day_sort_key(a.day, a.start_time))
    # Plain values only from here on: a skipped slot rolls the session back and expires ORM rows.
    replay = [(a.period_id, a.teacher_id, a.subject_id) for a in source_assignments]

    timetable, slots = await materialize_timetable(
        db,
        school_id,
        target_class_id,
        target_class_name,
        created_by,
        specs,
        academic_year_id=academic_year_id,
        term_id=term_id,
    )
    if result is None:
        result = CloneResult()
    result.timetable_id = timetable.id

    bindings = [
        SlotBinding(slots[key_by_period[period_id]], teacher_id, subject_id, source_period_id=period_id)
        for period_id, teacher_id, subject_id in replay
        if period_id in key_by_period
    ]
    await assign_many(db, school_id, bindings, result)

    logger.info(
        "Cloned timetable %s into %s for class %s: %d cloned, %d skipped",
        source_timetable_id, result.timetable_id, target_class_id, result.cloned_count, len(result.skipped),
    )
    return result
