import asyncio
import logging
from typing import List, NamedTuple, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.timetables.grid import SlotRef, day_sort_key
from app.api.v1.timetables.service import get_period_for_update, get_period_with_timetable, slot_ref
from app.core.enums import PeriodType
from app.core.exceptions import (
    CannotAssignBreakSlot,
    InvalidTimeRange,
    ServiceError,
    SlotOccupied,
    TeacherConflict,
)
from app.core.locks import serialized
from app.core.models import TimetableAssignment
from app.core.roster import get_active_subject, get_active_teacher
from app.core.schemas import BulkAssignmentResult, SkippedSlot
from app.core.timeslots import format_time_24, is_valid_range

from .conflicts import find_teacher_conflict
from .schemas import AssignmentCreate, AssignmentResponse, AssignmentUpdate

logger = logging.getLogger(__name__)


class SlotBinding(NamedTuple):
    """A teacher/subject to bind onto a slot during a bulk replay."""

    slot: SlotRef
    teacher_id: str
    subject_id: str
    source_period_id: Optional[UUID] = None


def _to_response(a: TimetableAssignment) -> AssignmentResponse:
    return AssignmentResponse.model_validate(a)


async def _bind(
    db: AsyncSession,
    school_id: str,
    slot: SlotRef,
    teacher_id: str,
    subject_id: str,
    replace: bool,
) -> TimetableAssignment:
    """
    Validate and commit one teacher/subject binding.

    The period is re-read under its own key so the row carries the times the
    period has at commit; check and write then happen under the teacher's day key.
    """
    if slot.period_type == PeriodType.BREAK.value:
        raise CannotAssignBreakSlot(slot.period_name)
    if not is_valid_range(slot.start_time, slot.end_time):
        raise InvalidTimeRange(f"{slot.period_name} on {slot.day} has an empty or inverted time range")
    teacher = await get_active_teacher(db, school_id, teacher_id)
    subject = await get_active_subject(db, school_id, subject_id)
    teacher_name, subject_name = teacher.full_name, subject.name

    async with serialized(db, "period", slot.period_id):
        period = await get_period_for_update(db, slot.period_id)
        day, start, end = period.day, period.start_time, period.end_time
        if not is_valid_range(start, end):
            raise InvalidTimeRange(f"{slot.period_name} on {day} has an empty or inverted time range")

        async with serialized(db, "assignment", school_id, teacher_id, day):
            result = await db.execute(
                select(TimetableAssignment)
                .where(TimetableAssignment.period_id == slot.period_id)
                .execution_options(populate_existing=True)
            )
            obj = result.scalar_one_or_none()
            if obj is not None and not replace:
                raise SlotOccupied(slot.period_id)

            conflict = await find_teacher_conflict(
                db,
                school_id,
                teacher_id,
                day,
                start,
                end,
                exclude_period_id=slot.period_id,
                timetable_id=slot.timetable_id,
            )
            if conflict is not None:
                logger.warning(
                    "Teacher %s already teaches %s on %s %s-%s; rejected for period %s",
                    teacher_id, conflict.class_name, day,
                    format_time_24(conflict.start_time), format_time_24(conflict.end_time), slot.period_id,
                )
                raise TeacherConflict(
                    teacher_id=teacher_id,
                    teacher_name=teacher_name,
                    conflicting_class_id=conflict.class_id,
                    conflicting_class_name=conflict.class_name,
                    day=day,
                    start_time=format_time_24(conflict.start_time),
                    end_time=format_time_24(conflict.end_time),
                )

            if obj is None:
                obj = TimetableAssignment(
                    timetable_id=slot.timetable_id,
                    period_id=slot.period_id,
                    school_id=school_id,
                    class_id=slot.class_id,
                    class_name=slot.class_name,
                    day=day,
                )
                db.add(obj)
            obj.start_time = start
            obj.end_time = end
            obj.teacher_id = teacher_id
            obj.teacher_name = teacher_name
            obj.subject_id = subject_id
            obj.subject_name = subject_name
            try:
                await db.commit()
            except IntegrityError:
                raise SlotOccupied(slot.period_id)
    await db.refresh(obj)
    return obj


async def assign(
    db: AsyncSession,
    school_id: str,
    payload: AssignmentCreate,
) -> AssignmentResponse:
    period, timetable = await get_period_with_timetable(db, school_id, payload.period_id)
    obj = await _bind(db, school_id, slot_ref(period, timetable), payload.teacher_id, payload.subject_id, replace=False)
    logger.info("Assigned teacher %s / subject %s to period %s", obj.teacher_id, obj.subject_id, obj.period_id)
    return _to_response(obj)


async def reassign(
    db: AsyncSession,
    school_id: str,
    period_id: UUID,
    payload: AssignmentUpdate,
) -> AssignmentResponse:
    """Replace the binding of a period in one step. On any failure the previous binding is left as it was."""
    period, timetable = await get_period_with_timetable(db, school_id, period_id)
    obj = await _bind(db, school_id, slot_ref(period, timetable), payload.teacher_id, payload.subject_id, replace=True)
    logger.info("Reassigned period %s to teacher %s / subject %s", obj.period_id, obj.teacher_id, obj.subject_id)
    return _to_response(obj)


async def unassign(db: AsyncSession, school_id: str, period_id: UUID) -> None:
    """Idempotent: clearing an empty slot succeeds."""
    period, _ = await get_period_with_timetable(db, school_id, period_id)
    async with serialized(db, "period", period.id):
        await db.execute(delete(TimetableAssignment).where(TimetableAssignment.period_id == period.id))
        await db.commit()


async def assign_many(
    db: AsyncSession,
    school_id: str,
    bindings: Sequence[SlotBinding],
    result: BulkAssignmentResult,
) -> BulkAssignmentResult:
    """
    Replay bindings one slot at a time. Each slot commits or fails on its own;
    failures are itemized in result.skipped and never undo earlier slots.

    If the task is cancelled part way, slots committed so far stay committed and
    result reflects exactly those.
    """
    try:
        for binding in bindings:
            slot = binding.slot
            try:
                await _bind(db, school_id, slot, binding.teacher_id, binding.subject_id, replace=False)
            except ServiceError as e:
                logger.warning("Skipped %s %s (%s): %s", slot.day, slot.period_name, e.code, e.message)
                result.skipped.append(
                    SkippedSlot(
                        period_id=slot.period_id,
                        source_period_id=binding.source_period_id,
                        day=slot.day,
                        period_name=slot.period_name,
                        reason=e.code,
                        message=e.message,
                    )
                )
                continue
            result.record_committed()
            logger.debug("Bound %s %s to teacher %s", slot.day, slot.period_name, binding.teacher_id)
    except asyncio.CancelledError:
        logger.warning(
            "Bulk assignment for timetable %s aborted after %d committed slot(s)",
            result.timetable_id, result.committed_count,
        )
        raise
    return result


async def list_assignments(
    db: AsyncSession,
    school_id: str,
    teacher_id: Optional[str] = None,
    class_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    timetable_id: Optional[UUID] = None,
) -> List[AssignmentResponse]:
    stmt = select(TimetableAssignment).where(TimetableAssignment.school_id == school_id)
    if teacher_id is not None:
        stmt = stmt.where(TimetableAssignment.teacher_id == teacher_id)
    if class_id is not None:
        stmt = stmt.where(TimetableAssignment.class_id == class_id)
    if subject_id is not None:
        stmt = stmt.where(TimetableAssignment.subject_id == subject_id)
    if timetable_id is not None:
        stmt = stmt.where(TimetableAssignment.timetable_id == timetable_id)
    result = await db.execute(stmt)
    rows = sorted(result.scalars().all(), key=lambda a: (a.class_name, day_sort_key(a.day, a.start_time)))
    return [_to_response(a) for a in rows]


async def list_assignments_by_teacher(db: AsyncSession, school_id: str, teacher_id: str) -> List[AssignmentResponse]:
    return await list_assignments(db, school_id, teacher_id=teacher_id)


async def list_assignments_by_class(db: AsyncSession, school_id: str, class_id: str) -> List[AssignmentResponse]:
    return await list_assignments(db, school_id, class_id=class_id)


async def list_assignments_by_subject(db: AsyncSession, school_id: str, subject_id: str) -> List[AssignmentResponse]:
    return await list_assignments(db, school_id, subject_id=subject_id)


async def list_assignments_by_school(db: AsyncSession, school_id: str) -> List[AssignmentResponse]:
    return await list_assignments(db, school_id)


async def list_assignments_by_timetable(
    db: AsyncSession, school_id: str, timetable_id: UUID
) -> List[AssignmentResponse]:
    return await list_assignments(db, school_id, timetable_id=timetable_id)
