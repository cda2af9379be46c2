import logging
from collections import defaultdict
from contextlib import AsyncExitStack
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.timetable_assignments.conflicts import find_teacher_conflict
from app.api.v1.timetable_assignments.schemas import AssignmentResponse
from app.core.enums import PeriodType, TimetableStatus
from app.core.exceptions import (
    ConflictOnTimeChange,
    DuplicateTimetable,
    InvalidSlotTemplate,
    InvalidTimeRange,
    NotFound,
    TeacherConflict,
)
from app.core.locks import serialized
from app.core.models import Period, Timetable, TimetableAssignment
from app.core.roster import get_active_class, get_active_subject
from app.core.timeslots import duration_minutes, format_time_24, is_valid_range

from .grid import (
    PeriodSpec,
    SlotRef,
    check_symmetry,
    day_sort_key,
    default_slot_specs,
    expand_for_days,
    validate_grid,
)
from .schemas import (
    BulkDeleteResponse,
    PeriodCreate,
    PeriodResponse,
    PeriodTimeUpdate,
    SymmetryReport,
    TimetableCreate,
    TimetableDetailResponse,
    TimetableResponse,
    TimetableStatusUpdate,
)

logger = logging.getLogger(__name__)


def _to_response(t: Timetable) -> TimetableResponse:
    return TimetableResponse(
        id=t.id,
        school_id=t.school_id,
        class_id=t.class_id,
        class_name=t.class_name,
        academic_year_id=t.academic_year_id,
        term_id=t.term_id,
        status=t.status,
        created_by=t.created_by,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def _period_to_response(p: Period) -> PeriodResponse:
    return PeriodResponse.model_validate(p)


def slot_ref(period: Period, timetable: Timetable) -> SlotRef:
    return SlotRef(
        period_id=period.id,
        timetable_id=timetable.id,
        class_id=timetable.class_id,
        class_name=timetable.class_name,
        day=period.day,
        period_name=period.period_name,
        period_type=period.period_type,
        start_time=period.start_time,
        end_time=period.end_time,
    )


async def get_timetable_row(db: AsyncSession, school_id: str, timetable_id: UUID) -> Timetable:
    result = await db.execute(
        select(Timetable).where(
            Timetable.id == timetable_id,
            Timetable.school_id == school_id,
        )
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFound("Timetable", timetable_id)
    return obj


async def get_period_with_timetable(
    db: AsyncSession,
    school_id: str,
    period_id: UUID,
) -> Tuple[Period, Timetable]:
    result = await db.execute(
        select(Period, Timetable)
        .join(Timetable, Timetable.id == Period.timetable_id)
        .where(Period.id == period_id, Timetable.school_id == school_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound("Period", period_id)
    return row[0], row[1]


async def get_period_for_update(db: AsyncSession, period_id: UUID) -> Period:
    """Current row of a period, re-read from the database and row-locked on PostgreSQL."""
    result = await db.execute(
        select(Period)
        .where(Period.id == period_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    period = result.scalar_one_or_none()
    if period is None:
        raise NotFound("Period", period_id)
    return period


async def list_periods(db: AsyncSession, timetable_id: UUID) -> List[Period]:
    result = await db.execute(select(Period).where(Period.timetable_id == timetable_id))
    return sorted(result.scalars().all(), key=lambda p: day_sort_key(p.day, p.start_time))


async def _ensure_no_active_timetable(
    db: AsyncSession,
    school_id: str,
    class_id: str,
    class_name: Optional[str] = None,
    exclude_id: Optional[UUID] = None,
) -> None:
    stmt = select(Timetable.id).where(
        Timetable.school_id == school_id,
        Timetable.class_id == class_id,
        Timetable.status == TimetableStatus.ACTIVE.value,
    )
    if exclude_id is not None:
        stmt = stmt.where(Timetable.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    if result.scalar_one_or_none() is not None:
        raise DuplicateTimetable(class_id, class_name)


async def materialize_timetable(
    db: AsyncSession,
    school_id: str,
    class_id: str,
    class_name: str,
    created_by: str,
    specs: Sequence[PeriodSpec],
    academic_year_id: Optional[str] = None,
    term_id: Optional[str] = None,
) -> Tuple[Timetable, Dict[Tuple[str, str], SlotRef]]:
    """
    Create an active timetable and its period rows in one commit.

    Returns the timetable and a map (day, period_name) -> SlotRef for the new periods,
    which bulk drivers use to replay assignments.
    """
    async with serialized(db, "timetable", school_id, class_id):
        await _ensure_no_active_timetable(db, school_id, class_id, class_name)
        timetable = Timetable(
            school_id=school_id,
            class_id=class_id,
            class_name=class_name,
            academic_year_id=academic_year_id,
            term_id=term_id,
            status=TimetableStatus.ACTIVE.value,
            created_by=created_by,
        )
        db.add(timetable)
        periods: List[Period] = []
        try:
            await db.flush()
            for spec in specs:
                period = Period(
                    timetable_id=timetable.id,
                    day=spec.day,
                    period_name=spec.period_name.strip(),
                    start_time=spec.start_time,
                    end_time=spec.end_time,
                    period_type=spec.period_type,
                    duration=duration_minutes(spec.start_time, spec.end_time),
                    required_subject_id=spec.required_subject_id,
                    required_subject_name=spec.required_subject_name,
                )
                db.add(period)
                periods.append(period)
            await db.flush()
            refs = {(p.day, p.period_name): slot_ref(p, timetable) for p in periods}
            await db.commit()
        except IntegrityError:
            raise DuplicateTimetable(class_id, class_name)

    logger.info(
        "Created timetable %s for class %s (%s) with %d periods",
        timetable.id, class_id, class_name, len(periods),
    )
    return timetable, refs


async def create_timetable(
    db: AsyncSession,
    school_id: str,
    created_by: str,
    payload: TimetableCreate,
) -> TimetableDetailResponse:
    cl = await get_active_class(db, school_id, payload.class_id)
    days = [d.value for d in payload.days]

    if payload.slots is None:
        day_template = default_slot_specs(days[0] if days else "monday")
    else:
        day_template = []
        for slot in payload.slots:
            subject_id, subject_name = slot.required_subject_id, slot.required_subject_name
            if subject_id and slot.period_type == PeriodType.CLASS:
                subject_name = (await get_active_subject(db, school_id, subject_id)).name
            day_template.append(
                PeriodSpec(
                    day=days[0] if days else "monday",
                    period_name=slot.period_name,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    period_type=slot.period_type.value,
                    required_subject_id=subject_id,
                    required_subject_name=subject_name,
                )
            )
    specs = expand_for_days(days, day_template)
    validate_grid(days, specs)

    timetable, _ = await materialize_timetable(
        db,
        school_id,
        cl.id,
        cl.name,
        created_by,
        specs,
        academic_year_id=payload.academic_year_id,
        term_id=payload.term_id,
    )
    return await get_timetable(db, school_id, timetable.id)


async def list_timetables(
    db: AsyncSession,
    school_id: str,
    class_id: Optional[str] = None,
    status: Optional[TimetableStatus] = None,
) -> List[TimetableResponse]:
    stmt = select(Timetable).where(Timetable.school_id == school_id)
    if class_id is not None:
        stmt = stmt.where(Timetable.class_id == class_id)
    if status is not None:
        stmt = stmt.where(Timetable.status == status.value)
    stmt = stmt.order_by(Timetable.class_name, Timetable.created_at)
    result = await db.execute(stmt)
    return [_to_response(t) for t in result.scalars().all()]


async def list_timetables_by_teacher(
    db: AsyncSession,
    school_id: str,
    teacher_id: str,
) -> List[TimetableResponse]:
    taught = (
        select(TimetableAssignment.timetable_id)
        .where(
            TimetableAssignment.school_id == school_id,
            TimetableAssignment.teacher_id == teacher_id,
        )
        .distinct()
    )
    result = await db.execute(
        select(Timetable).where(Timetable.id.in_(taught)).order_by(Timetable.class_name)
    )
    return [_to_response(t) for t in result.scalars().all()]


def symmetry_report(periods: Iterable[Period]) -> SymmetryReport:
    names_by_day: Dict[str, List[str]] = defaultdict(list)
    for p in periods:
        names_by_day[p.day].append(p.period_name)
    sym = check_symmetry(names_by_day)
    return SymmetryReport(
        is_symmetric=sym.is_symmetric,
        canonical_day=sym.canonical_day,
        missing=sym.missing,
        extra=sym.extra,
    )


async def get_timetable(
    db: AsyncSession,
    school_id: str,
    timetable_id: UUID,
) -> TimetableDetailResponse:
    timetable = await get_timetable_row(db, school_id, timetable_id)
    periods = await list_periods(db, timetable.id)
    result = await db.execute(
        select(TimetableAssignment).where(TimetableAssignment.timetable_id == timetable.id)
    )
    assignments = sorted(result.scalars().all(), key=lambda a: day_sort_key(a.day, a.start_time))

    periods_by_day: Dict[str, List[PeriodResponse]] = {}
    for p in periods:
        periods_by_day.setdefault(p.day, []).append(_period_to_response(p))

    return TimetableDetailResponse(
        timetable=_to_response(timetable),
        periods_by_day=periods_by_day,
        assignments=[AssignmentResponse.model_validate(a) for a in assignments],
        symmetry=symmetry_report(periods),
    )


async def _ensure_bookings_free(
    db: AsyncSession,
    school_id: str,
    assignments: Sequence[TimetableAssignment],
) -> None:
    """Raise TeacherConflict for the first binding whose teacher is now booked in an active timetable."""
    for a in sorted(assignments, key=lambda a: day_sort_key(a.day, a.start_time)):
        conflict = await find_teacher_conflict(
            db, school_id, a.teacher_id, a.day, a.start_time, a.end_time, exclude_period_id=a.period_id
        )
        if conflict is None:
            continue
        logger.warning(
            "Cannot reactivate timetable %s: teacher %s busy in %s %s %s-%s",
            a.timetable_id, a.teacher_id, conflict.class_name, a.day,
            format_time_24(conflict.start_time), format_time_24(conflict.end_time),
        )
        raise TeacherConflict(
            teacher_id=a.teacher_id,
            teacher_name=a.teacher_name,
            conflicting_class_id=conflict.class_id,
            conflicting_class_name=conflict.class_name,
            day=a.day,
            start_time=format_time_24(conflict.start_time),
            end_time=format_time_24(conflict.end_time),
        )


async def update_timetable_status(
    db: AsyncSession,
    school_id: str,
    timetable_id: UUID,
    payload: TimetableStatusUpdate,
) -> TimetableResponse:
    timetable = await get_timetable_row(db, school_id, timetable_id)
    if payload.status.value == timetable.status:
        return _to_response(timetable)

    if payload.status == TimetableStatus.ACTIVE:
        class_id, class_name = timetable.class_id, timetable.class_name
        async with serialized(db, "timetable", school_id, class_id), AsyncExitStack() as stack:
            await _ensure_no_active_timetable(db, school_id, class_id, class_name, exclude_id=timetable.id)
            bindings = (
                select(TimetableAssignment)
                .where(TimetableAssignment.timetable_id == timetable.id)
                .execution_options(populate_existing=True)
            )
            assignments = (await db.execute(bindings)).scalars().all()
            # Teacher keys are taken in sorted order.
            for teacher_id, day in sorted({(a.teacher_id, a.day) for a in assignments}):
                await stack.enter_async_context(serialized(db, "assignment", school_id, teacher_id, day))
            # times as of now, with the keys held
            assignments = (await db.execute(bindings)).scalars().all()
            await _ensure_bookings_free(db, school_id, assignments)
            timetable.status = TimetableStatus.ACTIVE.value
            try:
                await db.commit()
            except IntegrityError:
                raise DuplicateTimetable(class_id, class_name)
    else:
        timetable.status = TimetableStatus.INACTIVE.value
        await db.commit()
    await db.refresh(timetable)
    logger.info("Timetable %s is now %s", timetable.id, timetable.status)
    return _to_response(timetable)


async def _delete_timetable_rows(db: AsyncSession, timetable_ids: Sequence[UUID]) -> None:
    """Assignments, then periods, then the timetables themselves."""
    await db.execute(delete(TimetableAssignment).where(TimetableAssignment.timetable_id.in_(timetable_ids)))
    await db.execute(delete(Period).where(Period.timetable_id.in_(timetable_ids)))
    await db.execute(delete(Timetable).where(Timetable.id.in_(timetable_ids)))


async def delete_timetable(
    db: AsyncSession,
    school_id: str,
    timetable_id: UUID,
) -> None:
    timetable = await get_timetable_row(db, school_id, timetable_id)
    class_id = timetable.class_id
    await _delete_timetable_rows(db, [timetable.id])
    await db.commit()
    logger.info("Deleted timetable %s (class %s)", timetable_id, class_id)


async def bulk_delete_timetables(
    db: AsyncSession,
    school_id: str,
    timetable_ids: Sequence[UUID],
) -> BulkDeleteResponse:
    wanted = list(dict.fromkeys(timetable_ids))
    result = await db.execute(
        select(Timetable.id).where(Timetable.id.in_(wanted), Timetable.school_id == school_id)
    )
    found = set(result.scalars().all())
    if found:
        await _delete_timetable_rows(db, list(found))
        await db.commit()
    logger.info("Bulk deleted %d timetable(s) for school %s", len(found), school_id)
    return BulkDeleteResponse(deleted=len(found), not_found=[t for t in wanted if t not in found])


async def delete_timetables_for_class(db: AsyncSession, school_id: str, class_id: str) -> int:
    """Cascade used when the platform removes a class from its roster."""
    result = await db.execute(
        select(Timetable.id).where(Timetable.school_id == school_id, Timetable.class_id == class_id)
    )
    ids = list(result.scalars().all())
    if ids:
        await _delete_timetable_rows(db, ids)
        await db.commit()
    return len(ids)


async def get_assignment_for_period(db: AsyncSession, period_id: UUID) -> Optional[TimetableAssignment]:
    result = await db.execute(
        select(TimetableAssignment)
        .where(TimetableAssignment.period_id == period_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_period_time(
    db: AsyncSession,
    school_id: str,
    period_id: UUID,
    payload: PeriodTimeUpdate,
) -> PeriodResponse:
    start, end = payload.start_time, payload.end_time
    if not is_valid_range(start, end):
        raise InvalidTimeRange()
    period, _ = await get_period_with_timetable(db, school_id, period_id)

    # Every writer of this period's binding holds the period key.
    async with serialized(db, "period", period.id):
        period = await get_period_for_update(db, period.id)
        assignment = await get_assignment_for_period(db, period.id)

        if assignment is None:
            period.start_time = start
            period.end_time = end
            period.duration = duration_minutes(start, end)
            await db.commit()
            return _period_to_response(period)

        teacher_id, teacher_name, day = assignment.teacher_id, assignment.teacher_name, period.day
        async with serialized(db, "assignment", school_id, teacher_id, day):
            conflict = await find_teacher_conflict(
                db, school_id, teacher_id, day, start, end,
                exclude_period_id=period.id, timetable_id=period.timetable_id,
            )
            if conflict is not None:
                logger.warning(
                    "Rejected time change of period %s: teacher %s busy in %s %s %s-%s",
                    period_id, teacher_id, conflict.class_name, day,
                    format_time_24(conflict.start_time), format_time_24(conflict.end_time),
                )
                raise ConflictOnTimeChange(
                    teacher_id=teacher_id,
                    teacher_name=teacher_name,
                    conflicting_class_id=conflict.class_id,
                    conflicting_class_name=conflict.class_name,
                    day=day,
                    start_time=format_time_24(conflict.start_time),
                    end_time=format_time_24(conflict.end_time),
                )
            period.start_time = start
            period.end_time = end
            period.duration = duration_minutes(start, end)
            assignment.start_time = start
            assignment.end_time = end
            await db.commit()
    return _period_to_response(period)


async def add_period(
    db: AsyncSession,
    school_id: str,
    timetable_id: UUID,
    payload: PeriodCreate,
) -> PeriodResponse:
    timetable = await get_timetable_row(db, school_id, timetable_id)
    subject_id, subject_name = payload.required_subject_id, payload.required_subject_name
    if subject_id and payload.period_type == PeriodType.CLASS:
        subject_name = (await get_active_subject(db, school_id, subject_id)).name
    spec = PeriodSpec(
        day=payload.day.value,
        period_name=payload.period_name,
        start_time=payload.start_time,
        end_time=payload.end_time,
        period_type=payload.period_type.value,
        required_subject_id=subject_id,
        required_subject_name=subject_name,
    )
    validate_grid([spec.day], [spec])

    existing = await db.execute(
        select(Period.id).where(
            Period.timetable_id == timetable.id,
            Period.day == spec.day,
            Period.period_name == spec.period_name.strip(),
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise InvalidSlotTemplate(f"Slot name '{spec.period_name.strip()}' is repeated on {spec.day}")

    period = Period(
        timetable_id=timetable.id,
        day=spec.day,
        period_name=spec.period_name.strip(),
        start_time=spec.start_time,
        end_time=spec.end_time,
        period_type=spec.period_type,
        duration=duration_minutes(spec.start_time, spec.end_time),
        required_subject_id=spec.required_subject_id,
        required_subject_name=spec.required_subject_name,
    )
    db.add(period)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidSlotTemplate(f"Slot name '{spec.period_name.strip()}' is repeated on {spec.day}")
    await db.refresh(period)
    return _period_to_response(period)


async def delete_period(db: AsyncSession, school_id: str, period_id: UUID) -> None:
    """Remove one day's row of a slot and its assignment; the same slot on other days stays."""
    period, _ = await get_period_with_timetable(db, school_id, period_id)
    async with serialized(db, "period", period.id):
        await db.execute(delete(TimetableAssignment).where(TimetableAssignment.period_id == period.id))
        await db.execute(delete(Period).where(Period.id == period.id))
        await db.commit()
