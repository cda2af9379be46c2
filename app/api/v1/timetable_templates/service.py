import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.timetable_assignments.service import SlotBinding, assign_many
from app.api.v1.timetables.grid import PeriodSpec, validate_grid
from app.api.v1.timetables.service import get_timetable_row, list_periods, materialize_timetable
from app.core.config import settings
from app.core.enums import WEEKDAYS, PeriodType
from app.core.exceptions import EmptyTimetable, NotFound
from app.core.models import TimetableAssignment, TimetableTemplate
from app.core.roster import get_active_class
from app.core.schemas import ApplyTemplateResult
from app.core.timeslots import format_time_24, parse_time_24

from .schemas import TemplateApply, TemplateCreate, TemplateResponse, TemplateSlot

logger = logging.getLogger(__name__)


def _to_response(t: TimetableTemplate) -> TemplateResponse:
    return TemplateResponse(
        id=t.id,
        school_id=t.school_id,
        template_name=t.template_name,
        description=t.description,
        source_timetable_id=t.source_timetable_id,
        includes_teachers=t.includes_teachers,
        slots=[TemplateSlot(**s) for s in t.slots],
        created_by=t.created_by,
        created_at=t.created_at,
    )


async def _get_template_row(db: AsyncSession, school_id: str, template_id: UUID) -> TimetableTemplate:
    result = await db.execute(
        select(TimetableTemplate).where(
            TimetableTemplate.id == template_id,
            TimetableTemplate.school_id == school_id,
        )
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFound("Template", template_id)
    return obj


async def save_as_template(
    db: AsyncSession,
    school_id: str,
    created_by: str,
    payload: TemplateCreate,
) -> TemplateResponse:
    """
    Snapshot a timetable's grid and, per class period, the subject it is bound to.

    Teacher ids are dropped unless include_teachers (or the TEMPLATE_RETAIN_TEACHERS
    policy when the caller does not say) asks to keep them.
    """
    timetable = await get_timetable_row(db, school_id, payload.timetable_id)
    periods = await list_periods(db, timetable.id)
    if not any(p.period_type == PeriodType.CLASS.value for p in periods):
        raise EmptyTimetable(timetable.id)

    include_teachers = (
        payload.include_teachers if payload.include_teachers is not None else settings.template_retain_teachers
    )
    result = await db.execute(
        select(TimetableAssignment).where(TimetableAssignment.timetable_id == timetable.id)
    )
    by_period: Dict[UUID, TimetableAssignment] = {a.period_id: a for a in result.scalars().all()}

    slots: List[dict] = []
    for p in periods:
        slot = TemplateSlot(
            day=p.day,
            period_name=p.period_name,
            start_time=format_time_24(p.start_time),
            end_time=format_time_24(p.end_time),
            period_type=p.period_type,
        )
        if p.period_type == PeriodType.CLASS.value:
            bound = by_period.get(p.id)
            if bound is not None:
                slot.subject_id, slot.subject_name = bound.subject_id, bound.subject_name
                if include_teachers:
                    slot.teacher_id, slot.teacher_name = bound.teacher_id, bound.teacher_name
            else:
                slot.subject_id, slot.subject_name = p.required_subject_id, p.required_subject_name
        slots.append(slot.model_dump(mode="json", exclude_none=True))

    obj = TimetableTemplate(
        school_id=school_id,
        template_name=payload.template_name.strip(),
        description=payload.description,
        source_timetable_id=str(timetable.id),
        includes_teachers=include_teachers,
        slots=slots,
        created_by=created_by,
    )
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    logger.info(
        "Saved template %s (%s) from timetable %s, teachers %s",
        obj.id, obj.template_name, timetable.id, "kept" if include_teachers else "stripped",
    )
    return _to_response(obj)


async def list_templates(db: AsyncSession, school_id: str) -> List[TemplateResponse]:
    result = await db.execute(
        select(TimetableTemplate)
        .where(TimetableTemplate.school_id == school_id)
        .order_by(TimetableTemplate.template_name, TimetableTemplate.created_at)
    )
    return [_to_response(t) for t in result.scalars().all()]


async def get_template(db: AsyncSession, school_id: str, template_id: UUID) -> TemplateResponse:
    return _to_response(await _get_template_row(db, school_id, template_id))


async def delete_template(db: AsyncSession, school_id: str, template_id: UUID) -> None:
    obj = await _get_template_row(db, school_id, template_id)
    await db.delete(obj)
    await db.commit()


async def apply_template(
    db: AsyncSession,
    school_id: str,
    template_id: UUID,
    payload: TemplateApply,
    created_by: str,
    result: Optional[ApplyTemplateResult] = None,
) -> ApplyTemplateResult:
    """
    Create a timetable for payload.class_id from the template's grid.

    Class periods get the template's subject as their requirement and stay unassigned.
    Only a template saved with teacher bindings replays them, slot by slot, like a clone.
    """
    template = await _get_template_row(db, school_id, template_id)
    target = await get_active_class(db, school_id, payload.class_id)
    slots = [TemplateSlot(**s) for s in template.slots]
    includes_teachers = template.includes_teachers

    specs = [
        PeriodSpec(
            day=s.day,
            period_name=s.period_name,
            start_time=parse_time_24(s.start_time),
            end_time=parse_time_24(s.end_time),
            period_type=s.period_type.value,
            required_subject_id=s.subject_id if s.period_type == PeriodType.CLASS else None,
            required_subject_name=s.subject_name if s.period_type == PeriodType.CLASS else None,
        )
        for s in slots
    ]
    validate_grid([d for d in WEEKDAYS if any(s.day == d for s in specs)], specs)

    timetable, refs = await materialize_timetable(db, school_id, target.id, target.name, created_by, specs)
    if result is None:
        result = ApplyTemplateResult()
    result.timetable_id = timetable.id

    if includes_teachers:
        bindings = [
            SlotBinding(refs[(s.day, s.period_name)], s.teacher_id, s.subject_id)
            for s in slots
            if s.teacher_id and s.subject_id and (s.day, s.period_name) in refs
        ]
        await assign_many(db, school_id, bindings, result)

    logger.info(
        "Applied template %s to class %s as timetable %s (%d assigned, %d skipped)",
        template_id, payload.class_id, result.timetable_id, result.assigned_count, len(result.skipped),
    )
    return result
