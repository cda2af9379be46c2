"""Lookups against the school rosters (classes, teachers, subjects) owned by the surrounding platform."""

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidRosterReference
from app.core.models import SchoolClass, SchoolSubject, Teacher


async def get_active_class(db: AsyncSession, school_id: str, class_id: str) -> SchoolClass:
    cl = await db.get(SchoolClass, class_id)
    if not cl or cl.school_id != school_id or not cl.is_active:
        raise InvalidRosterReference("class", class_id)
    return cl


async def get_active_teacher(db: AsyncSession, school_id: str, teacher_id: str) -> Teacher:
    teacher = await db.get(Teacher, teacher_id)
    if not teacher or teacher.school_id != school_id or not teacher.is_active:
        raise InvalidRosterReference("teacher", teacher_id)
    return teacher


async def get_active_subject(db: AsyncSession, school_id: str, subject_id: str) -> SchoolSubject:
    subj = await db.get(SchoolSubject, subject_id)
    if not subj or subj.school_id != school_id or not subj.is_active:
        raise InvalidRosterReference("subject", subject_id)
    return subj
