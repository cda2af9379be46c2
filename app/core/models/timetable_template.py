"""Saved period grid + subject requirements of a timetable, reusable for other classes. Immutable once created."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base


class TimetableTemplate(Base):
    __tablename__ = "timetable_templates"
    __table_args__ = (
        Index("ix_timetable_templates_school", "school_id"),
        {"schema": "school"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(64), nullable=False)
    template_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Informational only; the source timetable may be deleted later.
    source_timetable_id = Column(String(64), nullable=True)
    includes_teachers = Column(Boolean, nullable=False, default=False)
    # [{day, period_name, start_time, end_time, period_type, subject_id, subject_name, teacher_id?, teacher_name?}]
    slots = Column(JSON, nullable=False)
    created_by = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
