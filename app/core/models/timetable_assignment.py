"""Teacher + subject bound to one period. Day and times are copied from the period so the conflict scan needs no join."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Time
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base


class TimetableAssignment(Base):
    __tablename__ = "timetable_assignments"
    __table_args__ = (
        Index("ix_assignments_teacher_day", "school_id", "teacher_id", "day"),
        Index("ix_assignments_class", "school_id", "class_id"),
        Index("ix_assignments_subject", "school_id", "subject_id"),
        {"schema": "school"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timetable_id = Column(
        UUID(as_uuid=True),
        ForeignKey("school.timetables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_id = Column(
        UUID(as_uuid=True),
        ForeignKey("school.periods.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    school_id = Column(String(64), nullable=False)
    # Display names are snapshots; a roster rename does not rewrite them.
    teacher_id = Column(String(64), nullable=False)
    teacher_name = Column(String(255), nullable=False)
    subject_id = Column(String(64), nullable=False)
    subject_name = Column(String(255), nullable=False)
    class_id = Column(String(64), nullable=False)
    class_name = Column(String(255), nullable=False)
    day = Column(String(10), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
