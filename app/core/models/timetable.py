"""Weekly timetable of one class. Owns its periods and assignments; at most one active per (school, class)."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Index, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Timetable(Base):
    __tablename__ = "timetables"
    __table_args__ = (
        Index(
            "uq_timetable_active_class",
            "school_id",
            "class_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_timetables_school", "school_id"),
        {"schema": "school"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(64), nullable=False)
    class_id = Column(String(64), nullable=False)
    class_name = Column(String(255), nullable=False)  # snapshot of roster name at creation
    academic_year_id = Column(String(64), nullable=True)
    term_id = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active | inactive
    created_by = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    periods = relationship("Period", back_populates="timetable", passive_deletes=True)
