"""School-scoped classes (e.g. 6A, 10B) as published by the school roster. Model named SchoolClass to avoid Python 'class' keyword."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, String

from app.db.session import Base


class SchoolClass(Base):
    """Read-only roster row. Owned by the surrounding platform; timetables only copy its name."""

    __tablename__ = "classes"
    __table_args__ = (
        Index("ix_classes_school", "school_id"),
        {"schema": "core"},
    )

    id = Column(String(64), primary_key=True)
    school_id = Column(String(64), nullable=False)
    name = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
