"""Teaching staff roster. Read-only for the timetable service."""

from sqlalchemy import Boolean, Column, Index, String

from app.db.session import Base


class Teacher(Base):
    __tablename__ = "teachers"
    __table_args__ = (
        Index("ix_teachers_school", "school_id"),
        {"schema": "core"},
    )

    id = Column(String(64), primary_key=True)
    school_id = Column(String(64), nullable=False)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
