"""School subject roster (e.g. Mathematics, Science). Read-only for the timetable service."""

from sqlalchemy import Boolean, Column, Index, String

from app.db.session import Base


class SchoolSubject(Base):
    __tablename__ = "subjects"
    __table_args__ = (
        Index("ix_subjects_school", "school_id"),
        {"schema": "core"},
    )

    id = Column(String(64), primary_key=True)
    school_id = Column(String(64), nullable=False)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
