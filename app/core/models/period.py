"""One named time slot on one weekday of a timetable."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Period(Base):
    __tablename__ = "periods"
    __table_args__ = (
        UniqueConstraint("timetable_id", "day", "period_name", name="uq_period_timetable_day_name"),
        {"schema": "school"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timetable_id = Column(
        UUID(as_uuid=True),
        ForeignKey("school.timetables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day = Column(String(10), nullable=False)  # monday .. friday
    period_name = Column(String(100), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    period_type = Column(String(10), nullable=False, default="class")  # class | break
    duration = Column(Integer, nullable=False)  # minutes
    # Subject the slot is meant for; set when the grid comes from a template or clone.
    required_subject_id = Column(String(64), nullable=True)
    required_subject_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    timetable = relationship("Timetable", back_populates="periods")
