from datetime import datetime, time
from typing import Any, Dict, List
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from app.core.enums import ConflictSeverity, ConflictType
from app.core.timeslots import format_time_24


class AssignmentCreate(BaseModel):
    period_id: UUID
    teacher_id: str = Field(..., min_length=1, description="Roster teacher id")
    subject_id: str = Field(..., min_length=1, description="Roster subject id")


class AssignmentUpdate(BaseModel):
    teacher_id: str = Field(..., min_length=1)
    subject_id: str = Field(..., min_length=1)


class AssignmentResponse(BaseModel):
    id: UUID
    timetable_id: UUID
    period_id: UUID
    school_id: str
    teacher_id: str
    teacher_name: str
    subject_id: str
    subject_name: str
    class_id: str
    class_name: str
    day: str
    start_time: time
    end_time: time
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
        return format_time_24(t)


class ConflictResponse(BaseModel):
    type: ConflictType
    severity: ConflictSeverity
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ConflictReport(BaseModel):
    timetable_id: UUID
    conflicts: List[ConflictResponse]
    has_errors: bool

