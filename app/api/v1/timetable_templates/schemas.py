from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import PeriodType


class TemplateCreate(BaseModel):
    timetable_id: UUID
    template_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    include_teachers: Optional[bool] = Field(
        None,
        description="Keep teacher bindings in the template; defaults to the school-wide policy (off)",
    )


class TemplateApply(BaseModel):
    class_id: str = Field(..., min_length=1, description="Class the new timetable is for")


class TemplateSlot(BaseModel):
    day: str
    period_name: str
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    period_type: PeriodType
    subject_id: Optional[str] = None
    subject_name: Optional[str] = None
    teacher_id: Optional[str] = None
    teacher_name: Optional[str] = None


class TemplateResponse(BaseModel):
    id: UUID
    school_id: str
    template_name: str
    description: Optional[str] = None
    source_timetable_id: Optional[str] = None
    includes_teachers: bool
    slots: List[TemplateSlot]
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True
