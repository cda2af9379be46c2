from datetime import datetime, time
from typing import Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.api.v1.timetable_assignments.schemas import AssignmentResponse
from app.core.enums import WEEKDAYS, PeriodType, TimetableStatus, Weekday
from app.core.timeslots import format_time_24, parse_time_24


class SlotTemplateItem(BaseModel):
    """One slot of the day structure repeated on every day of a new timetable."""

    period_name: str = Field(..., min_length=1, max_length=100)
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:10")
    period_type: PeriodType = PeriodType.CLASS
    required_subject_id: Optional[str] = Field(None, description="Subject the slot is planned for (class slots only)")
    required_subject_name: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return parse_time_24(v)


class TimetableCreate(BaseModel):
    class_id: str = Field(..., min_length=1)
    academic_year_id: Optional[str] = None
    term_id: Optional[str] = None
    days: List[Weekday] = Field(default_factory=lambda: [Weekday(d) for d in WEEKDAYS])
    slots: Optional[List[SlotTemplateItem]] = Field(
        None, description="Day structure; the standard school day is used when omitted"
    )


class TimetableStatusUpdate(BaseModel):
    status: TimetableStatus


class PeriodTimeUpdate(BaseModel):
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 09:45")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return parse_time_24(v)


class PeriodCreate(SlotTemplateItem):
    day: Weekday


class BulkDeleteRequest(BaseModel):
    timetable_ids: List[UUID] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted: int
    not_found: List[UUID]


class CloneRequest(BaseModel):
    class_id: str = Field(..., min_length=1, description="Target class; must not have an active timetable")
    include_assignments: bool = True


class TimetableResponse(BaseModel):
    id: UUID
    school_id: str
    class_id: str
    class_name: str
    academic_year_id: Optional[str] = None
    term_id: Optional[str] = None
    status: TimetableStatus
    created_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PeriodResponse(BaseModel):
    id: UUID
    timetable_id: UUID
    day: str
    period_name: str
    start_time: time
    end_time: time
    period_type: PeriodType
    duration: int
    required_subject_id: Optional[str] = None
    required_subject_name: Optional[str] = None

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        """Output as 24-hour string HH:MM (e.g. 09:00, 09:45)."""
        return format_time_24(t)


class SymmetryReport(BaseModel):
    is_symmetric: bool
    canonical_day: Optional[str] = None
    missing: Dict[str, List[str]] = Field(default_factory=dict, description="Slot names absent on a day")
    extra: Dict[str, List[str]] = Field(default_factory=dict, description="Slot names only present on a day")


class TimetableDetailResponse(BaseModel):
    timetable: TimetableResponse
    periods_by_day: Dict[str, List[PeriodResponse]]
    assignments: List[AssignmentResponse]
    symmetry: SymmetryReport
