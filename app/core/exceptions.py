from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    @property
    def detail(self) -> Dict[str, Any]:
        """Body for HTTPException.detail: code, message and any structured context."""
        return {"code": self.code, "message": self.message, **self.details}


class NotFound(ServiceError):
    code = "NotFound"

    def __init__(self, resource: str, resource_id: Any) -> None:
        super().__init__(
            f"{resource} not found",
            status.HTTP_404_NOT_FOUND,
            {"resource": resource, "id": str(resource_id)},
        )


class InvalidRosterReference(ServiceError):
    """Class, teacher or subject unknown to the school roster (or inactive)."""

    code = "InvalidRosterReference"

    def __init__(self, kind: str, ref_id: str) -> None:
        super().__init__(f"Invalid {kind}", status.HTTP_400_BAD_REQUEST, {"kind": kind, "id": ref_id})


class DuplicateTimetable(ServiceError):
    code = "DuplicateTimetable"

    def __init__(self, class_id: str, class_name: Optional[str] = None) -> None:
        label = class_name or class_id
        super().__init__(
            f"Weekly timetable for {label} already exists",
            status.HTTP_409_CONFLICT,
            {"class_id": class_id},
        )


class InvalidSlotTemplate(ServiceError):
    code = "InvalidSlotTemplate"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InvalidTimeRange(ServiceError):
    code = "InvalidTimeRange"

    def __init__(self, message: str = "end_time must be after start_time") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class CannotAssignBreakSlot(ServiceError):
    code = "CannotAssignBreakSlot"

    def __init__(self, period_name: str) -> None:
        super().__init__(f"{period_name} is a break and cannot carry an assignment", status.HTTP_400_BAD_REQUEST)


class SlotOccupied(ServiceError):
    code = "SlotOccupied"

    def __init__(self, period_id: Any) -> None:
        super().__init__(
            "Period already has an assignment; reassign it instead",
            status.HTTP_409_CONFLICT,
            {"period_id": str(period_id)},
        )


class TeacherConflict(ServiceError):
    """Teacher already busy elsewhere in the school at an overlapping time on the same day."""

    code = "TeacherConflict"

    def __init__(
        self,
        teacher_id: str,
        teacher_name: Optional[str],
        conflicting_class_id: str,
        conflicting_class_name: str,
        day: str,
        start_time: str,
        end_time: str,
    ) -> None:
        super().__init__(
            f"Teacher {teacher_name or teacher_id} is already assigned to {conflicting_class_name} "
            f"during this time on {day} ({start_time}-{end_time})",
            status.HTTP_409_CONFLICT,
            {
                "teacher_id": teacher_id,
                "teacher_name": teacher_name,
                "conflicting_class_id": conflicting_class_id,
                "conflicting_class_name": conflicting_class_name,
                "day": day,
                "start_time": start_time,
                "end_time": end_time,
            },
        )


class ConflictOnTimeChange(TeacherConflict):
    """Raised when moving an assigned period would double-book its teacher."""

    code = "ConflictOnTimeChange"


class EmptyTimetable(ServiceError):
    code = "EmptyTimetable"

    def __init__(self, timetable_id: Any) -> None:
        super().__init__(
            "Timetable has no class periods to capture",
            status.HTTP_400_BAD_REQUEST,
            {"timetable_id": str(timetable_id)},
        )
