from enum import Enum


class Weekday(str, Enum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"


WEEKDAYS = [d.value for d in Weekday]


class PeriodType(str, Enum):
    CLASS = "class"
    BREAK = "break"


class TimetableStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ConflictType(str, Enum):
    TEACHER_DOUBLE_BOOKING = "teacher_double_booking"
    SUBJECT_CLUSTERING = "subject_clustering"


class ConflictSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
