from app.core.models.class_model import SchoolClass
from app.core.models.school_subject import SchoolSubject
from app.core.models.teacher import Teacher
from app.core.models.timetable import Timetable
from app.core.models.period import Period
from app.core.models.timetable_assignment import TimetableAssignment
from app.core.models.timetable_template import TimetableTemplate

__all__ = [
    "SchoolClass",
    "SchoolSubject",
    "Teacher",
    "Timetable",
    "Period",
    "TimetableAssignment",
    "TimetableTemplate",
]
