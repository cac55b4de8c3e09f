from .base import Base, TenantModel, utcnow
from .school import School
from .user import User, RevokedToken
from .academic import Grade, Class, Subject, Lesson, Room, subject_teachers
from .student import Student, Guardianship
from .calendar import AcademicYear, Term, Holiday
from .assignment import Assignment, Submission
from .exam import Exam, ExamQuestion, ExamSession, ExamResult
from .timetable import Timetable, TimetableSlot
from .attendance import Attendance
from .report_card import ReportCard, SubjectReport
from .notification import Notification
from .event import Event, EventRSVP
from .material import MaterialCategory, Material, Cart, CartItem, MaterialOrder, MaterialOrderItem
from .curriculum import Curriculum, CurriculumSubject, LearningObjective, CurriculumProgress
from .fee import FeeStructure, FeeBreakdownItem, FeeOverride

__all__ = [
    "Base",
    "TenantModel",
    "utcnow",
    "School",
    "User",
    "RevokedToken",
    "Grade",
    "Class",
    "Subject",
    "Lesson",
    "Room",
    "subject_teachers",
    "Student",
    "Guardianship",
    "AcademicYear",
    "Term",
    "Holiday",
    "Assignment",
    "Submission",
    "Exam",
    "ExamQuestion",
    "ExamSession",
    "ExamResult",
    "Timetable",
    "TimetableSlot",
    "Attendance",
    "ReportCard",
    "SubjectReport",
    "Notification",
    "Event",
    "EventRSVP",
    "MaterialCategory",
    "Material",
    "Cart",
    "CartItem",
    "MaterialOrder",
    "MaterialOrderItem",
    "Curriculum",
    "CurriculumSubject",
    "LearningObjective",
    "CurriculumProgress",
    "FeeStructure",
    "FeeBreakdownItem",
    "FeeOverride",
]
