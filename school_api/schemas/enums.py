# school_api/schemas/enums.py
from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    PRINCIPAL = "principal"
    TEACHER = "teacher"
    PARENT = "parent"

    @classmethod
    def parse(cls, value):
        """Return the matching role, or None for anything unrecognised"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


ADMIN_ROLES = (UserRole.SUPER_ADMIN, UserRole.SCHOOL_ADMIN)
SCHOOL_STAFF_ROLES = ADMIN_ROLES + (UserRole.PRINCIPAL,)
STAFF_ROLES = SCHOOL_STAFF_ROLES + (UserRole.TEACHER,)
ALL_ROLES = STAFF_ROLES + (UserRole.PARENT,)


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Sex(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class HolidayType(str, Enum):
    PUBLIC = "PUBLIC"
    SCHOOL_SPECIFIC = "SCHOOL_SPECIFIC"
    RELIGIOUS = "RELIGIOUS"
    NATIONAL = "NATIONAL"
    REGIONAL = "REGIONAL"


class ExamType(str, Enum):
    WRITTEN = "WRITTEN"
    PRACTICAL = "PRACTICAL"
    ORAL = "ORAL"
    PROJECT = "PROJECT"
    CONTINUOUS_ASSESSMENT = "CONTINUOUS_ASSESSMENT"
    FINAL_EXAM = "FINAL_EXAM"
    MID_TERM = "MID_TERM"
    QUIZ = "QUIZ"


class ExamStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DayOfWeek(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class AssignmentType(str, Enum):
    INDIVIDUAL = "INDIVIDUAL"
    GROUP = "GROUP"
    CLASS_WIDE = "CLASS_WIDE"


class AssignmentStatusFilter(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    OVERDUE = "overdue"


class ReportCardStatus(str, Enum):
    DRAFT = "DRAFT"
    GENERATED = "GENERATED"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class NotificationType(str, Enum):
    ATTENDANCE = "ATTENDANCE"
    ASSIGNMENT = "ASSIGNMENT"
    EXAM = "EXAM"
    RESULT = "RESULT"
    PAYMENT = "PAYMENT"
    ANNOUNCEMENT = "ANNOUNCEMENT"
    EVENT = "EVENT"
    MESSAGE = "MESSAGE"
    APPROVAL = "APPROVAL"
    REMINDER = "REMINDER"
    GENERAL = "GENERAL"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class EventType(str, Enum):
    ACADEMIC = "ACADEMIC"
    SPORTS = "SPORTS"
    CULTURAL = "CULTURAL"
    MEETING = "MEETING"
    EXAMINATION = "EXAMINATION"
    HOLIDAY = "HOLIDAY"
    GENERAL = "GENERAL"


class RSVPResponse(str, Enum):
    ATTENDING = "ATTENDING"
    NOT_ATTENDING = "NOT_ATTENDING"
    MAYBE = "MAYBE"


class ObjectiveType(str, Enum):
    KNOWLEDGE = "KNOWLEDGE"
    SKILL = "SKILL"
    ATTITUDE = "ATTITUDE"
    COMPETENCY = "COMPETENCY"


class BloomsLevel(str, Enum):
    REMEMBER = "REMEMBER"
    UNDERSTAND = "UNDERSTAND"
    APPLY = "APPLY"
    ANALYZE = "ANALYZE"
    EVALUATE = "EVALUATE"
    CREATE = "CREATE"


class ProgressStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    MASTERED = "MASTERED"


class MasteryLevel(str, Enum):
    BEGINNER = "BEGINNER"
    DEVELOPING = "DEVELOPING"
    PROFICIENT = "PROFICIENT"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"


class FeeType(str, Enum):
    TUITION = "TUITION"
    EXAMINATION = "EXAMINATION"
    TRANSPORT = "TRANSPORT"
    FEEDING = "FEEDING"
    UNIFORM = "UNIFORM"
    BOOKS = "BOOKS"
    ACTIVITY = "ACTIVITY"
    OTHER = "OTHER"


class FeeFrequency(str, Enum):
    ONCE = "ONCE"
    MONTHLY = "MONTHLY"
    TERMLY = "TERMLY"
    YEARLY = "YEARLY"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class DeliveryMethod(str, Enum):
    SCHOOL_PICKUP = "SCHOOL_PICKUP"
    HOME_DELIVERY = "HOME_DELIVERY"
