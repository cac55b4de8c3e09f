from . import (
    academic,
    analytics,
    assignments,
    attendance,
    auth,
    calendar,
    curricula,
    dashboard,
    events,
    exams,
    fees,
    materials,
    notifications,
    report_cards,
    schools,
    students,
    timetables,
    users,
)

__all__ = [
    "academic",
    "analytics",
    "assignments",
    "attendance",
    "auth",
    "calendar",
    "curricula",
    "dashboard",
    "events",
    "exams",
    "fees",
    "materials",
    "notifications",
    "report_cards",
    "schools",
    "students",
    "timetables",
    "users",
]
