from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, Text, UniqueConstraint

from .base import TenantModel, TimestampMixin


class Attendance(TimestampMixin, TenantModel):
    """Presence of one student on one day, optionally for a single lesson"""
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "lesson_id", "date", name="uq_attendance_student_lesson_date"),
    )

    __student_column__ = "student_id"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True, index=True)
    date = Column(Date, nullable=False, index=True)
    present = Column(Boolean, nullable=False)
    note = Column(Text, nullable=True)
    recorded_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
