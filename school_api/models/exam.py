from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from .base import TenantModel, TimestampMixin
from school_api.schemas.enums import ExamStatus, ExamType


class Exam(TimestampMixin, TenantModel):
    __tablename__ = "exams"

    __class_column__ = "class_id"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    exam_type = Column(String(32), nullable=False, default=ExamType.WRITTEN.value)
    status = Column(String(20), nullable=False, default=ExamStatus.DRAFT.value)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    total_marks = Column(Float, nullable=False)
    passing_marks = Column(Float, nullable=False)
    instructions = Column(Text, nullable=True)

    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    term_id = Column(Integer, ForeignKey("terms.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


class ExamQuestion(TimestampMixin, TenantModel):
    __tablename__ = "exam_questions"

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    marks = Column(Float, nullable=False)


class ExamSession(TimestampMixin, TenantModel):
    """A sitting of an exam in a room, watched by an invigilator"""
    __tablename__ = "exam_sessions"

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True, index=True)
    invigilator_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    expected_candidates = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)


class ExamResult(TenantModel):
    """A scored outcome for one student, from an exam or an assignment"""
    __tablename__ = "results"

    __student_column__ = "student_id"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True)
    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    percentage = Column(Float, nullable=False)
    grade = Column(String(5), nullable=False)
    remarks = Column(Text, nullable=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_at = Column(DateTime, server_default=func.now(), nullable=False)
