from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text, UniqueConstraint

from .base import TenantModel, TimestampMixin
from school_api.schemas.enums import MasteryLevel, ProgressStatus


class Curriculum(TimestampMixin, TenantModel):
    __tablename__ = "curricula"
    __table_args__ = (
        UniqueConstraint("school_id", "name", "version", name="uq_curriculum_name_version"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    version = Column(String(20), nullable=False, default="1.0")
    is_active = Column(Boolean, default=True, nullable=False)


class CurriculumSubject(TimestampMixin, TenantModel):
    """A subject taught at one grade level under a curriculum"""
    __tablename__ = "curriculum_subjects"
    __table_args__ = (
        UniqueConstraint("curriculum_id", "subject_id", "grade_id", name="uq_curriculum_subject_grade"),
    )

    id = Column(Integer, primary_key=True)
    curriculum_id = Column(Integer, ForeignKey("curricula.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    grade_id = Column(Integer, ForeignKey("grades.id", ondelete="CASCADE"), nullable=False)
    hours_per_week = Column(Integer, nullable=True)
    is_core = Column(Boolean, default=True, nullable=False)
    prerequisite_ids = Column(JSON, nullable=True)  # subject ids


class LearningObjective(TimestampMixin, TenantModel):
    __tablename__ = "learning_objectives"

    id = Column(Integer, primary_key=True)
    curriculum_subject_id = Column(
        Integer, ForeignKey("curriculum_subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    objective_type = Column(String(20), nullable=False)
    blooms_level = Column(String(20), nullable=False)


class CurriculumProgress(TimestampMixin, TenantModel):
    """Where one student stands against one learning objective"""
    __tablename__ = "curriculum_progress"
    __table_args__ = (
        UniqueConstraint("student_id", "learning_objective_id", name="uq_progress_student_objective"),
    )

    __student_column__ = "student_id"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    learning_objective_id = Column(
        Integer, ForeignKey("learning_objectives.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=ProgressStatus.NOT_STARTED.value)
    mastery_level = Column(String(20), nullable=False, default=MasteryLevel.BEGINNER.value)
    notes = Column(Text, nullable=True)
    assessment_score = Column(Float, nullable=True)
    assessment_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    recorded_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
