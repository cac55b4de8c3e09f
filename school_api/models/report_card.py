from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint

from .base import Base, TenantModel, TimestampMixin
from school_api.schemas.enums import ReportCardStatus


class ReportCard(TimestampMixin, TenantModel):
    __tablename__ = "report_cards"
    __table_args__ = (
        UniqueConstraint("student_id", "term_id", name="uq_report_card_student_term"),
    )

    __student_column__ = "student_id"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    term_id = Column(Integer, ForeignKey("terms.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ReportCardStatus.DRAFT.value)

    overall_percentage = Column(Float, nullable=True)
    overall_grade = Column(String(5), nullable=True)
    gpa = Column(Float, nullable=True)
    attendance_rate = Column(String(10), nullable=True)
    teacher_comment = Column(Text, nullable=True)
    principal_comment = Column(Text, nullable=True)

    generated_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    published_at = Column(DateTime, nullable=True)


class SubjectReport(Base):
    __tablename__ = "subject_reports"
    __table_args__ = (
        UniqueConstraint("report_card_id", "subject_id", name="uq_subject_report"),
    )

    id = Column(Integer, primary_key=True)
    report_card_id = Column(Integer, ForeignKey("report_cards.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    percentage = Column(Float, nullable=False)
    grade = Column(String(5), nullable=False)
    remarks = Column(Text, nullable=True)
