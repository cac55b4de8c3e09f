from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, UniqueConstraint

from .base import Base, TenantModel, TimestampMixin


class Student(TimestampMixin, TenantModel):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("school_id", "registration_number", name="uq_student_registration"),
    )

    __class_column__ = "class_id"
    __student_column__ = "id"

    id = Column(Integer, primary_key=True)
    registration_number = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)
    surname = Column(String(100), nullable=False)
    address = Column(String(255), nullable=True)
    image_url = Column(String(500), nullable=True)
    blood_type = Column(String(5), nullable=True)
    sex = Column(String(10), nullable=False)
    birthday = Column(Date, nullable=False)

    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    grade_id = Column(Integer, ForeignKey("grades.id", ondelete="SET NULL"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"

    def __repr__(self):
        return f"<Student(id={self.id}, registration_number={self.registration_number})>"


class Guardianship(Base):
    """Links a parent account to a student"""
    __tablename__ = "student_parents"
    __table_args__ = (
        UniqueConstraint("student_id", "parent_id", name="uq_student_parent"),
    )

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    relationship = Column(String(50), nullable=True)  # e.g. "mother", "guardian"
    is_primary = Column(Boolean, default=False, nullable=False)
