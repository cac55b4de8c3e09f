from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table, Text, UniqueConstraint

from .base import Base, TenantModel, TimestampMixin


subject_teachers = Table(
    "subject_teachers",
    Base.metadata,
    Column("subject_id", Integer, ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
    Column("teacher_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Grade(TimestampMixin, TenantModel):
    """A year level, e.g. "Grade 7" with level 7"""
    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("school_id", "level", name="uq_grade_level"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    level = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Grade(name={self.name}, level={self.level})>"


class Class(TimestampMixin, TenantModel):
    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_class_name"),
    )

    __class_column__ = "id"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)  # e.g., "7A"
    capacity = Column(Integer, nullable=False)
    grade_id = Column(Integer, ForeignKey("grades.id", ondelete="SET NULL"), nullable=True, index=True)
    supervisor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    def __repr__(self):
        return f"<Class(name={self.name}, school_id={self.school_id})>"


class Subject(TimestampMixin, TenantModel):
    __tablename__ = "subjects"
    __table_args__ = (
        UniqueConstraint("school_id", "code", name="uq_subject_code"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Subject(code={self.code}, name={self.name})>"


class Lesson(TimestampMixin, TenantModel):
    """A teacher teaching a subject to a class"""
    __tablename__ = "lessons"

    __class_column__ = "class_id"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)


class Room(TimestampMixin, TenantModel):
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("school_id", "code", name="uq_room_code"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False)
    room_type = Column(String(50), nullable=True)  # e.g. 'Classroom', 'Laboratory', 'Hall'
    is_active = Column(Boolean, default=True, nullable=False)
