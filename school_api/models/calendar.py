from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, Text

from .base import TenantModel, TimestampMixin
from school_api.schemas.enums import HolidayType


class AcademicYear(TimestampMixin, TenantModel):
    __tablename__ = "academic_years"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)  # e.g. "2024/2025"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, default=False, nullable=False)


class Term(TimestampMixin, TenantModel):
    __tablename__ = "terms"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)
    academic_year_id = Column(Integer, ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, default=False, nullable=False)


class Holiday(TimestampMixin, TenantModel):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    holiday_type = Column(String(20), nullable=False, default=HolidayType.SCHOOL_SPECIFIC.value)
    is_recurring = Column(Boolean, default=False, nullable=False)
    academic_year_id = Column(Integer, ForeignKey("academic_years.id", ondelete="SET NULL"), nullable=True)
