from sqlalchemy import Boolean, Column, Date, Float, ForeignKey, Integer, String, Text, UniqueConstraint

from .base import Base, TenantModel, TimestampMixin
from school_api.schemas.enums import FeeType


class FeeStructure(TimestampMixin, TenantModel):
    """
    A named fee for one academic year. ``amount`` is always the sum of the
    breakdown items and is recomputed whenever an item changes.
    """
    __tablename__ = "fee_structures"

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    academic_year_id = Column(Integer, ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_type = Column(String(20), nullable=False, default=FeeType.TUITION.value)
    amount = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="GHS")
    due_date = Column(Date, nullable=True)
    grace_period_days = Column(Integer, nullable=True)
    late_fee = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class FeeBreakdownItem(TimestampMixin, Base):
    __tablename__ = "fee_breakdown_items"

    id = Column(Integer, primary_key=True)
    fee_structure_id = Column(Integer, ForeignKey("fee_structures.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)
    is_mandatory = Column(Boolean, default=True, nullable=False)
    is_recurring = Column(Boolean, default=True, nullable=False)
    frequency = Column(String(20), nullable=True)


class FeeOverride(TimestampMixin, Base):
    """A per-student amount or exemption for one breakdown item"""
    __tablename__ = "fee_overrides"
    __table_args__ = (
        UniqueConstraint("item_id", "student_id", name="uq_fee_override_item_student"),
    )

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("fee_breakdown_items.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    override_amount = Column(Float, nullable=True)
    is_exempt = Column(Boolean, default=False, nullable=False)
    reason = Column(Text, nullable=True)
