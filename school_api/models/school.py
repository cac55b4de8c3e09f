from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from .base import Base, TimestampMixin
from school_api.schemas.enums import VerificationStatus


class School(TimestampMixin, Base):
    """
    School model. This is the root of the tenant hierarchy; every other
    table hangs off it through a school_id column.
    """
    __tablename__ = "schools"

    __tenant_column__ = "id"
    __class_column__ = None
    __student_column__ = None

    id = Column(Integer, primary_key=True)

    # Basic information
    name = Column(String(255), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(20), nullable=True)
    registration_number = Column(String(50), unique=True, nullable=False)
    school_type = Column(String(50), nullable=True)  # e.g. 'Primary', 'Secondary'
    website = Column(String(255), nullable=True)
    logo_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)

    # Location information
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)

    # Verification workflow
    verification_status = Column(String(20), nullable=False, default=VerificationStatus.PENDING.value)
    verified_at = Column(DateTime, nullable=True)
    verified_by_id = Column(Integer, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.APPROVED.value

    def __repr__(self):
        return f"<School(name={self.name}, status={self.verification_status})>"
