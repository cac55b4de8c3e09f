from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from school_api.core.security import SecurityConfig
from school_api.schemas.common import ORMModel
from school_api.schemas.enums import VerificationStatus


class SchoolBase(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=20)
    school_type: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)


class SchoolRegistrationRequest(SchoolBase):
    """A school signs up together with its first administrator"""
    registration_number: str = Field(min_length=3, max_length=50)

    # Admin information
    admin_name: str = Field(min_length=1, max_length=100)
    admin_surname: str = Field(min_length=1, max_length=100)
    admin_email: EmailStr
    admin_username: str = Field(min_length=3, max_length=100)
    admin_password: str = Field(
        min_length=SecurityConfig.MIN_PASSWORD_LENGTH,
        max_length=SecurityConfig.MAX_PASSWORD_LENGTH
    )


class SchoolUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    school_type: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = Field(default=None, max_length=255)
    logo_url: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)


class SchoolVerifyRequest(BaseModel):
    status: VerificationStatus
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_decision(self) -> "SchoolVerifyRequest":
        if self.status == VerificationStatus.PENDING:
            raise ValueError("Verification decision must be APPROVED or REJECTED")
        return self


class SchoolResponse(ORMModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    registration_number: str
    school_type: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    verification_status: VerificationStatus
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
