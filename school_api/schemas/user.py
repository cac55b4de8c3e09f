from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from school_api.core.security import SecurityConfig
from school_api.schemas.common import ORMModel
from school_api.schemas.enums import Sex, VerificationStatus


class StaffBase(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=100)
    name: str = Field(min_length=1, max_length=100)
    surname: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=255)
    sex: Optional[Sex] = None
    birthday: Optional[date] = None
    image_url: Optional[str] = Field(default=None, max_length=500)


class TeacherCreateRequest(StaffBase):
    password: str = Field(
        min_length=SecurityConfig.MIN_PASSWORD_LENGTH,
        max_length=SecurityConfig.MAX_PASSWORD_LENGTH
    )
    qualifications: Optional[str] = None
    bio: Optional[str] = None
    subject_ids: List[int] = Field(default_factory=list)
    school_id: Optional[int] = None


class TeacherUpdateRequest(BaseModel):
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(default=None, min_length=3, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    surname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=255)
    sex: Optional[Sex] = None
    birthday: Optional[date] = None
    image_url: Optional[str] = Field(default=None, max_length=500)
    qualifications: Optional[str] = None
    bio: Optional[str] = None
    is_active: Optional[bool] = None


class ParentCreateRequest(StaffBase):
    password: str = Field(
        min_length=SecurityConfig.MIN_PASSWORD_LENGTH,
        max_length=SecurityConfig.MAX_PASSWORD_LENGTH
    )
    student_ids: List[int] = Field(default_factory=list)
    school_id: Optional[int] = None


class ParentUpdateRequest(BaseModel):
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(default=None, min_length=3, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    surname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=255)
    is_active: Optional[bool] = None


class PrincipalCreateRequest(StaffBase):
    # Generated and returned once when omitted
    password: Optional[str] = Field(
        default=None,
        min_length=SecurityConfig.MIN_PASSWORD_LENGTH,
        max_length=SecurityConfig.MAX_PASSWORD_LENGTH
    )
    qualifications: Optional[str] = None
    bio: Optional[str] = None
    school_id: Optional[int] = None


class PrincipalUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    surname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=255)
    image_url: Optional[str] = Field(default=None, max_length=500)
    qualifications: Optional[str] = None
    bio: Optional[str] = None
    is_active: Optional[bool] = None


class PrincipalVerifyRequest(BaseModel):
    status: VerificationStatus
    comments: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_decision(cls, value: VerificationStatus) -> VerificationStatus:
        if value == VerificationStatus.PENDING:
            raise ValueError("Status must be APPROVED or REJECTED")
        return value


class LinkChildRequest(BaseModel):
    student_id: int
    relationship: Optional[str] = Field(default=None, max_length=50)
    is_primary: bool = False


class UserResponse(ORMModel):
    id: int
    email: str
    username: str
    name: str
    surname: str
    phone: Optional[str] = None
    address: Optional[str] = None
    sex: Optional[str] = None
    birthday: Optional[date] = None
    image_url: Optional[str] = None
    role: str
    school_id: Optional[int] = None
    qualifications: Optional[str] = None
    bio: Optional[str] = None
    is_verified: bool
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
