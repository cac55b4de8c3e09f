from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from school_api.schemas.common import ORMModel
from school_api.schemas.enums import Sex


class StudentCreateRequest(BaseModel):
    registration_number: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    surname: str = Field(min_length=1, max_length=100)
    sex: Sex
    birthday: date
    address: Optional[str] = Field(default=None, max_length=255)
    image_url: Optional[str] = Field(default=None, max_length=500)
    blood_type: Optional[str] = Field(default=None, max_length=5)
    class_id: Optional[int] = None
    grade_id: Optional[int] = None
    parent_ids: List[int] = Field(default_factory=list)
    school_id: Optional[int] = None

    @field_validator("birthday")
    @classmethod
    def validate_birthday(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Birthday cannot be in the future")
        return v


class StudentUpdateRequest(BaseModel):
    registration_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    surname: Optional[str] = Field(default=None, min_length=1, max_length=100)
    sex: Optional[Sex] = None
    birthday: Optional[date] = None
    address: Optional[str] = Field(default=None, max_length=255)
    image_url: Optional[str] = Field(default=None, max_length=500)
    blood_type: Optional[str] = Field(default=None, max_length=5)
    class_id: Optional[int] = None
    grade_id: Optional[int] = None
    is_active: Optional[bool] = None


class StudentResponse(ORMModel):
    id: int
    school_id: int
    registration_number: str
    name: str
    surname: str
    sex: str
    birthday: date
    address: Optional[str] = None
    image_url: Optional[str] = None
    blood_type: Optional[str] = None
    class_id: Optional[int] = None
    grade_id: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
