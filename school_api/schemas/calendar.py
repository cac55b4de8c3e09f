from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel
from school_api.schemas.enums import HolidayType


class AcademicYearCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    start_date: date
    end_date: date
    is_current: bool = False
    school_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "AcademicYearCreateRequest":
        if self.start_date >= self.end_date:
            raise ValueError("end_date must be after start_date")
        return self


class AcademicYearUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: Optional[bool] = None


class AcademicYearResponse(ORMModel):
    id: int
    school_id: int
    name: str
    start_date: date
    end_date: date
    is_current: bool
    created_at: Optional[datetime] = None


class TermCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    academic_year_id: int
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode="after")
    def validate_dates(self) -> "TermCreateRequest":
        if self.start_date >= self.end_date:
            raise ValueError("end_date must be after start_date")
        return self


class TermUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: Optional[bool] = None


class TermResponse(ORMModel):
    id: int
    school_id: int
    academic_year_id: int
    name: str
    start_date: date
    end_date: date
    is_current: bool
    created_at: Optional[datetime] = None


class HolidayCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    start_date: date
    end_date: date
    holiday_type: HolidayType = HolidayType.SCHOOL_SPECIFIC
    is_recurring: bool = False
    academic_year_id: Optional[int] = None
    school_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "HolidayCreateRequest":
        if self.start_date > self.end_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class HolidayUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    holiday_type: Optional[HolidayType] = None
    is_recurring: Optional[bool] = None


class HolidayResponse(ORMModel):
    id: int
    school_id: int
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    holiday_type: HolidayType
    is_recurring: bool
    academic_year_id: Optional[int] = None
