from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel, TimeString
from school_api.schemas.enums import DayOfWeek


class TimetableCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    academic_year_id: int
    term_id: Optional[int] = None
    effective_from: date
    effective_to: date
    is_active: bool = True
    school_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "TimetableCreateRequest":
        if self.effective_from >= self.effective_to:
            raise ValueError("effective_to must be after effective_from")
        return self


class TimetableUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: Optional[bool] = None


class TimetableResponse(ORMModel):
    id: int
    school_id: int
    name: str
    academic_year_id: int
    term_id: Optional[int] = None
    effective_from: date
    effective_to: date
    is_active: bool
    created_at: Optional[datetime] = None


class TimetableSlotCreateRequest(BaseModel):
    day: DayOfWeek
    start_time: TimeString
    end_time: TimeString
    period: Optional[int] = Field(default=None, ge=1)
    class_id: int
    lesson_id: Optional[int] = None
    room_id: Optional[int] = None
    teacher_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_times(self) -> "TimetableSlotCreateRequest":
        # HH:MM strings compare correctly as text
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimetableSlotResponse(ORMModel):
    id: int
    timetable_id: int
    day: DayOfWeek
    start_time: str
    end_time: str
    period: Optional[int] = None
    class_id: int
    lesson_id: Optional[int] = None
    room_id: Optional[int] = None
    teacher_id: Optional[int] = None
