from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from school_api.schemas.common import ORMModel


class AttendanceRecordRequest(BaseModel):
    student_id: int
    date: date
    present: bool
    lesson_id: Optional[int] = None
    note: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Attendance cannot be recorded for a future date")
        return v


class BulkAttendanceEntry(BaseModel):
    student_id: int
    present: bool
    note: Optional[str] = None


class BulkAttendanceRequest(BaseModel):
    date: date
    lesson_id: Optional[int] = None
    records: List[BulkAttendanceEntry] = Field(min_length=1)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Attendance cannot be recorded for a future date")
        return v


class AttendanceResponse(ORMModel):
    id: int
    school_id: int
    student_id: int
    lesson_id: Optional[int] = None
    date: date
    present: bool
    note: Optional[str] = None
    recorded_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
