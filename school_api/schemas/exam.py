from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel, UTCDateTime
from school_api.schemas.enums import ExamStatus, ExamType


class ExamCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    exam_type: ExamType = ExamType.WRITTEN
    status: ExamStatus = ExamStatus.DRAFT
    start_time: UTCDateTime
    end_time: UTCDateTime
    total_marks: float = Field(gt=0)
    passing_marks: float = Field(ge=0)
    subject_id: Optional[int] = None
    class_id: Optional[int] = None
    term_id: Optional[int] = None
    school_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_exam(self) -> "ExamCreateRequest":
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        if self.passing_marks > self.total_marks:
            raise ValueError("passing_marks cannot exceed total_marks")
        return self


class ExamUpdateRequest(BaseModel):
    """Partial update; cross-field rules are checked against the stored exam"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    exam_type: Optional[ExamType] = None
    status: Optional[ExamStatus] = None
    start_time: Optional[UTCDateTime] = None
    end_time: Optional[UTCDateTime] = None
    total_marks: Optional[float] = Field(default=None, gt=0)
    passing_marks: Optional[float] = Field(default=None, ge=0)
    subject_id: Optional[int] = None
    class_id: Optional[int] = None
    term_id: Optional[int] = None


class ExamResponse(ORMModel):
    id: int
    school_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    exam_type: ExamType
    status: ExamStatus
    start_time: datetime
    end_time: datetime
    total_marks: float
    passing_marks: float
    subject_id: Optional[int] = None
    class_id: Optional[int] = None
    term_id: Optional[int] = None
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None


class ExamSessionCreateRequest(BaseModel):
    room_id: int
    invigilator_id: Optional[int] = None
    start_time: UTCDateTime
    end_time: UTCDateTime
    expected_candidates: int = Field(default=0, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_times(self) -> "ExamSessionCreateRequest":
        if self.start_time >= self.end_time:
            raise ValueError("end_time must be after start_time")
        return self


class ExamSessionUpdateRequest(BaseModel):
    room_id: Optional[int] = None
    invigilator_id: Optional[int] = None
    start_time: Optional[UTCDateTime] = None
    end_time: Optional[UTCDateTime] = None
    expected_candidates: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class ExamSessionResponse(ORMModel):
    id: int
    exam_id: int
    school_id: int
    room_id: Optional[int] = None
    invigilator_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    expected_candidates: int
    notes: Optional[str] = None


class ExamResultEntry(BaseModel):
    student_id: int
    score: float = Field(ge=0)
    remarks: Optional[str] = None


class ExamResultUploadRequest(BaseModel):
    results: List[ExamResultEntry] = Field(min_length=1)


class ExamResultResponse(ORMModel):
    id: int
    student_id: int
    exam_id: Optional[int] = None
    assignment_id: Optional[int] = None
    subject_id: Optional[int] = None
    score: float
    max_score: float
    percentage: float
    grade: str
    remarks: Optional[str] = None
    uploaded_at: Optional[datetime] = None


class ExamQuestionCreateRequest(BaseModel):
    question: str = Field(min_length=1)
    marks: float = Field(gt=0)
    subject_id: Optional[int] = None


class ExamQuestionResponse(ORMModel):
    id: int
    exam_id: int
    subject_id: int
    question: str
    marks: float
