from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel, UTCDateTime
from school_api.schemas.enums import AssignmentType


class AssignmentCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    start_date: UTCDateTime
    due_date: UTCDateTime
    max_score: float = Field(gt=0)
    assignment_type: AssignmentType = AssignmentType.INDIVIDUAL
    subject_id: int
    class_id: int
    teacher_id: Optional[int] = None
    school_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "AssignmentCreateRequest":
        if self.start_date >= self.due_date:
            raise ValueError("due_date must be after start_date")
        return self


class AssignmentUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    start_date: Optional[UTCDateTime] = None
    due_date: Optional[UTCDateTime] = None
    max_score: Optional[float] = Field(default=None, gt=0)
    assignment_type: Optional[AssignmentType] = None


class AssignmentResponse(ORMModel):
    id: int
    school_id: int
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    start_date: datetime
    due_date: datetime
    max_score: float
    assignment_type: AssignmentType
    subject_id: int
    class_id: int
    teacher_id: Optional[int] = None
    created_at: Optional[datetime] = None


class SubmissionCreateRequest(BaseModel):
    student_id: int
    content: Optional[str] = None


class SubmissionGradeRequest(BaseModel):
    score: float = Field(ge=0)
    feedback: Optional[str] = None


class SubmissionResponse(ORMModel):
    id: int
    assignment_id: int
    student_id: int
    content: Optional[str] = None
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None
