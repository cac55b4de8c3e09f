from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from school_api.schemas.common import ORMModel
from school_api.schemas.enums import ReportCardStatus


class ReportCardCreateRequest(BaseModel):
    student_id: int
    term_id: int


class ReportCardCommentsRequest(BaseModel):
    teacher_comment: Optional[str] = Field(default=None, max_length=2000)
    principal_comment: Optional[str] = Field(default=None, max_length=2000)


class SubjectReportResponse(ORMModel):
    subject_id: int
    score: float
    max_score: float
    percentage: float
    grade: str
    remarks: Optional[str] = None


class ReportCardResponse(ORMModel):
    id: int
    school_id: int
    student_id: int
    term_id: int
    status: ReportCardStatus
    overall_percentage: Optional[float] = None
    overall_grade: Optional[str] = None
    gpa: Optional[float] = None
    attendance_rate: Optional[str] = None
    teacher_comment: Optional[str] = None
    principal_comment: Optional[str] = None
    generated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by_id: Optional[int] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    subjects: List[SubjectReportResponse] = Field(default_factory=list)


class ReportCardGenerateRequest(BaseModel):
    student_ids: List[int] = Field(min_length=1)
    term_id: int
