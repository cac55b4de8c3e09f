from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from school_api.schemas.common import ORMModel
from school_api.schemas.enums import BloomsLevel, MasteryLevel, ObjectiveType, ProgressStatus


class CurriculumCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    version: str = Field(default="1.0", min_length=1, max_length=20)
    school_id: Optional[int] = None


class CurriculumUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    version: Optional[str] = Field(default=None, min_length=1, max_length=20)
    is_active: Optional[bool] = None


class CurriculumResponse(ORMModel):
    id: int
    school_id: int
    name: str
    description: Optional[str] = None
    version: str
    is_active: bool
    created_at: Optional[datetime] = None


class CurriculumSubjectCreateRequest(BaseModel):
    curriculum_id: int
    subject_id: int
    grade_id: int
    hours_per_week: Optional[int] = Field(default=None, ge=0)
    is_core: bool = True
    prerequisite_ids: List[int] = Field(default_factory=list)


class CurriculumSubjectResponse(ORMModel):
    id: int
    curriculum_id: int
    subject_id: int
    grade_id: int
    hours_per_week: Optional[int] = None
    is_core: bool
    prerequisite_ids: Optional[List[int]] = None


class LearningObjectiveCreateRequest(BaseModel):
    curriculum_subject_id: int
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    objective_type: ObjectiveType
    blooms_level: BloomsLevel


class LearningObjectiveResponse(ORMModel):
    id: int
    curriculum_subject_id: int
    title: str
    description: str
    objective_type: str
    blooms_level: str
    created_at: Optional[datetime] = None


class ProgressUpdateRequest(BaseModel):
    student_id: int
    learning_objective_id: int
    status: ProgressStatus
    mastery_level: MasteryLevel
    notes: Optional[str] = None
    assessment_score: Optional[float] = Field(default=None, ge=0, le=100)


class ProgressResponse(ORMModel):
    id: int
    student_id: int
    learning_objective_id: int
    status: str
    mastery_level: str
    notes: Optional[str] = None
    assessment_score: Optional[float] = None
    assessment_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
