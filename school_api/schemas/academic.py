from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from school_api.schemas.common import ORMModel


class GradeCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    level: int = Field(ge=0)
    description: Optional[str] = None
    school_id: Optional[int] = None


class GradeUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    level: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None


class GradeResponse(ORMModel):
    id: int
    school_id: int
    name: str
    level: int
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class ClassCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(ge=1)
    grade_id: Optional[int] = None
    supervisor_id: Optional[int] = None
    school_id: Optional[int] = None


class ClassUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    capacity: Optional[int] = Field(default=None, ge=1)
    grade_id: Optional[int] = None
    supervisor_id: Optional[int] = None


class ClassResponse(ORMModel):
    id: int
    school_id: int
    name: str
    capacity: int
    grade_id: Optional[int] = None
    supervisor_id: Optional[int] = None
    created_at: Optional[datetime] = None


class SubjectCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1, max_length=20)
    description: Optional[str] = None
    teacher_ids: List[int] = Field(default_factory=list)
    school_id: Optional[int] = None


class SubjectUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    description: Optional[str] = None


class SubjectResponse(ORMModel):
    id: int
    school_id: int
    name: str
    code: str
    description: Optional[str] = None
    teacher_ids: List[int] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class AssignTeacherRequest(BaseModel):
    teacher_id: int


class LessonCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    subject_id: int
    class_id: int
    teacher_id: int
    school_id: Optional[int] = None


class LessonUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    subject_id: Optional[int] = None
    class_id: Optional[int] = None
    teacher_id: Optional[int] = None


class LessonResponse(ORMModel):
    id: int
    school_id: int
    name: str
    subject_id: int
    class_id: int
    teacher_id: int
    created_at: Optional[datetime] = None


class RoomCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1, max_length=20)
    capacity: int = Field(ge=1)
    room_type: Optional[str] = Field(default=None, max_length=50)
    school_id: Optional[int] = None


class RoomUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    capacity: Optional[int] = Field(default=None, ge=1)
    room_type: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class RoomResponse(ORMModel):
    id: int
    school_id: int
    name: str
    code: str
    capacity: int
    room_type: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
