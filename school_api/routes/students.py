from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.schemas.student import StudentCreateRequest, StudentResponse, StudentUpdateRequest
from school_api.schemas.user import UserResponse
from school_api.services.student_service import StudentService

router = APIRouter(tags=["Students"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_student(
    data: StudentCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    student = await StudentService(db, identity).create_student(data)
    return {"message": "Student created", "student": StudentResponse.model_validate(student)}


@router.get("")
async def list_students(
    search: Optional[str] = Query(None),
    class_id: Optional[int] = Query(None),
    grade_id: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Teachers see the students of their classes, parents their own children"""
    students, meta = await StudentService(db, identity).list_students(
        pagination, search, class_id, grade_id, is_active, school_id
    )
    return {
        "message": "Students retrieved",
        "students": [StudentResponse.model_validate(student) for student in students],
        "pagination": meta
    }


@router.get("/{student_id}")
async def get_student(
    student_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = StudentService(db, identity)
    student = await service.get_student(student_id)
    guardians = await service.guardians_of(student.id)
    return {
        "message": "Student retrieved",
        "student": StudentResponse.model_validate(student),
        "parents": [UserResponse.model_validate(guardian) for guardian in guardians]
    }


@router.patch("/{student_id}")
async def update_student(
    student_id: int,
    data: StudentUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    student = await StudentService(db, identity).update_student(student_id, data)
    return {"message": "Student updated", "student": StudentResponse.model_validate(student)}


@router.delete("/{student_id}")
async def delete_student(
    student_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await StudentService(db, identity).delete_student(student_id)
    return {"message": "Student deleted"}
