from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff, require_staff
from school_api.core.tenancy import Identity
from school_api.schemas.curriculum import (
    CurriculumCreateRequest,
    CurriculumResponse,
    CurriculumSubjectCreateRequest,
    CurriculumSubjectResponse,
    CurriculumUpdateRequest,
    LearningObjectiveCreateRequest,
    LearningObjectiveResponse,
    ProgressResponse,
    ProgressUpdateRequest
)
from school_api.services.curriculum_service import CurriculumService

router = APIRouter(tags=["Curricula"])


# Subjects, objectives and progress; declared before /{curriculum_id}

@router.post("/subjects", status_code=status.HTTP_201_CREATED)
async def add_curriculum_subject(
    data: CurriculumSubjectCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    item = await CurriculumService(db, identity).add_subject(data)
    return {"message": "Subject added to curriculum", "curriculum_subject": CurriculumSubjectResponse.model_validate(item)}


@router.get("/subjects/{curriculum_subject_id}/objectives")
async def list_learning_objectives(
    curriculum_subject_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    objectives = await CurriculumService(db, identity).list_objectives(curriculum_subject_id)
    return {"message": "Learning objectives retrieved", "learning_objectives": objectives}


@router.post("/objectives", status_code=status.HTTP_201_CREATED)
async def create_learning_objective(
    data: LearningObjectiveCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    objective = await CurriculumService(db, identity).create_objective(data)
    return {"message": "Learning objective created", "learning_objective": LearningObjectiveResponse.model_validate(objective)}


@router.put("/progress")
async def record_progress(
    data: ProgressUpdateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    record = await CurriculumService(db, identity).record_progress(data)
    return {"message": "Progress recorded", "progress": ProgressResponse.model_validate(record)}


@router.get("/progress/students/{student_id}")
async def student_progress(
    student_id: int,
    curriculum_id: Optional[int] = Query(None),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    report = await CurriculumService(db, identity).student_progress(student_id, curriculum_id)
    return {"message": "Student progress retrieved", **report}


# Curricula

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_curriculum(
    data: CurriculumCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    curriculum = await CurriculumService(db, identity).create_curriculum(data)
    return {"message": "Curriculum created", "curriculum": CurriculumResponse.model_validate(curriculum)}


@router.get("")
async def list_curricula(
    is_active: Optional[bool] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = CurriculumService(db, identity)
    curricula, meta = await service.list_curricula(pagination, is_active, school_id)
    counts = await service.subject_counts(curriculum.id for curriculum in curricula)
    return {
        "message": "Curricula retrieved",
        "curricula": [
            {**CurriculumResponse.model_validate(curriculum).model_dump(), "subject_count": counts.get(curriculum.id, 0)}
            for curriculum in curricula
        ],
        "pagination": meta
    }


@router.get("/{curriculum_id}")
async def get_curriculum(
    curriculum_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = CurriculumService(db, identity)
    curriculum = await service.get_curriculum(curriculum_id)
    subjects = await service.curriculum_details(curriculum)
    return {
        "message": "Curriculum retrieved",
        "curriculum": {**CurriculumResponse.model_validate(curriculum).model_dump(), "subjects": subjects}
    }


@router.patch("/{curriculum_id}")
async def update_curriculum(
    curriculum_id: int,
    data: CurriculumUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    curriculum = await CurriculumService(db, identity).update_curriculum(curriculum_id, data)
    return {"message": "Curriculum updated", "curriculum": CurriculumResponse.model_validate(curriculum)}


@router.delete("/{curriculum_id}")
async def delete_curriculum(
    curriculum_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await CurriculumService(db, identity).delete_curriculum(curriculum_id)
    return {"message": "Curriculum deleted"}


@router.get("/{curriculum_id}/progress")
async def curriculum_progress(
    curriculum_id: int,
    grade_id: Optional[int] = Query(None),
    subject_id: Optional[int] = Query(None),
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    report = await CurriculumService(db, identity).curriculum_progress(curriculum_id, grade_id, subject_id)
    return {"message": "Curriculum progress retrieved", **report}
