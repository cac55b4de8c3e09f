from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import RoleChecker, require_any_role, require_staff
from school_api.core.tenancy import Identity
from school_api.schemas.assignment import (
    AssignmentCreateRequest,
    AssignmentResponse,
    AssignmentUpdateRequest,
    SubmissionCreateRequest,
    SubmissionGradeRequest,
    SubmissionResponse
)
from school_api.schemas.enums import STAFF_ROLES, AssignmentStatusFilter, UserRole
from school_api.services.assignment_service import AssignmentService

router = APIRouter(tags=["Assignments"])

# Parents hand in work for their children; staff may record it on their behalf
require_submitter = RoleChecker(STAFF_ROLES + (UserRole.PARENT,))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_assignment(
    data: AssignmentCreateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    assignment = await AssignmentService(db, identity).create_assignment(data)
    return {"message": "Assignment created", "assignment": AssignmentResponse.model_validate(assignment)}


@router.get("")
async def list_assignments(
    class_id: Optional[int] = Query(None),
    subject_id: Optional[int] = Query(None),
    teacher_id: Optional[int] = Query(None),
    assignment_status: Optional[AssignmentStatusFilter] = Query(None, alias="status"),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    assignments, meta = await AssignmentService(db, identity).list_assignments(
        pagination, class_id, subject_id, teacher_id, assignment_status, school_id
    )
    return {
        "message": "Assignments retrieved",
        "assignments": [AssignmentResponse.model_validate(assignment) for assignment in assignments],
        "pagination": meta
    }


@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    assignment = await AssignmentService(db, identity).get_assignment(assignment_id)
    return {"message": "Assignment retrieved", "assignment": AssignmentResponse.model_validate(assignment)}


@router.patch("/{assignment_id}")
async def update_assignment(
    assignment_id: int,
    data: AssignmentUpdateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    assignment = await AssignmentService(db, identity).update_assignment(assignment_id, data)
    return {"message": "Assignment updated", "assignment": AssignmentResponse.model_validate(assignment)}


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await AssignmentService(db, identity).delete_assignment(assignment_id)
    return {"message": "Assignment deleted"}


# Submissions

@router.post("/{assignment_id}/submissions", status_code=status.HTTP_201_CREATED)
async def submit_assignment(
    assignment_id: int,
    data: SubmissionCreateRequest,
    identity: Identity = Depends(require_submitter),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    submission = await AssignmentService(db, identity).submit(assignment_id, data)
    return {"message": "Assignment submitted", "submission": SubmissionResponse.model_validate(submission)}


@router.get("/{assignment_id}/submissions")
async def list_submissions(
    assignment_id: int,
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    submissions, meta = await AssignmentService(db, identity).list_submissions(assignment_id, pagination)
    return {
        "message": "Submissions retrieved",
        "submissions": [SubmissionResponse.model_validate(submission) for submission in submissions],
        "pagination": meta
    }


@router.post("/{assignment_id}/submissions/{submission_id}/grade")
async def grade_submission(
    assignment_id: int,
    submission_id: int,
    data: SubmissionGradeRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    submission = await AssignmentService(db, identity).grade_submission(assignment_id, submission_id, data)
    return {"message": "Submission graded", "submission": SubmissionResponse.model_validate(submission)}
