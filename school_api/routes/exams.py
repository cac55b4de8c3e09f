from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_staff
from school_api.core.tenancy import Identity
from school_api.schemas.enums import ExamStatus, ExamType
from school_api.schemas.exam import (
    ExamCreateRequest,
    ExamQuestionCreateRequest,
    ExamQuestionResponse,
    ExamResponse,
    ExamResultResponse,
    ExamResultUploadRequest,
    ExamSessionCreateRequest,
    ExamSessionResponse,
    ExamSessionUpdateRequest,
    ExamUpdateRequest
)
from school_api.services.exam_service import ExamService

router = APIRouter(tags=["Exams"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_exam(
    data: ExamCreateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    exam = await ExamService(db, identity).create_exam(data)
    return {"message": "Exam created", "exam": ExamResponse.model_validate(exam)}


@router.get("")
async def list_exams(
    search: Optional[str] = Query(None),
    subject_id: Optional[int] = Query(None),
    class_id: Optional[int] = Query(None),
    term_id: Optional[int] = Query(None),
    exam_status: Optional[ExamStatus] = Query(None, alias="status"),
    exam_type: Optional[ExamType] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    exams, meta = await ExamService(db, identity).list_exams(
        pagination, search, subject_id, class_id, term_id, exam_status, exam_type, school_id
    )
    return {
        "message": "Exams retrieved",
        "exams": [ExamResponse.model_validate(exam) for exam in exams],
        "pagination": meta
    }


@router.get("/{exam_id}")
async def get_exam(
    exam_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    exam = await ExamService(db, identity).get_exam(exam_id)
    return {"message": "Exam retrieved", "exam": ExamResponse.model_validate(exam)}


@router.patch("/{exam_id}")
async def update_exam(
    exam_id: int,
    data: ExamUpdateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    exam = await ExamService(db, identity).update_exam(exam_id, data)
    return {"message": "Exam updated", "exam": ExamResponse.model_validate(exam)}


@router.delete("/{exam_id}")
async def delete_exam(
    exam_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await ExamService(db, identity).delete_exam(exam_id)
    return {"message": "Exam deleted"}


# Questions

@router.post("/{exam_id}/questions", status_code=status.HTTP_201_CREATED)
async def add_question(
    exam_id: int,
    data: ExamQuestionCreateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    question = await ExamService(db, identity).add_question(exam_id, data.question, data.marks, data.subject_id)
    return {"message": "Question added", "question": ExamQuestionResponse.model_validate(question)}


@router.get("/{exam_id}/questions")
async def list_questions(
    exam_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    questions = await ExamService(db, identity).list_questions(exam_id)
    return {
        "message": "Questions retrieved",
        "questions": [ExamQuestionResponse.model_validate(question) for question in questions]
    }


# Results

@router.post("/{exam_id}/results", status_code=status.HTTP_201_CREATED)
async def upload_results(
    exam_id: int,
    data: ExamResultUploadRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    results = await ExamService(db, identity).upload_results(exam_id, data)
    return {
        "message": f"{len(results)} results uploaded",
        "results": [ExamResultResponse.model_validate(result) for result in results]
    }


@router.get("/{exam_id}/results")
async def list_results(
    exam_id: int,
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Parents get their own children's rows only"""
    results, meta = await ExamService(db, identity).list_results(exam_id, pagination)
    return {
        "message": "Results retrieved",
        "results": [ExamResultResponse.model_validate(result) for result in results],
        "pagination": meta
    }


@router.get("/{exam_id}/summary")
async def result_summary(
    exam_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ExamService(db, identity)
    exam = await service.get_exam(exam_id)
    return {"message": "Result summary retrieved", "exam_id": exam.id, "summary": await service.result_summary(exam)}


# Sessions

@router.post("/{exam_id}/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    exam_id: int,
    data: ExamSessionCreateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    session = await ExamService(db, identity).create_session(exam_id, data)
    return {"message": "Exam session created", "session": ExamSessionResponse.model_validate(session)}


@router.get("/{exam_id}/sessions")
async def list_sessions(
    exam_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    sessions = await ExamService(db, identity).list_sessions(exam_id)
    return {
        "message": "Exam sessions retrieved",
        "sessions": [ExamSessionResponse.model_validate(session) for session in sessions]
    }


@router.patch("/{exam_id}/sessions/{session_id}")
async def update_session(
    exam_id: int,
    session_id: int,
    data: ExamSessionUpdateRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    session = await ExamService(db, identity).update_session(exam_id, session_id, data)
    return {"message": "Exam session updated", "session": ExamSessionResponse.model_validate(session)}


@router.delete("/{exam_id}/sessions/{session_id}")
async def delete_session(
    exam_id: int,
    session_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await ExamService(db, identity).delete_session(exam_id, session_id)
    return {"message": "Exam session deleted"}
