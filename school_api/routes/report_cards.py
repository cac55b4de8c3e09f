from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff, require_staff
from school_api.core.tenancy import Identity
from school_api.models import ReportCard
from school_api.schemas.enums import ReportCardStatus
from school_api.schemas.report_card import (
    ReportCardCommentsRequest,
    ReportCardCreateRequest,
    ReportCardGenerateRequest,
    ReportCardResponse,
    SubjectReportResponse
)
from school_api.services.report_card_service import ReportCardService

router = APIRouter(tags=["Report Cards"])


async def _with_subjects(service: ReportCardService, card: ReportCard) -> ReportCardResponse:
    subjects = await service.subjects_of(card.id)
    return ReportCardResponse.model_validate(card).model_copy(
        update={"subjects": [SubjectReportResponse.model_validate(subject) for subject in subjects]}
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_report_card(
    data: ReportCardCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    card = await ReportCardService(db, identity).create_report_card(data)
    return {"message": "Report card created", "report_card": ReportCardResponse.model_validate(card)}


@router.post("/generate", status_code=status.HTTP_201_CREATED)
async def generate_report_cards(
    data: ReportCardGenerateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ReportCardService(db, identity)
    outcome = await service.generate_for_students(data.student_ids, data.term_id)
    return {
        "message": f"{len(outcome['report_cards'])} report cards generated",
        "report_cards": [await _with_subjects(service, card) for card in outcome["report_cards"]],
        "skipped_student_ids": outcome["skipped"]
    }


@router.get("")
async def list_report_cards(
    student_id: Optional[int] = Query(None),
    term_id: Optional[int] = Query(None),
    card_status: Optional[ReportCardStatus] = Query(None, alias="status"),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    cards, meta = await ReportCardService(db, identity).list_report_cards(
        pagination, student_id, term_id, card_status, school_id
    )
    return {
        "message": "Report cards retrieved",
        "report_cards": [ReportCardResponse.model_validate(card) for card in cards],
        "pagination": meta
    }


@router.get("/{card_id}")
async def get_report_card(
    card_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ReportCardService(db, identity)
    card = await service.get_report_card(card_id)
    return {"message": "Report card retrieved", "report_card": await _with_subjects(service, card)}


@router.patch("/{card_id}/comments")
async def update_comments(
    card_id: int,
    data: ReportCardCommentsRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ReportCardService(db, identity)
    card = await service.update_comments(card_id, data)
    return {"message": "Report card comments updated", "report_card": await _with_subjects(service, card)}


@router.post("/{card_id}/generate")
async def generate_report_card(
    card_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ReportCardService(db, identity)
    card = await service.generate(card_id)
    return {"message": "Report card generated", "report_card": await _with_subjects(service, card)}


@router.post("/{card_id}/approve")
async def approve_report_card(
    card_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ReportCardService(db, identity)
    card = await service.approve(card_id)
    return {"message": "Report card approved", "report_card": await _with_subjects(service, card)}


@router.post("/{card_id}/publish")
async def publish_report_card(
    card_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ReportCardService(db, identity)
    card = await service.publish(card_id)
    return {"message": "Report card published", "report_card": await _with_subjects(service, card)}


@router.post("/{card_id}/archive")
async def archive_report_card(
    card_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ReportCardService(db, identity)
    card = await service.archive(card_id)
    return {"message": "Report card archived", "report_card": await _with_subjects(service, card)}


@router.delete("/{card_id}")
async def delete_report_card(
    card_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await ReportCardService(db, identity).delete_report_card(card_id)
    return {"message": "Report card deleted"}
