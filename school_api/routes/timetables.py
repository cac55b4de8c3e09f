from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.schemas.enums import DayOfWeek
from school_api.schemas.timetable import (
    TimetableCreateRequest,
    TimetableResponse,
    TimetableSlotCreateRequest,
    TimetableSlotResponse,
    TimetableUpdateRequest
)
from school_api.services.timetable_service import TimetableService

router = APIRouter(tags=["Timetables"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_timetable(
    data: TimetableCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    timetable = await TimetableService(db, identity).create_timetable(data)
    return {"message": "Timetable created", "timetable": TimetableResponse.model_validate(timetable)}


@router.get("")
async def list_timetables(
    term_id: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    timetables, meta = await TimetableService(db, identity).list_timetables(pagination, term_id, is_active, school_id)
    return {
        "message": "Timetables retrieved",
        "timetables": [TimetableResponse.model_validate(timetable) for timetable in timetables],
        "pagination": meta
    }


@router.get("/{timetable_id}")
async def get_timetable(
    timetable_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    timetable = await TimetableService(db, identity).get_timetable(timetable_id)
    return {"message": "Timetable retrieved", "timetable": TimetableResponse.model_validate(timetable)}


@router.patch("/{timetable_id}")
async def update_timetable(
    timetable_id: int,
    data: TimetableUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    timetable = await TimetableService(db, identity).update_timetable(timetable_id, data)
    return {"message": "Timetable updated", "timetable": TimetableResponse.model_validate(timetable)}


@router.delete("/{timetable_id}")
async def delete_timetable(
    timetable_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await TimetableService(db, identity).delete_timetable(timetable_id)
    return {"message": "Timetable deleted"}


# Slots

@router.post("/{timetable_id}/slots", status_code=status.HTTP_201_CREATED)
async def add_slot(
    timetable_id: int,
    data: TimetableSlotCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    slot = await TimetableService(db, identity).add_slot(timetable_id, data)
    return {"message": "Timetable slot created", "slot": TimetableSlotResponse.model_validate(slot)}


@router.get("/{timetable_id}/slots")
async def list_slots(
    timetable_id: int,
    class_id: Optional[int] = Query(None),
    day: Optional[DayOfWeek] = Query(None),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    slots = await TimetableService(db, identity).list_slots(timetable_id, class_id, day)
    return {
        "message": "Timetable slots retrieved",
        "slots": [TimetableSlotResponse.model_validate(slot) for slot in slots]
    }


@router.delete("/{timetable_id}/slots/{slot_id}")
async def delete_slot(
    timetable_id: int,
    slot_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await TimetableService(db, identity).delete_slot(timetable_id, slot_id)
    return {"message": "Timetable slot deleted"}
