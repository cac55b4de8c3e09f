from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.schemas.enums import EventType
from school_api.schemas.event import EventCreateRequest, EventResponse, EventUpdateRequest, RSVPRequest, RSVPResponseModel
from school_api.services.event_service import EventService

router = APIRouter(tags=["Events"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    event = await EventService(db, identity).create_event(data)
    return {"message": "Event created", "event": EventResponse.model_validate(event)}


@router.get("")
async def list_events(
    event_type: Optional[EventType] = Query(None),
    class_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    events, meta = await EventService(db, identity).list_events(
        pagination, event_type, class_id, start_date, end_date, school_id
    )
    return {
        "message": "Events retrieved",
        "events": [EventResponse.model_validate(event) for event in events],
        "pagination": meta
    }


@router.get("/upcoming")
async def upcoming_events(
    limit: int = Query(5, ge=1, le=50),
    school_id: Optional[int] = Query(None),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    events = await EventService(db, identity).upcoming(limit, school_id)
    return {"message": "Upcoming events retrieved", "events": [EventResponse.model_validate(event) for event in events]}


@router.get("/{event_id}")
async def get_event(
    event_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = EventService(db, identity)
    event = await service.get_event(event_id)
    return {
        "message": "Event retrieved",
        "event": EventResponse.model_validate(event),
        "rsvp_counts": await service.rsvp_counts(event.id)
    }


@router.patch("/{event_id}")
async def update_event(
    event_id: int,
    data: EventUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    event = await EventService(db, identity).update_event(event_id, data)
    return {"message": "Event updated", "event": EventResponse.model_validate(event)}


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await EventService(db, identity).delete_event(event_id)
    return {"message": "Event deleted"}


@router.post("/{event_id}/rsvp")
async def rsvp(
    event_id: int,
    data: RSVPRequest,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    answer = await EventService(db, identity).rsvp(event_id, data)
    return {"message": "RSVP recorded", "rsvp": RSVPResponseModel.model_validate(answer)}


@router.get("/{event_id}/rsvps")
async def list_rsvps(
    event_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    answers = await EventService(db, identity).list_rsvps(event_id)
    return {"message": "RSVPs retrieved", "rsvps": [RSVPResponseModel.model_validate(answer) for answer in answers]}
