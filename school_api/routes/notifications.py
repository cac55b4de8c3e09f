from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, wide_pagination_params
from school_api.core.permissions import require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.schemas.enums import NotificationPriority, NotificationType
from school_api.schemas.notification import NotificationCreateRequest, NotificationResponse
from school_api.services.notification_service import NotificationService

router = APIRouter(tags=["Notifications"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_notifications(
    data: NotificationCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Send to explicit users, whole roles and/or the parents of a class"""
    created = await NotificationService(db, identity).create_bulk(data)
    return {"message": f"{created} notifications sent", "count": created}


@router.get("")
async def list_notifications(
    is_read: Optional[bool] = Query(None),
    notification_type: Optional[NotificationType] = Query(None, alias="type"),
    priority: Optional[NotificationPriority] = Query(None),
    pagination: Pagination = Depends(wide_pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = NotificationService(db, identity)
    notifications, meta = await service.list_own(pagination, is_read, notification_type, priority)
    return {
        "message": "Notifications retrieved",
        "notifications": [NotificationResponse.model_validate(n) for n in notifications],
        "unread_count": await service.unread_count(),
        "pagination": meta
    }


@router.get("/unread-count")
async def unread_count(
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return {"message": "Unread count retrieved", "unread_count": await NotificationService(db, identity).unread_count()}


@router.get("/stats")
async def notification_stats(
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    return {"message": "Notification statistics retrieved", "stats": await NotificationService(db, identity).stats()}


@router.post("/read-all")
async def mark_all_read(
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    updated = await NotificationService(db, identity).mark_all_read()
    return {"message": f"{updated} notifications marked as read", "count": updated}


@router.get("/{notification_id}")
async def get_notification(
    notification_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    notification = await NotificationService(db, identity).get_own(notification_id)
    return {"message": "Notification retrieved", "notification": NotificationResponse.model_validate(notification)}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    notification = await NotificationService(db, identity).mark_read(notification_id)
    return {"message": "Notification marked as read", "notification": NotificationResponse.model_validate(notification)}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await NotificationService(db, identity).delete_own(notification_id)
    return {"message": "Notification deleted"}
