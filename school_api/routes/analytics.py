from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import Database, get_database, get_db
from school_api.core.permissions import require_any_role, require_school_staff, require_staff
from school_api.core.tenancy import Identity
from school_api.services.analytics_service import DEFAULT_WINDOW_DAYS, AnalyticsService

router = APIRouter(tags=["Analytics"])


@router.get("/school")
async def school_analytics(
    school_id: Optional[int] = Query(None),
    days: int = Query(DEFAULT_WINDOW_DAYS, ge=1, le=365),
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database)
) -> Dict[str, Any]:
    analytics = await AnalyticsService(db, identity, database).school_overview(school_id, days)
    return {"message": "School analytics retrieved", "analytics": analytics}


@router.get("/students/{student_id}")
async def student_analytics(
    student_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database)
) -> Dict[str, Any]:
    analytics = await AnalyticsService(db, identity, database).student_analytics(student_id, start_date, end_date)
    return {"message": "Student analytics retrieved", "analytics": analytics}


@router.get("/classes/{class_id}")
async def class_analytics(
    class_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database)
) -> Dict[str, Any]:
    analytics = await AnalyticsService(db, identity, database).class_analytics(class_id, start_date, end_date)
    return {"message": "Class analytics retrieved", "analytics": analytics}


@router.get("/parent-engagement")
async def parent_engagement(
    school_id: Optional[int] = Query(None),
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database)
) -> Dict[str, Any]:
    analytics = await AnalyticsService(db, identity, database).parent_engagement(school_id)
    return {"message": "Parent engagement retrieved", "analytics": analytics}
