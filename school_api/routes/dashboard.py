from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import Database, get_database, get_db
from school_api.core.permissions import require_any_role
from school_api.core.tenancy import Identity
from school_api.services.dashboard_service import DashboardService

router = APIRouter(tags=["Dashboard"])


@router.get("")
async def dashboard(
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database)
) -> Dict[str, Any]:
    """Role-shaped landing data for the caller"""
    data = await DashboardService(db, identity, database).for_caller()
    return {"message": "Dashboard retrieved", "dashboard": data}
