from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff, require_super_admin
from school_api.core.tenancy import Identity
from school_api.schemas.enums import VerificationStatus
from school_api.schemas.school import (
    SchoolRegistrationRequest,
    SchoolResponse,
    SchoolUpdateRequest,
    SchoolVerifyRequest
)
from school_api.schemas.user import UserResponse
from school_api.services.school_service import SchoolService

router = APIRouter(tags=["Schools"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_school(
    data: SchoolRegistrationRequest,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Public sign-up. The school starts PENDING and its administrator cannot
    sign in until a super admin approves it.
    """
    created = await SchoolService(db).register_school(data)
    return {
        "message": "School registered and awaiting verification",
        "school": SchoolResponse.model_validate(created["school"]),
        "admin": UserResponse.model_validate(created["admin"])
    }


@router.get("")
async def list_schools(
    search: Optional[str] = Query(None),
    verification_status: Optional[VerificationStatus] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    schools, meta = await SchoolService(db, identity).list_schools(pagination, search, verification_status)
    return {
        "message": "Schools retrieved",
        "schools": [SchoolResponse.model_validate(school) for school in schools],
        "pagination": meta
    }


@router.get("/{school_id}")
async def get_school(
    school_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    school = await SchoolService(db, identity).get_school(school_id)
    return {"message": "School retrieved", "school": SchoolResponse.model_validate(school)}


@router.get("/{school_id}/stats")
async def get_school_stats(
    school_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    stats = await SchoolService(db, identity).get_school_stats(school_id)
    return {"message": "School statistics retrieved", "stats": stats}


@router.patch("/{school_id}")
async def update_school(
    school_id: int,
    data: SchoolUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    school = await SchoolService(db, identity).update_school(school_id, data)
    return {"message": "School updated", "school": SchoolResponse.model_validate(school)}


@router.post("/{school_id}/verify")
async def verify_school(
    school_id: int,
    data: SchoolVerifyRequest,
    identity: Identity = Depends(require_super_admin()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    school = await SchoolService(db, identity).verify_school(school_id, data)
    return {
        "message": f"School {school.verification_status.lower()}",
        "school": SchoolResponse.model_validate(school)
    }


@router.delete("/{school_id}")
async def delete_school(
    school_id: int,
    identity: Identity = Depends(require_super_admin()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await SchoolService(db, identity).delete_school(school_id)
    return {"message": "School deleted"}
