from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.schemas.enums import FeeType
from school_api.schemas.fee import (
    FeeItemCreateRequest,
    FeeItemResponse,
    FeeItemUpdateRequest,
    FeeOverrideRequest,
    FeeOverrideResponse,
    FeeStructureCreateRequest,
    FeeStructureResponse,
    FeeStructureUpdateRequest
)
from school_api.services.fee_service import FeeService

router = APIRouter(tags=["Fees"])


# Structures

@router.get("/structures")
async def list_fee_structures(
    academic_year_id: Optional[int] = Query(None),
    fee_type: Optional[FeeType] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    structures, meta = await FeeService(db, identity).list_structures(pagination, academic_year_id, fee_type, school_id)
    return {
        "message": "Fee structures retrieved",
        "fee_structures": [FeeStructureResponse.model_validate(structure) for structure in structures],
        "pagination": meta
    }


@router.post("/structures", status_code=status.HTTP_201_CREATED)
async def create_fee_structure(
    data: FeeStructureCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = FeeService(db, identity)
    structure = await service.create_structure(data)
    items = await service.items_for(structure.id)
    return {
        "message": "Fee structure created",
        "fee_structure": FeeStructureResponse.model_validate(structure),
        "items": [FeeItemResponse.model_validate(item) for item in items]
    }


@router.get("/structures/{structure_id}")
async def get_fee_structure(
    structure_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = FeeService(db, identity)
    structure = await service.get_structure(structure_id)
    items = await service.items_for(structure.id)
    return {
        "message": "Fee structure retrieved",
        "fee_structure": FeeStructureResponse.model_validate(structure),
        "items": [FeeItemResponse.model_validate(item) for item in items]
    }


@router.patch("/structures/{structure_id}")
async def update_fee_structure(
    structure_id: int,
    data: FeeStructureUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    structure = await FeeService(db, identity).update_structure(structure_id, data)
    return {"message": "Fee structure updated", "fee_structure": FeeStructureResponse.model_validate(structure)}


@router.post("/structures/{structure_id}/items", status_code=status.HTTP_201_CREATED)
async def add_fee_item(
    structure_id: int,
    data: FeeItemCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    item = await FeeService(db, identity).add_item(structure_id, data)
    return {"message": "Fee item added", "item": FeeItemResponse.model_validate(item)}


# Items and overrides

@router.patch("/items/{item_id}")
async def update_fee_item(
    item_id: int,
    data: FeeItemUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    item = await FeeService(db, identity).update_item(item_id, data)
    return {"message": "Fee item updated", "item": FeeItemResponse.model_validate(item)}


@router.delete("/items/{item_id}")
async def delete_fee_item(
    item_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    structure = await FeeService(db, identity).delete_item(item_id)
    return {"message": "Fee item deleted", "fee_structure": FeeStructureResponse.model_validate(structure)}


@router.put("/items/{item_id}/students/{student_id}/override")
async def set_fee_override(
    item_id: int,
    student_id: int,
    data: FeeOverrideRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    override = await FeeService(db, identity).set_override(item_id, student_id, data)
    return {"message": "Fee override saved", "override": FeeOverrideResponse.model_validate(override)}


@router.get("/students/{student_id}/breakdown")
async def student_fee_breakdown(
    student_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    breakdown = await FeeService(db, identity).student_breakdown(student_id)
    return {"message": "Fee breakdown retrieved", **breakdown}
