from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_staff
from school_api.core.tenancy import Identity
from school_api.schemas.attendance import AttendanceRecordRequest, AttendanceResponse, BulkAttendanceRequest
from school_api.services.attendance_service import AttendanceService

router = APIRouter(tags=["Attendance"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def record_attendance(
    data: AttendanceRecordRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    record = await AttendanceService(db, identity).record(data)
    return {"message": "Attendance recorded", "attendance": AttendanceResponse.model_validate(record)}


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def record_bulk_attendance(
    data: BulkAttendanceRequest,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Mark a whole register at once; existing marks for the same day and lesson are replaced"""
    records = await AttendanceService(db, identity).record_bulk(data)
    return {
        "message": f"Attendance recorded for {len(records)} students",
        "attendance": [AttendanceResponse.model_validate(record) for record in records]
    }


@router.get("")
async def list_attendance(
    student_id: Optional[int] = Query(None),
    class_id: Optional[int] = Query(None),
    lesson_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    present: Optional[bool] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    records, meta = await AttendanceService(db, identity).list_records(
        pagination, student_id, class_id, lesson_id, date_from, date_to, present, school_id
    )
    return {
        "message": "Attendance retrieved",
        "attendance": [AttendanceResponse.model_validate(record) for record in records],
        "pagination": meta
    }


@router.get("/students/{student_id}/summary")
async def student_attendance_summary(
    student_id: int,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    summary = await AttendanceService(db, identity).student_summary(student_id, date_from, date_to)
    return {"message": "Attendance summary retrieved", "summary": summary}


@router.delete("/{record_id}")
async def delete_attendance(
    record_id: int,
    identity: Identity = Depends(require_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await AttendanceService(db, identity).delete_record(record_id)
    return {"message": "Attendance record deleted"}
