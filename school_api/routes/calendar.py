from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.schemas.calendar import (
    AcademicYearCreateRequest,
    AcademicYearResponse,
    AcademicYearUpdateRequest,
    HolidayCreateRequest,
    HolidayResponse,
    HolidayUpdateRequest,
    TermCreateRequest,
    TermResponse,
    TermUpdateRequest
)
from school_api.schemas.event import EventResponse
from school_api.schemas.exam import ExamResponse
from school_api.services.calendar_service import CalendarService

router = APIRouter(tags=["Academic Calendar"])


# Academic years

@router.post("/years", status_code=status.HTTP_201_CREATED)
async def create_academic_year(
    data: AcademicYearCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    year = await CalendarService(db, identity).create_academic_year(data)
    return {"message": "Academic year created", "academic_year": AcademicYearResponse.model_validate(year)}


@router.get("/years")
async def list_academic_years(
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    years, meta = await CalendarService(db, identity).list_academic_years(pagination, school_id)
    return {
        "message": "Academic years retrieved",
        "academic_years": [AcademicYearResponse.model_validate(year) for year in years],
        "pagination": meta
    }


@router.get("/years/{year_id}")
async def get_academic_year(
    year_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    year = await CalendarService(db, identity).get_academic_year(year_id)
    return {"message": "Academic year retrieved", "academic_year": AcademicYearResponse.model_validate(year)}


@router.patch("/years/{year_id}")
async def update_academic_year(
    year_id: int,
    data: AcademicYearUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    year = await CalendarService(db, identity).update_academic_year(year_id, data)
    return {"message": "Academic year updated", "academic_year": AcademicYearResponse.model_validate(year)}


@router.delete("/years/{year_id}")
async def delete_academic_year(
    year_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await CalendarService(db, identity).delete_academic_year(year_id)
    return {"message": "Academic year deleted"}


# Terms

@router.post("/terms", status_code=status.HTTP_201_CREATED)
async def create_term(
    data: TermCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    term = await CalendarService(db, identity).create_term(data)
    return {"message": "Term created", "term": TermResponse.model_validate(term)}


@router.get("/terms")
async def list_terms(
    academic_year_id: Optional[int] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    terms, meta = await CalendarService(db, identity).list_terms(pagination, academic_year_id, school_id)
    return {
        "message": "Terms retrieved",
        "terms": [TermResponse.model_validate(term) for term in terms],
        "pagination": meta
    }


@router.get("/terms/{term_id}")
async def get_term(
    term_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    term = await CalendarService(db, identity).get_term(term_id)
    return {"message": "Term retrieved", "term": TermResponse.model_validate(term)}


@router.patch("/terms/{term_id}")
async def update_term(
    term_id: int,
    data: TermUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    term = await CalendarService(db, identity).update_term(term_id, data)
    return {"message": "Term updated", "term": TermResponse.model_validate(term)}


@router.delete("/terms/{term_id}")
async def delete_term(
    term_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await CalendarService(db, identity).delete_term(term_id)
    return {"message": "Term deleted"}


# Holidays

@router.post("/holidays", status_code=status.HTTP_201_CREATED)
async def create_holiday(
    data: HolidayCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    holiday = await CalendarService(db, identity).create_holiday(data)
    return {"message": "Holiday created", "holiday": HolidayResponse.model_validate(holiday)}


@router.get("/holidays")
async def list_holidays(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    holidays, meta = await CalendarService(db, identity).list_holidays(pagination, start_date, end_date, school_id)
    return {
        "message": "Holidays retrieved",
        "holidays": [HolidayResponse.model_validate(holiday) for holiday in holidays],
        "pagination": meta
    }


@router.get("/holidays/{holiday_id}")
async def get_holiday(
    holiday_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    holiday = await CalendarService(db, identity).get_holiday(holiday_id)
    return {"message": "Holiday retrieved", "holiday": HolidayResponse.model_validate(holiday)}


@router.patch("/holidays/{holiday_id}")
async def update_holiday(
    holiday_id: int,
    data: HolidayUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    holiday = await CalendarService(db, identity).update_holiday(holiday_id, data)
    return {"message": "Holiday updated", "holiday": HolidayResponse.model_validate(holiday)}


@router.delete("/holidays/{holiday_id}")
async def delete_holiday(
    holiday_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await CalendarService(db, identity).delete_holiday(holiday_id)
    return {"message": "Holiday deleted"}


# Calendar view

@router.get("/view")
async def calendar_view(
    start_date: date = Query(...),
    end_date: date = Query(...),
    school_id: Optional[int] = Query(None),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Years, terms, holidays, events and exams touching the requested range"""
    view = await CalendarService(db, identity).calendar_view(start_date, end_date, school_id)
    return {
        "message": "Calendar retrieved",
        "range": view["range"],
        "academic_years": [AcademicYearResponse.model_validate(year) for year in view["academic_years"]],
        "terms": [TermResponse.model_validate(term) for term in view["terms"]],
        "holidays": [HolidayResponse.model_validate(holiday) for holiday in view["holidays"]],
        "events": [EventResponse.model_validate(event) for event in view["events"]],
        "exams": [ExamResponse.model_validate(exam) for exam in view["exams"]]
    }
