from datetime import date, datetime, time
from typing import Any, Dict, Optional

from sqlalchemy import select, update

from school_api.core.errors import BusinessRuleError, ConflictError, ValidationError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import AcademicYear, Event, Exam, Holiday, ReportCard, Term, Timetable
from school_api.schemas.calendar import (
    AcademicYearCreateRequest,
    AcademicYearUpdateRequest,
    HolidayCreateRequest,
    HolidayUpdateRequest,
    TermCreateRequest,
    TermUpdateRequest
)
from school_api.services.base_service import BaseService


def _check_order(start, end, strict: bool = True) -> None:
    if (strict and start >= end) or (not strict and start > end):
        raise ValidationError(
            "Invalid date range",
            errors=[{"field": "end_date", "message": "end_date must be after start_date"}]
        )


class CalendarService(BaseService):
    """Academic years, terms and holidays, plus the combined calendar view"""

    async def _ensure_no_overlap(self, model, scope, start: date, end: date, message: str, exclude_id: Optional[int] = None):
        # Closed ranges [a, b] and [c, d] overlap iff a <= d and c <= b
        stmt = select(model.id).where(*scope, model.start_date <= end, start <= model.end_date)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if (await self.db.execute(stmt.limit(1))).first() is not None:
            raise ConflictError(message)

    async def _clear_current(self, model, *scope) -> None:
        await self.db.execute(update(model).where(*scope).values(is_current=False))

    # Academic years

    async def create_academic_year(self, data: AcademicYearCreateRequest) -> AcademicYear:
        school_id = await self.target_school(data.school_id)
        await self._ensure_no_overlap(
            AcademicYear, [AcademicYear.school_id == school_id], data.start_date, data.end_date,
            "Academic year overlaps with an existing academic year"
        )

        async with self.transaction():
            if data.is_current:
                await self._clear_current(AcademicYear, AcademicYear.school_id == school_id)
            year = AcademicYear(
                school_id=school_id,
                name=data.name,
                start_date=data.start_date,
                end_date=data.end_date,
                is_current=data.is_current
            )
            self.db.add(year)

        await self.db.refresh(year)
        self.log_write("created", "AcademicYear", year.id, school_id)
        return year

    async def list_academic_years(self, pagination: Pagination, school_id: Optional[int] = None):
        return await self.list_page(
            select(AcademicYear), AcademicYear, pagination, ResourceKind.SCHOOL, school_id,
            order_by=[AcademicYear.start_date.desc()]
        )

    async def get_academic_year(self, year_id: int) -> AcademicYear:
        return await self.get_visible(AcademicYear, year_id, ResourceKind.SCHOOL, "Academic year")

    async def update_academic_year(self, year_id: int, data: AcademicYearUpdateRequest) -> AcademicYear:
        year = await self.get_academic_year(year_id)
        updates = data.model_dump(exclude_unset=True)
        start = updates.get("start_date") or year.start_date
        end = updates.get("end_date") or year.end_date

        if "start_date" in updates or "end_date" in updates:
            _check_order(start, end)
            await self._ensure_no_overlap(
                AcademicYear, [AcademicYear.school_id == year.school_id], start, end,
                "Academic year overlaps with an existing academic year", exclude_id=year.id
            )

        async with self.transaction():
            if updates.get("is_current"):
                await self._clear_current(
                    AcademicYear, AcademicYear.school_id == year.school_id, AcademicYear.id != year.id
                )
            self.apply_updates(year, {k: v for k, v in updates.items() if v is not None})

        await self.db.refresh(year)
        self.log_write("updated", "AcademicYear", year.id, year.school_id)
        return year

    async def delete_academic_year(self, year_id: int) -> None:
        year = await self.get_academic_year(year_id)
        counts = {
            "terms": await self.count(Term, Term.academic_year_id == year.id),
            "timetables": await self.count(Timetable, Timetable.academic_year_id == year.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete academic year with terms or timetables")
        await self.delete(year)
        self.log_write("deleted", "AcademicYear", year_id, year.school_id)

    # Terms

    def _check_inside_year(self, year: AcademicYear, start: date, end: date) -> None:
        if start < year.start_date or end > year.end_date:
            raise BusinessRuleError(
                f"Term must fall within academic year {year.name} "
                f"({year.start_date.isoformat()} to {year.end_date.isoformat()})"
            )

    async def create_term(self, data: TermCreateRequest) -> Term:
        year = await self.get_academic_year(data.academic_year_id)
        self._check_inside_year(year, data.start_date, data.end_date)
        await self._ensure_no_overlap(
            Term, [Term.academic_year_id == year.id], data.start_date, data.end_date,
            "Term dates overlap with an existing term"
        )

        async with self.transaction():
            if data.is_current:
                await self._clear_current(Term, Term.school_id == year.school_id)
            term = Term(
                school_id=year.school_id,
                academic_year_id=year.id,
                name=data.name,
                start_date=data.start_date,
                end_date=data.end_date,
                is_current=data.is_current
            )
            self.db.add(term)

        await self.db.refresh(term)
        self.log_write("created", "Term", term.id, term.school_id)
        return term

    async def list_terms(
        self,
        pagination: Pagination,
        academic_year_id: Optional[int] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Term)
        if academic_year_id is not None:
            stmt = stmt.where(Term.academic_year_id == academic_year_id)
        return await self.list_page(
            stmt, Term, pagination, ResourceKind.SCHOOL, school_id, order_by=[Term.start_date]
        )

    async def get_term(self, term_id: int) -> Term:
        return await self.get_visible(Term, term_id, ResourceKind.SCHOOL, "Term")

    async def update_term(self, term_id: int, data: TermUpdateRequest) -> Term:
        term = await self.get_term(term_id)
        updates = data.model_dump(exclude_unset=True)
        start = updates.get("start_date") or term.start_date
        end = updates.get("end_date") or term.end_date

        if "start_date" in updates or "end_date" in updates:
            _check_order(start, end)
            year = await self.get_academic_year(term.academic_year_id)
            self._check_inside_year(year, start, end)
            await self._ensure_no_overlap(
                Term, [Term.academic_year_id == term.academic_year_id], start, end,
                "Term dates overlap with an existing term", exclude_id=term.id
            )

        async with self.transaction():
            if updates.get("is_current"):
                await self._clear_current(Term, Term.school_id == term.school_id, Term.id != term.id)
            self.apply_updates(term, {k: v for k, v in updates.items() if v is not None})

        await self.db.refresh(term)
        self.log_write("updated", "Term", term.id, term.school_id)
        return term

    async def delete_term(self, term_id: int) -> None:
        term = await self.get_term(term_id)
        counts = {
            "timetables": await self.count(Timetable, Timetable.term_id == term.id),
            "exams": await self.count(Exam, Exam.term_id == term.id),
            "reportCards": await self.count(ReportCard, ReportCard.term_id == term.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete term with existing dependencies")
        await self.delete(term)
        self.log_write("deleted", "Term", term_id, term.school_id)

    # Holidays

    async def create_holiday(self, data: HolidayCreateRequest) -> Holiday:
        school_id = await self.target_school(data.school_id)
        if data.academic_year_id is not None:
            await self.ensure_in_tenant(AcademicYear, data.academic_year_id, school_id, "Academic year")

        holiday = Holiday(
            school_id=school_id,
            name=data.name,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
            holiday_type=data.holiday_type.value,
            is_recurring=data.is_recurring,
            academic_year_id=data.academic_year_id
        )
        self.db.add(holiday)
        await self.commit(holiday)
        self.log_write("created", "Holiday", holiday.id, school_id)
        return holiday

    async def list_holidays(
        self,
        pagination: Pagination,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Holiday)
        if start_date is not None:
            stmt = stmt.where(Holiday.end_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Holiday.start_date <= end_date)
        return await self.list_page(
            stmt, Holiday, pagination, ResourceKind.SCHOOL, school_id, order_by=[Holiday.start_date]
        )

    async def get_holiday(self, holiday_id: int) -> Holiday:
        return await self.get_visible(Holiday, holiday_id, ResourceKind.SCHOOL, "Holiday")

    async def update_holiday(self, holiday_id: int, data: HolidayUpdateRequest) -> Holiday:
        holiday = await self.get_holiday(holiday_id)
        updates = data.model_dump(exclude_unset=True)
        _check_order(
            updates.get("start_date") or holiday.start_date,
            updates.get("end_date") or holiday.end_date,
            strict=False
        )
        self.apply_updates(holiday, {k: v for k, v in updates.items() if v is not None})
        await self.commit(holiday)
        self.log_write("updated", "Holiday", holiday.id, holiday.school_id)
        return holiday

    async def delete_holiday(self, holiday_id: int) -> None:
        holiday = await self.get_holiday(holiday_id)
        await self.delete(holiday)
        self.log_write("deleted", "Holiday", holiday_id, holiday.school_id)

    # Calendar view

    async def calendar_view(self, start: date, end: date, school_id: Optional[int] = None) -> Dict[str, Any]:
        """Everything dated inside [start, end] that the caller can see"""
        _check_order(start, end, strict=False)
        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end, time.max)

        async def fetch(model, stmt, kind=ResourceKind.SCHOOL):
            result = await self.db.execute(self.scoped(stmt, model, kind, school_id))
            return list(result.scalars().all())

        return {
            "range": {"start": start, "end": end},
            "academic_years": await fetch(AcademicYear, select(AcademicYear).where(
                AcademicYear.start_date <= end, start <= AcademicYear.end_date
            ).order_by(AcademicYear.start_date)),
            "terms": await fetch(Term, select(Term).where(
                Term.start_date <= end, start <= Term.end_date
            ).order_by(Term.start_date)),
            "holidays": await fetch(Holiday, select(Holiday).where(
                Holiday.start_date <= end, start <= Holiday.end_date
            ).order_by(Holiday.start_date)),
            "events": await fetch(Event, select(Event).where(
                Event.start_time <= window_end, window_start <= Event.end_time
            ).order_by(Event.start_time)),
            "exams": await fetch(Exam, select(Exam).where(
                Exam.start_time <= window_end, window_start <= Exam.end_time
            ).order_by(Exam.start_time)),
        }
