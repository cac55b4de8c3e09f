from typing import List, Optional

from sqlalchemy import or_, select

from school_api.core.errors import BusinessRuleError, ConflictError, ValidationError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import AcademicYear, Class, Lesson, Room, Term, Timetable, TimetableSlot
from school_api.schemas.enums import DayOfWeek, UserRole
from school_api.schemas.timetable import (
    TimetableCreateRequest,
    TimetableSlotCreateRequest,
    TimetableUpdateRequest
)
from school_api.services.base_service import BaseService


class TimetableService(BaseService):

    async def _ensure_no_active_overlap(
        self,
        school_id: int,
        term_id: Optional[int],
        effective_from,
        effective_to,
        exclude_id: Optional[int] = None
    ) -> None:
        stmt = select(Timetable.id).where(
            Timetable.school_id == school_id,
            Timetable.is_active.is_(True),
            Timetable.term_id == term_id if term_id is not None else Timetable.term_id.is_(None),
            Timetable.effective_from <= effective_to,
            effective_from <= Timetable.effective_to
        )
        if exclude_id is not None:
            stmt = stmt.where(Timetable.id != exclude_id)
        if (await self.db.execute(stmt.limit(1))).first() is not None:
            raise ConflictError("An active timetable already covers these dates for this term")

    async def create_timetable(self, data: TimetableCreateRequest) -> Timetable:
        school_id = await self.target_school(data.school_id)
        await self.ensure_in_tenant(AcademicYear, data.academic_year_id, school_id, "Academic year")
        if data.term_id is not None:
            term = await self.ensure_in_tenant(Term, data.term_id, school_id, "Term")
            if term.academic_year_id != data.academic_year_id:
                raise BusinessRuleError("Term does not belong to the given academic year")
        if data.is_active:
            await self._ensure_no_active_overlap(school_id, data.term_id, data.effective_from, data.effective_to)

        timetable = Timetable(
            school_id=school_id,
            name=data.name,
            academic_year_id=data.academic_year_id,
            term_id=data.term_id,
            effective_from=data.effective_from,
            effective_to=data.effective_to,
            is_active=data.is_active
        )
        self.db.add(timetable)
        await self.commit(timetable)
        self.log_write("created", "Timetable", timetable.id, school_id)
        return timetable

    async def list_timetables(
        self,
        pagination: Pagination,
        term_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Timetable)
        if term_id is not None:
            stmt = stmt.where(Timetable.term_id == term_id)
        if is_active is not None:
            stmt = stmt.where(Timetable.is_active.is_(is_active))
        return await self.list_page(
            stmt, Timetable, pagination, ResourceKind.SCHOOL, school_id,
            order_by=[Timetable.effective_from.desc()]
        )

    async def get_timetable(self, timetable_id: int) -> Timetable:
        return await self.get_visible(Timetable, timetable_id, ResourceKind.SCHOOL, "Timetable")

    async def update_timetable(self, timetable_id: int, data: TimetableUpdateRequest) -> Timetable:
        timetable = await self.get_timetable(timetable_id)
        updates = data.model_dump(exclude_unset=True)
        effective_from = updates.get("effective_from") or timetable.effective_from
        effective_to = updates.get("effective_to") or timetable.effective_to
        is_active = updates["is_active"] if updates.get("is_active") is not None else timetable.is_active

        if effective_from >= effective_to:
            raise ValidationError(
                "Invalid timetable dates",
                errors=[{"field": "effective_to", "message": "effective_to must be after effective_from"}]
            )
        if is_active:
            await self._ensure_no_active_overlap(
                timetable.school_id, timetable.term_id, effective_from, effective_to, exclude_id=timetable.id
            )

        self.apply_updates(timetable, {k: v for k, v in updates.items() if v is not None})
        await self.commit(timetable)
        self.log_write("updated", "Timetable", timetable.id, timetable.school_id)
        return timetable

    async def delete_timetable(self, timetable_id: int) -> None:
        timetable = await self.get_timetable(timetable_id)
        counts = {"slots": await self.count(TimetableSlot, TimetableSlot.timetable_id == timetable.id)}
        self.ensure_no_dependents(counts, "Cannot delete timetable with scheduled slots")
        await self.delete(timetable)
        self.log_write("deleted", "Timetable", timetable_id, timetable.school_id)

    # Slots

    async def add_slot(self, timetable_id: int, data: TimetableSlotCreateRequest) -> TimetableSlot:
        timetable = await self.get_timetable(timetable_id)
        school_id = timetable.school_id
        await self.ensure_in_tenant(Class, data.class_id, school_id, "Class")

        teacher_id = data.teacher_id
        if data.lesson_id is not None:
            lesson = await self.ensure_in_tenant(Lesson, data.lesson_id, school_id, "Lesson")
            if lesson.class_id != data.class_id:
                raise BusinessRuleError("Lesson is taught to a different class")
            teacher_id = teacher_id or lesson.teacher_id
        if data.room_id is not None:
            await self.ensure_in_tenant(Room, data.room_id, school_id, "Room")
        if teacher_id is not None:
            await self.ensure_member(teacher_id, school_id, [UserRole.TEACHER], "Teacher")

        # Slots are half-open: one may start when the previous ends
        clash = [TimetableSlot.class_id == data.class_id]
        if data.room_id is not None:
            clash.append(TimetableSlot.room_id == data.room_id)
        if teacher_id is not None:
            clash.append(TimetableSlot.teacher_id == teacher_id)
        stmt = select(TimetableSlot).where(
            TimetableSlot.timetable_id == timetable.id,
            TimetableSlot.day == data.day.value,
            or_(*clash),
            TimetableSlot.start_time < data.end_time,
            data.start_time < TimetableSlot.end_time
        )
        conflict = (await self.db.execute(stmt.limit(1))).scalar_one_or_none()
        if conflict is not None:
            if conflict.class_id == data.class_id:
                what = "Class"
            elif data.room_id is not None and conflict.room_id == data.room_id:
                what = "Room"
            else:
                what = "Teacher"
            raise ConflictError(f"{what} already has a slot at this time on {data.day.value}")

        slot = TimetableSlot(
            school_id=school_id,
            timetable_id=timetable.id,
            day=data.day.value,
            start_time=data.start_time,
            end_time=data.end_time,
            period=data.period,
            class_id=data.class_id,
            lesson_id=data.lesson_id,
            room_id=data.room_id,
            teacher_id=teacher_id
        )
        self.db.add(slot)
        await self.commit(slot)
        self.log_write("created", "TimetableSlot", slot.id, school_id)
        return slot

    async def list_slots(
        self,
        timetable_id: int,
        class_id: Optional[int] = None,
        day: Optional[DayOfWeek] = None
    ) -> List[TimetableSlot]:
        timetable = await self.get_timetable(timetable_id)
        stmt = select(TimetableSlot).where(TimetableSlot.timetable_id == timetable.id)
        if class_id is not None:
            stmt = stmt.where(TimetableSlot.class_id == class_id)
        if day is not None:
            stmt = stmt.where(TimetableSlot.day == day.value)
        stmt = self.scoped(stmt, TimetableSlot, ResourceKind.CLASS)
        result = await self.db.execute(stmt.order_by(TimetableSlot.day, TimetableSlot.start_time))
        return list(result.scalars().all())

    async def delete_slot(self, timetable_id: int, slot_id: int) -> None:
        timetable = await self.get_timetable(timetable_id)
        slot = await self.get_visible(TimetableSlot, slot_id, ResourceKind.SCHOOL, "Timetable slot")
        if slot.timetable_id != timetable.id:
            raise ValidationError(
                "Slot does not belong to this timetable",
                errors=[{"field": "slot_id", "message": "Slot belongs to another timetable"}]
            )
        await self.delete(slot)
        self.log_write("deleted", "TimetableSlot", slot_id, timetable.school_id)
