from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select

from school_api.core.errors import NotFoundError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import AcademicYear, FeeBreakdownItem, FeeOverride, FeeStructure, Student
from school_api.schemas.enums import FeeType
from school_api.schemas.fee import (
    FeeItemCreateRequest,
    FeeItemUpdateRequest,
    FeeOverrideRequest,
    FeeStructureCreateRequest,
    FeeStructureUpdateRequest
)
from school_api.services.base_service import BaseService


def final_amount(item: FeeBreakdownItem, override: Optional[FeeOverride]) -> float:
    """What one student owes for an item: 0 when exempt, else the override or the base amount"""
    if override is None:
        return item.amount
    if override.is_exempt:
        return 0.0
    return override.override_amount if override.override_amount is not None else item.amount


class FeeService(BaseService):
    """
    Fee structures per academic year. A structure's amount is the sum of its
    breakdown items; per-student overrides adjust or waive single items.
    """

    def _new_item(self, structure_id: int, data: FeeItemCreateRequest) -> FeeBreakdownItem:
        return FeeBreakdownItem(
            fee_structure_id=structure_id,
            name=data.name,
            description=data.description,
            amount=data.amount,
            is_mandatory=data.is_mandatory,
            is_recurring=data.is_recurring,
            frequency=self.enum_value(data.frequency)
        )

    async def _recompute(self, structure: FeeStructure) -> None:
        await self.db.flush()
        total = (await self.db.execute(
            select(func.coalesce(func.sum(FeeBreakdownItem.amount), 0.0))
            .where(FeeBreakdownItem.fee_structure_id == structure.id)
        )).scalar_one()
        structure.amount = round(float(total), 2)

    async def items_for(self, structure_id: int) -> List[FeeBreakdownItem]:
        rows = await self.db.execute(
            select(FeeBreakdownItem)
            .where(FeeBreakdownItem.fee_structure_id == structure_id)
            .order_by(FeeBreakdownItem.id)
        )
        return list(rows.scalars().all())

    # Structures

    async def create_structure(self, data: FeeStructureCreateRequest) -> FeeStructure:
        school_id = await self.target_school(data.school_id)
        await self.ensure_in_tenant(AcademicYear, data.academic_year_id, school_id, "Academic year")

        async with self.transaction():
            structure = FeeStructure(
                school_id=school_id,
                name=data.name,
                description=data.description,
                academic_year_id=data.academic_year_id,
                fee_type=data.fee_type.value,
                currency=data.currency.upper(),
                due_date=data.due_date,
                grace_period_days=data.grace_period_days,
                late_fee=data.late_fee,
                amount=0.0
            )
            self.db.add(structure)
            await self.db.flush()
            self.db.add_all([self._new_item(structure.id, item) for item in data.items])
            await self._recompute(structure)

        await self.db.refresh(structure)
        self.log_write(f"created with {len(data.items)} items", "FeeStructure", structure.id, school_id)
        return structure

    async def list_structures(
        self,
        pagination: Pagination,
        academic_year_id: Optional[int] = None,
        fee_type: Optional[FeeType] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(FeeStructure)
        if academic_year_id is not None:
            stmt = stmt.where(FeeStructure.academic_year_id == academic_year_id)
        if fee_type is not None:
            stmt = stmt.where(FeeStructure.fee_type == fee_type.value)
        return await self.list_page(
            stmt, FeeStructure, pagination, ResourceKind.SCHOOL, school_id,
            order_by=[FeeStructure.created_at.desc(), FeeStructure.id.desc()]
        )

    async def get_structure(self, structure_id: int) -> FeeStructure:
        return await self.get_visible(FeeStructure, structure_id, ResourceKind.SCHOOL, "Fee structure")

    async def update_structure(self, structure_id: int, data: FeeStructureUpdateRequest) -> FeeStructure:
        structure = await self.get_structure(structure_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        self.apply_updates(structure, updates)
        await self.commit(structure)
        self.log_write("updated", "FeeStructure", structure.id, structure.school_id)
        return structure

    # Items

    async def _item(self, item_id: int) -> Tuple[FeeBreakdownItem, FeeStructure]:
        stmt = (
            select(FeeBreakdownItem, FeeStructure)
            .join(FeeStructure, FeeStructure.id == FeeBreakdownItem.fee_structure_id)
            .where(FeeBreakdownItem.id == item_id)
        )
        row = (await self.db.execute(self.scoped(stmt, FeeStructure, ResourceKind.SCHOOL))).first()
        if row is None:
            raise NotFoundError("Fee breakdown item not found")
        return row[0], row[1]

    async def add_item(self, structure_id: int, data: FeeItemCreateRequest) -> FeeBreakdownItem:
        structure = await self.get_structure(structure_id)
        async with self.transaction():
            item = self._new_item(structure.id, data)
            self.db.add(item)
            await self._recompute(structure)
        await self.db.refresh(item)
        self.log_write(f"added item {item.id}", "FeeStructure", structure.id, structure.school_id)
        return item

    async def update_item(self, item_id: int, data: FeeItemUpdateRequest) -> FeeBreakdownItem:
        item, structure = await self._item(item_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        async with self.transaction():
            self.apply_updates(item, updates)
            if "amount" in updates:
                await self._recompute(structure)
        await self.db.refresh(item)
        self.log_write(f"updated item {item.id}", "FeeStructure", structure.id, structure.school_id)
        return item

    async def delete_item(self, item_id: int) -> FeeStructure:
        item, structure = await self._item(item_id)
        async with self.transaction():
            await self.db.delete(item)
            await self._recompute(structure)
        await self.db.refresh(structure)
        self.log_write(f"deleted item {item_id}", "FeeStructure", structure.id, structure.school_id)
        return structure

    async def set_override(self, item_id: int, student_id: int, data: FeeOverrideRequest) -> FeeOverride:
        item, structure = await self._item(item_id)
        await self.ensure_in_tenant(Student, student_id, structure.school_id, "Student")

        stmt = select(FeeOverride).where(FeeOverride.item_id == item.id, FeeOverride.student_id == student_id)
        override = (await self.db.execute(stmt)).scalar_one_or_none()
        if override is None:
            override = FeeOverride(item_id=item.id, student_id=student_id)
            self.db.add(override)
        override.override_amount = None if data.is_exempt else data.override_amount
        override.is_exempt = data.is_exempt
        override.reason = data.reason

        await self.commit(override)
        self.log_write(f"fee override on item {item.id}", "Student", student_id, structure.school_id)
        return override

    # Student view

    async def student_breakdown(self, student_id: int) -> Dict[str, Any]:
        """Every structure of the student's current academic year with overrides applied"""
        student = await self.get_visible(Student, student_id, ResourceKind.STUDENT, "Student")
        year = (await self.db.execute(
            select(AcademicYear).where(AcademicYear.school_id == student.school_id, AcademicYear.is_current.is_(True))
        )).scalars().first()
        if year is None:
            raise NotFoundError("No current academic year found")

        structures = (await self.db.execute(
            select(FeeStructure)
            .where(
                FeeStructure.school_id == student.school_id,
                FeeStructure.academic_year_id == year.id,
                FeeStructure.is_active.is_(True)
            )
            .order_by(FeeStructure.id)
        )).scalars().all()

        rows = (await self.db.execute(
            select(FeeBreakdownItem, FeeOverride)
            .outerjoin(
                FeeOverride,
                (FeeOverride.item_id == FeeBreakdownItem.id) & (FeeOverride.student_id == student.id)
            )
            .where(FeeBreakdownItem.fee_structure_id.in_([s.id for s in structures]))
            .order_by(FeeBreakdownItem.id)
        )).all()

        items_by_structure: Dict[int, List[Dict[str, Any]]] = {}
        for item, override in rows:
            items_by_structure.setdefault(item.fee_structure_id, []).append({
                "id": item.id,
                "name": item.name,
                "description": item.description,
                "base_amount": item.amount,
                "final_amount": final_amount(item, override),
                "is_mandatory": item.is_mandatory,
                "is_recurring": item.is_recurring,
                "frequency": item.frequency,
                "has_override": override is not None,
                "override_reason": override.reason if override else None,
                "is_exempt": bool(override and override.is_exempt)
            })

        breakdown = []
        for structure in structures:
            items = items_by_structure.get(structure.id, [])
            breakdown.append({
                "fee_structure_id": structure.id,
                "name": structure.name,
                "fee_type": structure.fee_type,
                "currency": structure.currency,
                "due_date": structure.due_date,
                "grace_period_days": structure.grace_period_days,
                "late_fee": structure.late_fee,
                "items": items,
                "total_amount": round(sum(item["final_amount"] for item in items), 2)
            })

        return {
            "student": {
                "id": student.id,
                "name": student.full_name,
                "registration_number": student.registration_number
            },
            "academic_year": {"id": year.id, "name": year.name},
            "fee_structures": breakdown,
            "grand_total": round(sum(entry["total_amount"] for entry in breakdown), 2)
        }
