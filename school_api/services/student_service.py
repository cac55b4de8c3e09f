from typing import List, Optional

from sqlalchemy import or_, select

from school_api.core.errors import BusinessRuleError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Attendance,
    Class,
    ExamResult,
    Grade,
    Guardianship,
    ReportCard,
    Student,
    User
)
from school_api.schemas.enums import UserRole
from school_api.schemas.student import StudentCreateRequest, StudentUpdateRequest
from school_api.services.base_service import BaseService


class StudentService(BaseService):

    async def _check_class_capacity(self, class_id: int, school_id: int, exclude_student_id: Optional[int] = None) -> None:
        school_class = await self.ensure_in_tenant(Class, class_id, school_id, "Class")
        conditions = [Student.class_id == class_id, Student.is_active.is_(True)]
        if exclude_student_id is not None:
            conditions.append(Student.id != exclude_student_id)
        enrolled = await self.count(Student, *conditions)
        if enrolled >= school_class.capacity:
            raise BusinessRuleError(f"Class {school_class.name} is at full capacity ({school_class.capacity})")

    async def create_student(self, data: StudentCreateRequest) -> Student:
        school_id = await self.target_school(data.school_id)
        await self.ensure_unique(
            Student,
            [Student.school_id == school_id, Student.registration_number == data.registration_number],
            "Student with this registration number already exists"
        )
        if data.class_id is not None:
            await self._check_class_capacity(data.class_id, school_id)
        if data.grade_id is not None:
            await self.ensure_in_tenant(Grade, data.grade_id, school_id, "Grade")
        for parent_id in data.parent_ids:
            await self.ensure_member(parent_id, school_id, [UserRole.PARENT], "Parent")

        async with self.transaction():
            student = Student(
                school_id=school_id,
                registration_number=data.registration_number,
                name=data.name,
                surname=data.surname,
                sex=data.sex.value,
                birthday=data.birthday,
                address=data.address,
                image_url=data.image_url,
                blood_type=data.blood_type,
                class_id=data.class_id,
                grade_id=data.grade_id
            )
            self.db.add(student)
            await self.db.flush()
            for index, parent_id in enumerate(sorted(set(data.parent_ids))):
                self.db.add(Guardianship(student_id=student.id, parent_id=parent_id, is_primary=index == 0))

        await self.db.refresh(student)
        self.log_write("created", "Student", student.id, school_id)
        return student

    async def list_students(
        self,
        pagination: Pagination,
        search: Optional[str] = None,
        class_id: Optional[int] = None,
        grade_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Student)
        if search:
            term = self.like(search)
            stmt = stmt.where(or_(
                Student.name.ilike(term),
                Student.surname.ilike(term),
                Student.registration_number.ilike(term)
            ))
        if class_id is not None:
            stmt = stmt.where(Student.class_id == class_id)
        if grade_id is not None:
            stmt = stmt.where(Student.grade_id == grade_id)
        if is_active is not None:
            stmt = stmt.where(Student.is_active.is_(is_active))
        return await self.list_page(
            stmt, Student, pagination, ResourceKind.STUDENT, school_id,
            order_by=[Student.surname, Student.name, Student.id]
        )

    async def get_student(self, student_id: int) -> Student:
        return await self.get_visible(Student, student_id, ResourceKind.STUDENT, "Student")

    async def guardians_of(self, student_id: int) -> List[User]:
        stmt = (
            select(User)
            .join(Guardianship, Guardianship.parent_id == User.id)
            .where(Guardianship.student_id == student_id)
            .order_by(Guardianship.is_primary.desc(), User.id)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def update_student(self, student_id: int, data: StudentUpdateRequest) -> Student:
        student = await self.get_student(student_id)
        updates = data.model_dump(exclude_unset=True)

        if updates.get("registration_number"):
            await self.ensure_unique(
                Student,
                [Student.school_id == student.school_id, Student.registration_number == updates["registration_number"]],
                "Student with this registration number already exists",
                exclude_id=student.id
            )
        if updates.get("class_id") is not None and updates["class_id"] != student.class_id:
            await self._check_class_capacity(updates["class_id"], student.school_id, student.id)
        if updates.get("grade_id") is not None:
            await self.ensure_in_tenant(Grade, updates["grade_id"], student.school_id, "Grade")

        self.apply_updates(student, updates)
        await self.commit(student)
        self.log_write("updated", "Student", student.id, student.school_id)
        return student

    async def delete_student(self, student_id: int) -> None:
        student = await self.get_student(student_id)
        counts = {
            "attendance": await self.count(Attendance, Attendance.student_id == student.id),
            "results": await self.count(ExamResult, ExamResult.student_id == student.id),
            "reportCards": await self.count(ReportCard, ReportCard.student_id == student.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete student with academic records")

        async with self.transaction():
            for link in (await self.db.execute(
                select(Guardianship).where(Guardianship.student_id == student.id)
            )).scalars().all():
                await self.db.delete(link)
            await self.db.delete(student)
        self.log_write("deleted", "Student", student_id, student.school_id)
