from typing import Any, Dict, Optional

from sqlalchemy import select

from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import Class, Grade, Lesson, Student
from school_api.schemas.academic import (
    ClassCreateRequest,
    ClassUpdateRequest,
    GradeCreateRequest,
    GradeUpdateRequest
)
from school_api.schemas.enums import UserRole
from school_api.services.base_service import BaseService


class GradeService(BaseService):

    async def create_grade(self, data: GradeCreateRequest) -> Grade:
        school_id = await self.target_school(data.school_id)
        await self.ensure_unique(
            Grade,
            [Grade.school_id == school_id, Grade.level == data.level],
            f"Grade level {data.level} already exists in this school"
        )
        grade = Grade(school_id=school_id, name=data.name, level=data.level, description=data.description)
        self.db.add(grade)
        await self.commit(grade)
        self.log_write("created", "Grade", grade.id, school_id)
        return grade

    async def list_grades(self, pagination: Pagination, school_id: Optional[int] = None):
        return await self.list_page(
            select(Grade), Grade, pagination, ResourceKind.SCHOOL, school_id, order_by=[Grade.level]
        )

    async def get_grade(self, grade_id: int) -> Grade:
        return await self.get_visible(Grade, grade_id, ResourceKind.SCHOOL, "Grade")

    async def update_grade(self, grade_id: int, data: GradeUpdateRequest) -> Grade:
        grade = await self.get_grade(grade_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("level") is not None:
            await self.ensure_unique(
                Grade,
                [Grade.school_id == grade.school_id, Grade.level == updates["level"]],
                f"Grade level {updates['level']} already exists in this school",
                exclude_id=grade.id
            )
        self.apply_updates(grade, updates)
        await self.commit(grade)
        self.log_write("updated", "Grade", grade.id, grade.school_id)
        return grade

    async def delete_grade(self, grade_id: int) -> None:
        grade = await self.get_grade(grade_id)
        counts = {
            "classes": await self.count(Class, Class.grade_id == grade.id),
            "students": await self.count(Student, Student.grade_id == grade.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete grade with classes or students")
        await self.delete(grade)
        self.log_write("deleted", "Grade", grade_id, grade.school_id)


class ClassService(BaseService):

    async def validate_class_name(self, school_id: int, name: str, exclude_id: Optional[int] = None) -> None:
        """Validate class name uniqueness within a school"""
        await self.ensure_unique(
            Class,
            [Class.school_id == school_id, Class.name == name],
            f"Class '{name}' already exists in this school",
            exclude_id
        )

    async def create_class(self, data: ClassCreateRequest) -> Class:
        school_id = await self.target_school(data.school_id)
        await self.validate_class_name(school_id, data.name)
        if data.grade_id is not None:
            await self.ensure_in_tenant(Grade, data.grade_id, school_id, "Grade")
        if data.supervisor_id is not None:
            await self.ensure_member(data.supervisor_id, school_id, [UserRole.TEACHER], "Supervisor")

        new_class = Class(
            school_id=school_id,
            name=data.name,
            capacity=data.capacity,
            grade_id=data.grade_id,
            supervisor_id=data.supervisor_id
        )
        self.db.add(new_class)
        await self.commit(new_class)
        self.log_write("created", "Class", new_class.id, school_id)
        return new_class

    async def list_classes(
        self,
        pagination: Pagination,
        search: Optional[str] = None,
        grade_id: Optional[int] = None,
        supervisor_id: Optional[int] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Class)
        if search:
            stmt = stmt.where(Class.name.ilike(self.like(search)))
        if grade_id is not None:
            stmt = stmt.where(Class.grade_id == grade_id)
        if supervisor_id is not None:
            stmt = stmt.where(Class.supervisor_id == supervisor_id)
        return await self.list_page(
            stmt, Class, pagination, ResourceKind.CLASS, school_id, order_by=[Class.name]
        )

    async def get_class(self, class_id: int) -> Class:
        return await self.get_visible(Class, class_id, ResourceKind.CLASS, "Class")

    async def class_details(self, school_class: Class) -> Dict[str, Any]:
        students = await self.count(Student, Student.class_id == school_class.id, Student.is_active.is_(True))
        return {
            "student_count": students,
            "available_seats": max(school_class.capacity - students, 0),
            "lesson_count": await self.count(Lesson, Lesson.class_id == school_class.id),
        }

    async def update_class(self, class_id: int, data: ClassUpdateRequest) -> Class:
        school_class = await self.get_class(class_id)
        updates = data.model_dump(exclude_unset=True)

        if updates.get("name"):
            await self.validate_class_name(school_class.school_id, updates["name"], school_class.id)
        if updates.get("grade_id") is not None:
            await self.ensure_in_tenant(Grade, updates["grade_id"], school_class.school_id, "Grade")
        if updates.get("supervisor_id") is not None:
            await self.ensure_member(
                updates["supervisor_id"], school_class.school_id, [UserRole.TEACHER], "Supervisor"
            )

        self.apply_updates(school_class, updates)
        await self.commit(school_class)
        self.log_write("updated", "Class", school_class.id, school_class.school_id)
        return school_class

    async def delete_class(self, class_id: int) -> None:
        school_class = await self.get_class(class_id)
        counts = {
            "students": await self.count(Student, Student.class_id == school_class.id),
            "lessons": await self.count(Lesson, Lesson.class_id == school_class.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete class with students or lessons")
        await self.delete(school_class)
        self.log_write("deleted", "Class", class_id, school_class.school_id)
