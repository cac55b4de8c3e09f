import secrets
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, insert, or_, select

from school_api.core.errors import NotFoundError
from school_api.core.pagination import Pagination
from school_api.core.security import get_password_hash
from school_api.core.tenancy import ResourceKind
from school_api.models import Class, Guardianship, Lesson, Student, Subject, User, subject_teachers
from school_api.schemas.enums import NotificationType, UserRole, VerificationStatus
from school_api.schemas.user import (
    LinkChildRequest,
    ParentCreateRequest,
    ParentUpdateRequest,
    PrincipalCreateRequest,
    PrincipalUpdateRequest,
    PrincipalVerifyRequest,
    TeacherCreateRequest,
    TeacherUpdateRequest
)
from school_api.services.base_service import BaseService
from school_api.services.notification_service import NotificationService


class UserService(BaseService):
    """Principal, teacher and parent accounts. All are ``User`` rows told apart by role."""

    async def validate_credentials_unique(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
        exclude_id: Optional[int] = None
    ) -> None:
        if email is not None:
            await self.ensure_unique(User, [User.email == email], "User with this email already exists", exclude_id)
        if username is not None:
            await self.ensure_unique(User, [User.username == username], "Username already taken", exclude_id)

    def _new_user(self, data, role: UserRole, school_id: int, password: Optional[str] = None, **extra) -> User:
        extra.setdefault("is_verified", True)
        return User(
            email=data.email,
            username=data.username,
            password_hash=get_password_hash(password or data.password),
            name=data.name,
            surname=data.surname,
            phone=data.phone,
            address=data.address,
            sex=self.enum_value(data.sex) if data.sex else None,
            birthday=data.birthday,
            image_url=data.image_url,
            role=role.value,
            school_id=school_id,
            **extra
        )

    async def _list_role(
        self,
        role: UserRole,
        pagination: Pagination,
        search: Optional[str],
        school_id: Optional[int],
        *conditions
    ):
        stmt = select(User).where(User.role == role.value, *conditions)
        if search:
            term = self.like(search)
            stmt = stmt.where(or_(User.name.ilike(term), User.surname.ilike(term), User.email.ilike(term)))
        return await self.list_page(
            stmt, User, pagination, ResourceKind.SCHOOL, school_id, order_by=[User.surname, User.name]
        )

    async def _get_role(self, user_id: int, role: UserRole, label: str) -> User:
        stmt = self.scoped(
            select(User).where(User.id == user_id, User.role == role.value), User, ResourceKind.SCHOOL
        )
        user = (await self.db.execute(stmt)).scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"{label} not found")
        return user

    # Teachers

    async def create_teacher(self, data: TeacherCreateRequest) -> User:
        school_id = await self.target_school(data.school_id)
        await self.validate_credentials_unique(data.email, data.username)
        for subject_id in data.subject_ids:
            await self.ensure_in_tenant(Subject, subject_id, school_id, "Subject")

        async with self.transaction():
            teacher = self._new_user(
                data, UserRole.TEACHER, school_id,
                qualifications=data.qualifications,
                bio=data.bio
            )
            self.db.add(teacher)
            await self.db.flush()
            if data.subject_ids:
                await self.db.execute(insert(subject_teachers), [
                    {"subject_id": subject_id, "teacher_id": teacher.id}
                    for subject_id in sorted(set(data.subject_ids))
                ])

        await self.db.refresh(teacher)
        self.log_write("created", "Teacher", teacher.id, school_id)
        return teacher

    async def list_teachers(self, pagination: Pagination, search: Optional[str] = None, school_id: Optional[int] = None):
        return await self._list_role(UserRole.TEACHER, pagination, search, school_id)

    async def get_teacher(self, teacher_id: int) -> User:
        return await self._get_role(teacher_id, UserRole.TEACHER, "Teacher")

    async def teacher_details(self, teacher: User) -> Dict[str, Any]:
        subject_ids = (await self.db.execute(
            select(subject_teachers.c.subject_id).where(subject_teachers.c.teacher_id == teacher.id)
        )).scalars().all()
        supervised = (await self.db.execute(
            select(Class.id).where(Class.supervisor_id == teacher.id)
        )).scalars().all()
        lessons = await self.count(Lesson, Lesson.teacher_id == teacher.id)
        return {
            "subject_ids": sorted(subject_ids),
            "supervised_class_ids": sorted(supervised),
            "lessons": lessons
        }

    async def update_teacher(self, teacher_id: int, data: TeacherUpdateRequest) -> User:
        teacher = await self.get_teacher(teacher_id)
        updates = data.model_dump(exclude_unset=True)
        await self.validate_credentials_unique(updates.get("email"), updates.get("username"), teacher.id)

        self.apply_updates(teacher, updates)
        await self.commit(teacher)
        self.log_write("updated", "Teacher", teacher.id, teacher.school_id)
        return teacher

    async def delete_teacher(self, teacher_id: int) -> None:
        teacher = await self.get_teacher(teacher_id)
        counts = {
            "classes": await self.count(Class, Class.supervisor_id == teacher.id),
            "lessons": await self.count(Lesson, Lesson.teacher_id == teacher.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete teacher with assigned classes or lessons")

        async with self.transaction():
            await self.db.execute(delete(subject_teachers).where(subject_teachers.c.teacher_id == teacher.id))
            await self.db.delete(teacher)
        self.log_write("deleted", "Teacher", teacher_id, teacher.school_id)

    # Principals

    async def create_principal(self, data: PrincipalCreateRequest) -> Tuple[User, Optional[str]]:
        """
        Create a principal awaiting verification.

        Returns the new user and the generated password when the request did
        not carry one; that password is never stored or shown again.
        """
        school_id = await self.target_school(data.school_id)
        await self.validate_credentials_unique(data.email, data.username)

        generated = None if data.password else secrets.token_urlsafe(12)
        principal = self._new_user(
            data, UserRole.PRINCIPAL, school_id,
            password=generated,
            qualifications=data.qualifications,
            bio=data.bio,
            is_verified=False
        )
        self.db.add(principal)
        await self.commit(principal)
        self.log_write("created", "Principal", principal.id, school_id)
        return principal, generated

    async def list_principals(self, pagination: Pagination, search: Optional[str] = None, school_id: Optional[int] = None):
        own_record = [User.id == self.actor_id] if self.role == UserRole.PRINCIPAL else []
        return await self._list_role(UserRole.PRINCIPAL, pagination, search, school_id, *own_record)

    async def get_principal(self, principal_id: int) -> User:
        if self.role == UserRole.PRINCIPAL and principal_id != self.actor_id:
            raise NotFoundError("Principal not found")
        return await self._get_role(principal_id, UserRole.PRINCIPAL, "Principal")

    async def update_principal(self, principal_id: int, data: PrincipalUpdateRequest) -> User:
        principal = await self.get_principal(principal_id)
        self.apply_updates(principal, data.model_dump(exclude_unset=True))
        await self.commit(principal)
        self.log_write("updated", "Principal", principal.id, principal.school_id)
        return principal

    async def delete_principal(self, principal_id: int) -> None:
        principal = await self.get_principal(principal_id)
        await self.delete(principal)
        self.log_write("deleted", "Principal", principal_id, principal.school_id)

    async def verify_principal(self, principal_id: int, data: PrincipalVerifyRequest) -> User:
        principal = await self.get_principal(principal_id)
        approved = data.status == VerificationStatus.APPROVED
        principal.is_verified = approved
        await self.commit(principal)
        self.log_write(f"marked {data.status.value}", "Principal", principal.id, principal.school_id)

        if approved:
            title = "Principal verification approved"
            body = "Your principal account has been verified and is now active."
        else:
            title = "Principal verification rejected"
            body = data.comments or "Please contact your school administration for more information."
        await NotificationService(self.db, self.identity).notify(
            [principal.id], title, body,
            category=NotificationType.APPROVAL,
            metadata={"status": data.status.value, "comments": data.comments},
            school_id=principal.school_id
        )
        return principal

    # Parents

    async def create_parent(self, data: ParentCreateRequest) -> User:
        school_id = await self.target_school(data.school_id)
        await self.validate_credentials_unique(data.email, data.username)
        for student_id in data.student_ids:
            await self.ensure_in_tenant(Student, student_id, school_id, "Student")

        async with self.transaction():
            parent = self._new_user(data, UserRole.PARENT, school_id)
            self.db.add(parent)
            await self.db.flush()
            for student_id in sorted(set(data.student_ids)):
                self.db.add(Guardianship(student_id=student_id, parent_id=parent.id))

        await self.db.refresh(parent)
        self.log_write("created", "Parent", parent.id, school_id)
        return parent

    async def list_parents(self, pagination: Pagination, search: Optional[str] = None, school_id: Optional[int] = None):
        return await self._list_role(UserRole.PARENT, pagination, search, school_id)

    async def get_parent(self, parent_id: int) -> User:
        if self.role == UserRole.PARENT and parent_id != self.actor_id:
            raise NotFoundError("Parent not found")
        return await self._get_role(parent_id, UserRole.PARENT, "Parent")

    async def children_of(self, parent_id: int) -> List[Student]:
        stmt = (
            select(Student)
            .join(Guardianship, Guardianship.student_id == Student.id)
            .where(Guardianship.parent_id == parent_id)
            .order_by(Student.surname, Student.name)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def update_parent(self, parent_id: int, data: ParentUpdateRequest) -> User:
        parent = await self.get_parent(parent_id)
        updates = data.model_dump(exclude_unset=True)
        await self.validate_credentials_unique(updates.get("email"), updates.get("username"), parent.id)

        self.apply_updates(parent, updates)
        await self.commit(parent)
        self.log_write("updated", "Parent", parent.id, parent.school_id)
        return parent

    async def delete_parent(self, parent_id: int) -> None:
        parent = await self.get_parent(parent_id)
        counts = {"children": await self.count(Guardianship, Guardianship.parent_id == parent.id)}
        self.ensure_no_dependents(counts, "Cannot delete parent with linked children")
        await self.delete(parent)
        self.log_write("deleted", "Parent", parent_id, parent.school_id)

    async def link_child(self, parent_id: int, data: LinkChildRequest) -> Guardianship:
        parent = await self.get_parent(parent_id)
        await self.ensure_in_tenant(Student, data.student_id, parent.school_id, "Student")
        await self.ensure_unique(
            Guardianship,
            [Guardianship.parent_id == parent.id, Guardianship.student_id == data.student_id],
            "Student is already linked to this parent"
        )

        link = Guardianship(
            student_id=data.student_id,
            parent_id=parent.id,
            relationship=data.relationship,
            is_primary=data.is_primary
        )
        self.db.add(link)
        await self.commit(link)
        self.log_write(f"linked to student {data.student_id}", "Parent", parent.id, parent.school_id)
        return link

    async def unlink_child(self, parent_id: int, student_id: int) -> None:
        parent = await self.get_parent(parent_id)
        stmt = select(Guardianship).where(
            Guardianship.parent_id == parent.id,
            Guardianship.student_id == student_id
        )
        link = (await self.db.execute(stmt)).scalar_one_or_none()
        if link is None:
            raise NotFoundError("Student is not linked to this parent")
        await self.delete(link)
        self.log_write(f"unlinked from student {student_id}", "Parent", parent.id, parent.school_id)
