from typing import Any, Dict, Optional

from sqlalchemy import or_, select

from school_api.core.errors import BusinessRuleError
from school_api.core.logging import logger
from school_api.core.pagination import Pagination
from school_api.core.security import get_password_hash
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Class,
    Event,
    Exam,
    School,
    Student,
    Subject,
    User,
    utcnow
)
from school_api.schemas.enums import NotificationPriority, NotificationType, UserRole, VerificationStatus
from school_api.schemas.school import SchoolRegistrationRequest, SchoolUpdateRequest, SchoolVerifyRequest
from school_api.services.base_service import BaseService
from school_api.services.notification_service import NotificationService


class SchoolService(BaseService):

    async def validate_school_data(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        registration_number: Optional[str] = None,
        exclude_id: Optional[int] = None
    ) -> None:
        """
        Validate school identity fields

        Raises:
            ConflictError: If a school with the same name, email, or registration number already exists
        """
        if name is not None:
            await self.ensure_unique(School, [School.name == name], "School with this name already exists", exclude_id)
        if email is not None:
            await self.ensure_unique(School, [School.email == email], "School with this email already exists", exclude_id)
        if registration_number is not None:
            await self.ensure_unique(
                School,
                [School.registration_number == registration_number],
                "School with this registration number already exists",
                exclude_id
            )

    async def register_school(self, data: SchoolRegistrationRequest) -> Dict[str, Any]:
        """Create a PENDING school and its first administrator"""
        registration_number = data.registration_number.strip().upper()
        await self.validate_school_data(data.name, data.email, registration_number)
        await self.ensure_unique(User, [User.email == data.admin_email], "User with this email already exists")
        await self.ensure_unique(User, [User.username == data.admin_username], "Username already taken")

        async with self.transaction():
            school = School(
                name=data.name,
                email=data.email,
                phone=data.phone,
                registration_number=registration_number,
                school_type=data.school_type,
                website=data.website,
                description=data.description,
                address=data.address,
                city=data.city,
                country=data.country,
                verification_status=VerificationStatus.PENDING.value
            )
            self.db.add(school)
            await self.db.flush()

            admin = User(
                email=data.admin_email,
                username=data.admin_username,
                password_hash=get_password_hash(data.admin_password),
                name=data.admin_name,
                surname=data.admin_surname,
                role=UserRole.SCHOOL_ADMIN.value,
                school_id=school.id,
                is_verified=False
            )
            self.db.add(admin)

        await self.db.refresh(school)
        await self.db.refresh(admin)
        logger.info(f"School registered: {school.name} ({school.registration_number})", extra={"school_id": school.id})

        super_admins = (await self.db.execute(
            select(User.id).where(User.role == UserRole.SUPER_ADMIN.value, User.is_active.is_(True))
        )).scalars().all()
        await NotificationService(self.db, self.identity).notify(
            super_admins,
            "New school registration",
            f"{school.name} has registered and is awaiting verification.",
            category=NotificationType.APPROVAL,
            metadata={"school_id": school.id},
            priority=NotificationPriority.HIGH
        )
        return {"school": school, "admin": admin}

    async def list_schools(
        self,
        pagination: Pagination,
        search: Optional[str] = None,
        verification_status: Optional[VerificationStatus] = None
    ):
        stmt = select(School)
        if search:
            term = self.like(search)
            stmt = stmt.where(or_(
                School.name.ilike(term),
                School.email.ilike(term),
                School.registration_number.ilike(term)
            ))
        if verification_status is not None:
            stmt = stmt.where(School.verification_status == verification_status.value)
        return await self.list_page(
            stmt, School, pagination, ResourceKind.TENANT, order_by=[School.name]
        )

    async def get_school(self, school_id: int) -> School:
        return await self.get_visible(School, school_id, ResourceKind.TENANT, "School")

    async def update_school(self, school_id: int, data: SchoolUpdateRequest) -> School:
        school = await self.get_school(school_id)
        updates = data.model_dump(exclude_unset=True)
        await self.validate_school_data(updates.get("name"), updates.get("email"), exclude_id=school.id)

        self.apply_updates(school, updates)
        await self.commit(school)
        self.log_write("updated", "School", school.id, school.id)
        return school

    async def verify_school(self, school_id: int, data: SchoolVerifyRequest) -> School:
        school = await self.get_school(school_id)
        if school.verification_status != VerificationStatus.PENDING.value:
            raise BusinessRuleError(f"School is already {school.verification_status}")

        school.verification_status = data.status.value
        school.verified_at = utcnow()
        school.verified_by_id = self.actor_id
        school.rejection_reason = data.reason if data.status == VerificationStatus.REJECTED else None
        await self.commit(school)
        self.log_write(data.status.value.lower(), "School", school.id, school.id)

        notifications = NotificationService(self.db, self.identity)
        admins = await notifications.users_by_role(school.id, [UserRole.SCHOOL_ADMIN, UserRole.PRINCIPAL])
        if data.status == VerificationStatus.APPROVED:
            title, body = "School approved", f"{school.name} has been verified. You can now sign in."
        else:
            title = "School registration rejected"
            body = f"{school.name} was not approved. Reason: {data.reason or 'not specified'}"
        await notifications.notify(
            admins, title, body,
            category=NotificationType.APPROVAL,
            metadata={"school_id": school.id, "status": data.status.value},
            priority=NotificationPriority.HIGH,
            school_id=school.id
        )
        return school

    async def delete_school(self, school_id: int) -> None:
        school = await self.get_school(school_id)
        counts = {
            "students": await self.count(Student, Student.school_id == school.id),
            "classes": await self.count(Class, Class.school_id == school.id),
            "users": await self.count(User, User.school_id == school.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete school with existing records")
        await self.delete(school)
        self.log_write("deleted", "School", school_id, school_id)

    async def get_school_stats(self, school_id: int) -> Dict[str, Any]:
        school = await self.get_school(school_id)
        return {
            "school_id": school.id,
            "name": school.name,
            "verification_status": school.verification_status,
            "students": await self.count(Student, Student.school_id == school.id),
            "active_students": await self.count(
                Student, Student.school_id == school.id, Student.is_active.is_(True)
            ),
            "teachers": await self.count(
                User, User.school_id == school.id, User.role == UserRole.TEACHER.value
            ),
            "parents": await self.count(
                User, User.school_id == school.id, User.role == UserRole.PARENT.value
            ),
            "classes": await self.count(Class, Class.school_id == school.id),
            "subjects": await self.count(Subject, Subject.school_id == school.id),
            "exams": await self.count(Exam, Exam.school_id == school.id),
            "events": await self.count(Event, Event.school_id == school.id),
        }
