from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.errors import NotFoundError
from school_api.core.logging import logger
from school_api.core.pagination import Pagination
from school_api.models import Class, Guardianship, Notification, Student, User, utcnow
from school_api.schemas.enums import NotificationPriority, NotificationType, UserRole
from school_api.schemas.notification import NotificationCreateRequest
from school_api.services.base_service import BaseService


class NotificationService(BaseService):
    """
    Notification records and the fan-out used by other services.

    ``notify`` runs after the triggering write has committed. The batch is
    inserted in one transaction on its own session, so a failure is rolled
    back and logged without touching the caller's session or failing the
    request that caused it.
    """

    # Target resolvers

    async def parents_of_class(self, class_id: int) -> Set[int]:
        stmt = (
            select(Guardianship.parent_id)
            .join(Student, Student.id == Guardianship.student_id)
            .where(Student.class_id == class_id, Student.is_active.is_(True))
            .distinct()
        )
        return set((await self.db.execute(stmt)).scalars().all())

    async def guardians_of_student(self, student_id: int) -> Set[int]:
        stmt = select(Guardianship.parent_id).where(Guardianship.student_id == student_id)
        return set((await self.db.execute(stmt)).scalars().all())

    async def parents_of_school(self, school_id: int) -> Set[int]:
        stmt = (
            select(Guardianship.parent_id)
            .join(Student, Student.id == Guardianship.student_id)
            .where(Student.school_id == school_id)
            .distinct()
        )
        return set((await self.db.execute(stmt)).scalars().all())

    async def users_by_role(self, school_id: int, roles: Iterable[UserRole]) -> Set[int]:
        role_values = [self.enum_value(role) for role in roles]
        if not role_values:
            return set()
        stmt = select(User.id).where(
            User.school_id == school_id,
            User.role.in_(role_values),
            User.is_active.is_(True)
        )
        return set((await self.db.execute(stmt)).scalars().all())

    # Fan-out

    def _build(
        self,
        targets: Iterable[int],
        title: str,
        body: str,
        category: NotificationType,
        metadata: Optional[Dict[str, Any]],
        priority: NotificationPriority,
        school_id: Optional[int],
        action_url: Optional[str]
    ) -> List[Notification]:
        return [
            Notification(
                user_id=user_id,
                school_id=school_id,
                title=title,
                content=body,
                type=self.enum_value(category),
                priority=self.enum_value(priority),
                data=metadata,
                action_url=action_url
            )
            for user_id in targets
        ]

    async def notify(
        self,
        target_user_ids: Iterable[int],
        title: str,
        body: str,
        category: NotificationType = NotificationType.GENERAL,
        metadata: Optional[Dict[str, Any]] = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        school_id: Optional[int] = None,
        action_url: Optional[str] = None
    ) -> int:
        """Insert one notification per distinct target as a single batch; returns how many were created"""
        targets = sorted({user_id for user_id in target_user_ids if user_id is not None})
        if not targets:
            return 0

        async with AsyncSession(self.db.bind, expire_on_commit=False) as session:
            try:
                session.add_all(self._build(targets, title, body, category, metadata, priority, school_id, action_url))
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                logger.error(
                    f"Notification fan-out '{title}' to {len(targets)} users failed",
                    exc_info=True,
                    extra={"school_id": school_id, "user_id": self.actor_id}
                )
                return 0

        logger.info(
            f"Notification fan-out '{title}' created {len(targets)} notifications",
            extra={"school_id": school_id, "user_id": self.actor_id}
        )
        return len(targets)

    # Endpoint operations

    async def create_bulk(self, request: NotificationCreateRequest) -> int:
        school_id = await self.target_school(request.school_id)
        targets: Set[int] = set()

        if request.user_ids:
            stmt = select(User.id).where(User.id.in_(request.user_ids), User.school_id == school_id)
            targets |= set((await self.db.execute(stmt)).scalars().all())
        if request.roles:
            targets |= await self.users_by_role(school_id, request.roles)
        if request.class_id is not None:
            await self.ensure_in_tenant(Class, request.class_id, school_id, "Class")
            targets |= await self.parents_of_class(request.class_id)

        if not targets:
            return 0

        # Explicit sends are the write itself, so failures propagate
        async with self.transaction():
            self.db.add_all(self._build(
                sorted(targets), request.title, request.content, request.type,
                request.data, request.priority, school_id, request.action_url
            ))
        self.log_write("sent", "Notification batch", len(targets), school_id)
        return len(targets)

    async def list_own(
        self,
        pagination: Pagination,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
        priority: Optional[NotificationPriority] = None
    ):
        stmt = select(Notification).where(Notification.user_id == self.actor_id)
        if is_read is not None:
            stmt = stmt.where(Notification.is_read.is_(is_read))
        if notification_type is not None:
            stmt = stmt.where(Notification.type == notification_type.value)
        if priority is not None:
            stmt = stmt.where(Notification.priority == priority.value)

        total = (await self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        )).scalar_one()
        result = await self.db.execute(
            stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(pagination.skip)
            .limit(pagination.limit)
        )
        return list(result.scalars().all()), pagination.meta(total)

    async def unread_count(self) -> int:
        return await self.count(
            Notification,
            Notification.user_id == self.actor_id,
            Notification.is_read.is_(False)
        )

    async def get_own(self, notification_id: int) -> Notification:
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == self.actor_id
        )
        notification = (await self.db.execute(stmt)).scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_read(self, notification_id: int) -> Notification:
        notification = await self.get_own(notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.commit(notification)
        return notification

    async def mark_all_read(self) -> int:
        async with self.transaction():
            result = await self.db.execute(
                update(Notification)
                .where(Notification.user_id == self.actor_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=utcnow())
            )
        return result.rowcount or 0

    async def delete_own(self, notification_id: int) -> None:
        notification = await self.get_own(notification_id)
        await self.delete(notification)

    async def stats(self) -> Dict[str, Any]:
        own = Notification.user_id == self.actor_id
        total = await self.count(Notification, own)
        unread = await self.count(Notification, own, Notification.is_read.is_(False))

        by_type = await self.db.execute(
            select(Notification.type, func.count()).where(own).group_by(Notification.type)
        )
        by_priority = await self.db.execute(
            select(Notification.priority, func.count()).where(own).group_by(Notification.priority)
        )
        return {
            "total": total,
            "unread": unread,
            "read": total - unread,
            "by_type": {row[0]: row[1] for row in by_type.all()},
            "by_priority": {row[0]: row[1] for row in by_priority.all()}
        }
