# school_api/services/base_service.py
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    PermissionDenied,
    ValidationError
)
from school_api.core.logging import logger
from school_api.core.pagination import Pagination
from school_api.core.tenancy import (
    FailClosed,
    Identity,
    ResourceKind,
    TenantPredicate,
    resolve_filter,
    tenant_column
)
from school_api.models.school import School
from school_api.models.user import User
from school_api.schemas.enums import UserRole


class BaseService:
    """
    Shared CRUD plumbing. Every read goes through ``scoped`` so the caller's
    tenant predicate is always part of the WHERE clause.
    """

    def __init__(self, db: AsyncSession, identity: Optional[Identity] = None):
        self.db = db
        self.identity = identity

    @asynccontextmanager
    async def transaction(self):
        """Context manager for transaction handling"""
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    @property
    def actor_id(self) -> Optional[int]:
        return self.identity.id if self.identity else None

    @property
    def role(self) -> Optional[UserRole]:
        return self.identity.role_enum if self.identity else None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    def predicate(self, kind: ResourceKind = ResourceKind.SCHOOL, school_id: Optional[int] = None) -> TenantPredicate:
        predicate = resolve_filter(self.identity, kind, school_id)
        if isinstance(predicate, FailClosed):
            logger.warning(
                f"Tenant filter failed closed: {predicate.reason}",
                extra={"user_id": self.actor_id}
            )
        return predicate

    def scoped(self, stmt, model, kind: ResourceKind = ResourceKind.SCHOOL, school_id: Optional[int] = None):
        """Intersect a select with the caller's tenant predicate"""
        return stmt.where(self.predicate(kind, school_id).clause(model))

    async def get_visible(
        self,
        model,
        obj_id: int,
        kind: ResourceKind = ResourceKind.SCHOOL,
        label: Optional[str] = None
    ):
        """Fetch one row through the tenant filter; absent and invisible are both 404"""
        stmt = self.scoped(select(model).where(model.id == obj_id), model, kind)
        obj = (await self.db.execute(stmt)).scalar_one_or_none()
        if obj is None:
            raise NotFoundError(f"{label or model.__name__} not found")
        return obj

    async def list_page(
        self,
        stmt,
        model,
        pagination: Pagination,
        kind: ResourceKind = ResourceKind.SCHOOL,
        school_id: Optional[int] = None,
        order_by: Optional[Sequence[Any]] = None
    ) -> Tuple[List[Any], Dict[str, int]]:
        stmt = self.scoped(stmt, model, kind, school_id)

        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = (await self.db.execute(count_stmt)).scalar_one()

        if order_by is not None:
            stmt = stmt.order_by(*order_by)
        else:
            stmt = stmt.order_by(model.id)
        result = await self.db.execute(stmt.offset(pagination.skip).limit(pagination.limit))
        return list(result.scalars().all()), pagination.meta(total)

    async def target_school(self, requested: Optional[int] = None) -> int:
        """
        The school a create writes into. Tenant roles always write into their
        own school; super admins must name one explicitly.
        """
        if self.is_super_admin:
            if requested is None:
                raise ValidationError(
                    "school_id is required",
                    errors=[{"field": "school_id", "message": "Field required for super admin requests"}]
                )
            if await self.db.get(School, requested) is None:
                raise NotFoundError("School not found")
            return requested

        if self.identity is None or self.identity.school_id is None:
            raise PermissionDenied("No school assigned to this account")
        return self.identity.school_id

    async def ensure_in_tenant(self, model, obj_id: int, school_id: int, label: Optional[str] = None):
        """Referenced rows must resolve inside the same school"""
        column = tenant_column(model)
        stmt = select(model).where(model.id == obj_id, column == school_id)
        obj = (await self.db.execute(stmt)).scalar_one_or_none()
        if obj is None:
            raise NotFoundError(f"{label or model.__name__} not found in this school")
        return obj

    async def ensure_member(
        self,
        user_id: int,
        school_id: int,
        roles: Iterable[UserRole],
        label: str = "User"
    ) -> User:
        """An active user of the given role(s) inside the school, else 404"""
        stmt = select(User).where(
            User.id == user_id,
            User.school_id == school_id,
            User.role.in_([self.enum_value(role) for role in roles]),
            User.is_active.is_(True)
        )
        user = (await self.db.execute(stmt)).scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"{label} not found in this school")
        return user

    async def ensure_unique(
        self,
        model,
        conditions: Iterable[Any],
        message: str,
        exclude_id: Optional[int] = None
    ) -> None:
        """
        Check-then-act duplicate detection. Concurrent requests can both pass;
        the table's unique constraint rejects the loser with a 409.
        """
        stmt = select(model.id).where(*conditions)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if (await self.db.execute(stmt.limit(1))).first() is not None:
            raise ConflictError(message)

    async def count(self, model, *conditions) -> int:
        stmt = select(func.count()).select_from(model).where(*conditions)
        return (await self.db.execute(stmt)).scalar_one()

    @staticmethod
    def ensure_no_dependents(counts: Dict[str, int], message: str) -> None:
        if any(value > 0 for value in counts.values()):
            raise DependencyError(message, dependencies=counts)

    @staticmethod
    def apply_updates(obj, data: Dict[str, Any]) -> None:
        for field, value in data.items():
            if hasattr(value, "value"):
                value = value.value
            setattr(obj, field, value)

    async def commit(self, obj=None):
        """Commit and reload server-generated columns"""
        await self.db.commit()
        if obj is not None:
            await self.db.refresh(obj)
        return obj

    async def delete(self, obj) -> None:
        await self.db.delete(obj)
        await self.db.commit()

    def log_write(self, action: str, model_name: str, obj_id: Any, school_id: Optional[int] = None) -> None:
        logger.info(
            f"{model_name} {obj_id} {action} by user {self.actor_id}",
            extra={"user_id": self.actor_id, "school_id": school_id}
        )

    @staticmethod
    def enum_value(value):
        return value.value if hasattr(value, "value") else value

    @staticmethod
    def like(term: str) -> str:
        return f"%{term.strip()}%"
