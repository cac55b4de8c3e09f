# school_api/core/permissions.py
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Depends

from school_api.core.dependencies import get_identity
from school_api.core.errors import PermissionDenied
from school_api.core.logging import logger
from school_api.core.tenancy import Identity
from school_api.schemas.enums import ADMIN_ROLES, ALL_ROLES, SCHOOL_STAFF_ROLES, STAFF_ROLES, UserRole


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None


ALLOWED = AccessDecision(True)


def authorize(identity: Optional[Identity], allowed_roles: Iterable[UserRole]) -> AccessDecision:
    """Role allow-list check; unknown roles are never allowed"""
    if identity is None:
        return AccessDecision(False, "not authenticated")
    role = identity.role_enum
    if role is None or role not in set(allowed_roles):
        return AccessDecision(False, "insufficient role")
    return ALLOWED


class RoleChecker:
    """Role allow-list usable as a FastAPI dependency"""

    def __init__(self, allowed_roles: Iterable[UserRole]):
        self.allowed_roles = frozenset(allowed_roles)

    async def __call__(self, identity: Identity = Depends(get_identity)) -> Identity:
        """Runs before the route body, so before any tenant filter or lookup"""
        decision = authorize(identity, self.allowed_roles)
        if not decision.allowed:
            logger.warning(
                f"Permission denied: user {identity.id} with role {identity.role} "
                f"attempted to access resource requiring roles "
                f"{sorted(role.value for role in self.allowed_roles)}",
                extra={"user_id": identity.id, "school_id": identity.school_id}
            )
            raise PermissionDenied("Operation not permitted")
        return identity


# Factory functions for common role checks
def require_super_admin():
    return RoleChecker([UserRole.SUPER_ADMIN])

def require_admin():
    return RoleChecker(ADMIN_ROLES)

def require_school_staff():
    return RoleChecker(SCHOOL_STAFF_ROLES)

def require_school_staff_or_parent():
    return RoleChecker(SCHOOL_STAFF_ROLES + (UserRole.PARENT,))

def require_staff():
    return RoleChecker(STAFF_ROLES)

def require_parent():
    return RoleChecker([UserRole.PARENT])

def require_any_role():
    return RoleChecker(ALL_ROLES)
