import pytest

from school_api.core.errors import PermissionDenied
from school_api.core.permissions import RoleChecker, authorize
from school_api.core.tenancy import Identity
from school_api.schemas.enums import SCHOOL_STAFF_ROLES, STAFF_ROLES, UserRole


def test_authorize_allows_listed_role():
    decision = authorize(Identity(id=1, role="principal", school_id=1), SCHOOL_STAFF_ROLES)
    assert decision.allowed


def test_authorize_rejects_unlisted_role():
    decision = authorize(Identity(id=1, role="parent", school_id=1), STAFF_ROLES)
    assert not decision.allowed
    assert decision.reason == "insufficient role"


def test_authorize_rejects_unknown_role():
    assert not authorize(Identity(id=1, role="janitor", school_id=1), list(UserRole)).allowed


def test_authorize_rejects_missing_identity():
    assert authorize(None, list(UserRole)).reason == "not authenticated"


async def test_role_checker_returns_identity():
    identity = Identity(id=3, role="teacher", school_id=1)
    assert await RoleChecker(STAFF_ROLES)(identity) is identity


async def test_role_checker_raises_permission_denied():
    with pytest.raises(PermissionDenied):
        await RoleChecker([UserRole.SUPER_ADMIN])(Identity(id=3, role="school_admin", school_id=1))
