from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.errors import AuthenticationError, PermissionDenied, TokenError
from school_api.core.logging import logger
from school_api.core.security import TokenType, decode_token
from school_api.core.tenancy import Identity
from school_api.models.school import School
from school_api.models.user import User

# Bearer scheme for token authentication; errors are raised by us so they use the API envelope
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Resolve the bearer access token to an active user.

    Members of schools that are not approved are refused with 403 so an
    unverified tenant cannot read or write anything.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(credentials.credentials, TokenType.ACCESS)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise TokenError("Invalid token subject")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    if not user.is_super_admin and user.school_id is not None:
        school = await db.get(School, user.school_id)
        if school is None or not school.is_verified:
            logger.warning(
                f"Rejected user {user.id}: school {user.school_id} is not verified",
                extra={"user_id": user.id, "school_id": user.school_id}
            )
            raise PermissionDenied("School account is not verified")

    return user


async def get_identity(user: User = Depends(get_current_user)) -> Identity:
    """The caller reduced to what filters and guards need"""
    return Identity(id=user.id, role=user.role, school_id=user.school_id)
