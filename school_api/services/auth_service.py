import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.config import settings
from school_api.core.errors import AuthenticationError, InvalidCredentialsException, PermissionDenied, TokenError
from school_api.core.logging import logger
from school_api.core.security import (
    TokenType,
    create_access_token,
    create_refresh_token,
    create_reset_token,
    decode_token,
    get_password_hash,
    verify_password
)
from school_api.models import RevokedToken, School, User, utcnow


class SecurityLogging:
    """Secure logging utilities for authentication system"""

    @staticmethod
    def sanitize_token(token_or_msg: str) -> str:
        """Remove sensitive JWT data from strings"""
        if not token_or_msg:
            return token_or_msg
        return re.sub(r'eyJ[\w-]*\.[\w-]*\.[\w-]*', '[REDACTED_TOKEN]', str(token_or_msg))

    @staticmethod
    def log_auth_event(event_type: str, user_id: Optional[int] = None, **kwargs) -> None:
        log_data: Dict[str, Any] = {"event": event_type}
        if user_id is not None:
            log_data["user_id"] = user_id
        for key, value in kwargs.items():
            log_data[key] = SecurityLogging.sanitize_token(value) if isinstance(value, str) else value
        logger.info(f"Auth event: {event_type}", extra=log_data)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def _ensure_school_approved(self, user: User) -> None:
        if user.is_super_admin or user.school_id is None:
            return
        school = await self.db.get(School, user.school_id)
        if school is None or not school.is_verified:
            SecurityLogging.log_auth_event("login_blocked_unverified_school", user.id, school_id=user.school_id)
            raise PermissionDenied("School account is not verified")

    def _tokens(self, user: User) -> Dict[str, Any]:
        return {
            "access_token": create_access_token(user.id, user.role),
            "refresh_token": create_refresh_token(user.id),
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        }

    async def authenticate_user(self, email: str, password: str) -> Dict[str, Any]:
        """Check credentials and issue an access/refresh token pair"""
        user = await self.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            SecurityLogging.log_auth_event("login_failed", email=email)
            raise InvalidCredentialsException("Invalid email or password")
        if not user.is_active:
            SecurityLogging.log_auth_event("login_inactive", user.id)
            raise InvalidCredentialsException("Account is inactive")
        await self._ensure_school_approved(user)

        user.last_login = utcnow()
        await self.db.commit()
        await self.db.refresh(user)

        SecurityLogging.log_auth_event("login_success", user.id, role=user.role)
        return {"user": user, **self._tokens(user)}

    async def check_token_revocation(self, jti: Optional[str]) -> bool:
        if not jti:
            return False
        result = await self.db.execute(select(RevokedToken.id).where(RevokedToken.jti == jti))
        return result.first() is not None

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        refresh_token = refresh_token.replace("Bearer ", "").strip()
        payload = decode_token(refresh_token, TokenType.REFRESH)
        if await self.check_token_revocation(payload.get("jti")):
            SecurityLogging.log_auth_event("refresh_revoked", payload.get("sub"))
            raise TokenError("Refresh token has been revoked")

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise TokenError("Invalid token subject")
        user = await self.db.get(User, user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        await self._ensure_school_approved(user)

        SecurityLogging.log_auth_event("token_refreshed", user.id)
        return {
            "access_token": create_access_token(user.id, user.role),
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        }

    async def logout(self, user: User, refresh_token: str) -> None:
        """Revoke the caller's refresh token by its jti"""
        payload = decode_token(refresh_token.replace("Bearer ", "").strip(), TokenType.REFRESH)
        if str(payload.get("sub")) != str(user.id):
            raise TokenError("Refresh token does not belong to this user")

        jti = payload.get("jti")
        if not await self.check_token_revocation(jti):
            exp = payload.get("exp")
            self.db.add(RevokedToken(
                jti=jti,
                user_id=user.id,
                expires_at=datetime.fromtimestamp(exp, tz=timezone.utc).replace(tzinfo=None) if exp else None
            ))
            await self.db.commit()
        SecurityLogging.log_auth_event("logout", user.id)

    async def request_password_reset(self, email: str) -> Optional[str]:
        """
        Returns a reset token for a known active account, otherwise None.
        Delivering the token is left to the caller.
        """
        user = await self.get_user_by_email(email)
        if user is None or not user.is_active:
            SecurityLogging.log_auth_event("password_reset_unknown_email", email=email)
            return None
        SecurityLogging.log_auth_event("password_reset_requested", user.id)
        return create_reset_token(user.id, user.email)

    async def reset_password(self, token: str, new_password: str) -> None:
        payload = decode_token(token, TokenType.RESET)
        if await self.check_token_revocation(payload.get("jti")):
            raise TokenError("Reset token has already been used")
        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise TokenError("Invalid token subject")

        user = await self.db.get(User, user_id)
        if user is None or not user.is_active or user.email != payload.get("email"):
            raise TokenError("Invalid or expired token")

        user.password_hash = get_password_hash(new_password)
        self.db.add(RevokedToken(jti=payload.get("jti"), user_id=user.id))
        await self.db.commit()
        SecurityLogging.log_auth_event("password_reset_completed", user.id)
