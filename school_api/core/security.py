# school_api/core/security.py

import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from jose import JWTError, jwt
from passlib.context import CryptContext

from school_api.core.config import settings
from school_api.core.errors import TokenError
from school_api.core.logging import logger


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET = "reset"


class SecurityConfig:
    """Password policy shared by every schema that accepts a new password"""
    MIN_PASSWORD_LENGTH = 8
    MAX_PASSWORD_LENGTH = 128
    PASSWORD_ROUNDS = settings.BCRYPT_ROUNDS


pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__default_rounds=SecurityConfig.PASSWORD_ROUNDS
)


def token_lifetime(token_type: TokenType) -> timedelta:
    if token_type == TokenType.REFRESH:
        return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    if token_type == TokenType.RESET:
        return timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def create_token(
    data: Dict[str, Any],
    token_type: TokenType,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Sign ``data`` as a JWT of the given type.

    Every token gets ``exp``, ``iss``, ``type`` and a random ``jti``; the
    ``jti`` is what logout records to revoke a refresh token.
    """
    claims = dict(data)
    claims.update({
        "exp": datetime.now(timezone.utc) + (expires_delta or token_lifetime(token_type)),
        "iss": settings.TOKEN_ISSUER,
        "type": token_type.value,
        "jti": secrets.token_urlsafe(32)
    })
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str, token_type: Optional[TokenType] = None) -> Dict[str, Any]:
    """
    Verify signature, expiry and issuer, then the token type.

    Raises:
        TokenError: invalid, expired, of the wrong type or without a subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            issuer=settings.TOKEN_ISSUER
        )
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise TokenError("Could not validate credentials")

    if token_type is not None and payload.get("type") != token_type.value:
        raise TokenError(f"Invalid token type. Expected {token_type.value}")
    if not payload.get("sub"):
        raise TokenError("Token has no subject")
    return payload


def create_access_token(user_id: Union[int, str], role: str) -> str:
    return create_token({"sub": str(user_id), "role": role}, TokenType.ACCESS)


def create_refresh_token(user_id: Union[int, str]) -> str:
    return create_token({"sub": str(user_id)}, TokenType.REFRESH)


def create_reset_token(user_id: Union[int, str], email: str) -> str:
    """Reset tokens carry the email so a changed address invalidates them"""
    return create_token({"sub": str(user_id), "email": email}, TokenType.RESET)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)
