from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from school_api.core.security import SecurityConfig
from school_api.schemas.common import ORMModel


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(
        min_length=SecurityConfig.MIN_PASSWORD_LENGTH,
        max_length=SecurityConfig.MAX_PASSWORD_LENGTH
    )


class UserSummary(ORMModel):
    id: int
    email: EmailStr
    username: str
    name: str
    surname: str
    role: str
    school_id: Optional[int] = None
    last_login: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: int
