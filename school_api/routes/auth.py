from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.dependencies import get_current_user
from school_api.models import User
from school_api.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshTokenRequest,
    UserSummary
)
from school_api.services.auth_service import AuthService

router = APIRouter(tags=["Authentication"])


# Service dependencies
def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db=db)


@router.post("/login")
async def login(
    credentials: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Exchange email and password for an access/refresh token pair"""
    result = await auth_service.authenticate_user(credentials.email, credentials.password)
    user = result.pop("user")
    return {
        "message": "Login successful",
        "user": UserSummary.model_validate(user),
        **result
    }


@router.post("/refresh")
async def refresh_token(
    request: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    tokens = await auth_service.refresh_access_token(request.refresh_token)
    return {"message": "Token refreshed", **tokens}


@router.post("/logout")
async def logout(
    request: LogoutRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    await auth_service.logout(current_user, request.refresh_token)
    return {"message": "Successfully logged out"}


@router.post("/password-reset/request")
async def request_password_reset(
    request: PasswordResetRequest,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    # Unknown addresses get the same message and no token
    token = await auth_service.request_password_reset(request.email)
    response: Dict[str, Any] = {
        "message": "If an account exists for this email, a password reset has been issued"
    }
    if token is not None:
        response["reset_token"] = token
    return response


@router.post("/password-reset/confirm")
async def confirm_password_reset(
    request: PasswordResetConfirm,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    await auth_service.reset_password(request.token, request.new_password)
    return {"message": "Password has been reset"}


@router.get("/me")
async def read_current_user(current_user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return {"message": "Current user", "user": UserSummary.model_validate(current_user)}
