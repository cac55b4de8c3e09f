from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from school_api.core.config import settings
from school_api.core.logging import logger


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BUSINESS_RULE = "BUSINESS_RULE"
    HAS_DEPENDENTS = "HAS_DEPENDENTS"
    AUTH_ERROR = "AUTH_ERROR"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_ERROR = "TOKEN_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DB_ERROR = "DB_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BaseAPIError(Exception):
    """Base exception class for API errors"""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorKind = ErrorKind.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(BaseAPIError):
    """Raised when input validation fails"""
    def __init__(
        self,
        message: str = "Invalid input",
        errors: Optional[List[Dict[str, str]]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        if errors:
            details["errors"] = errors
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorKind.VALIDATION_ERROR,
            details=details
        )


class BusinessRuleError(BaseAPIError):
    """Raised when a cross-field or state rule is violated"""
    def __init__(
        self,
        message: str = "Operation violates a business rule",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorKind.BUSINESS_RULE,
            details=details
        )


class DependencyError(BaseAPIError):
    """Raised when a delete is blocked by dependent records"""
    def __init__(self, message: str, dependencies: Dict[str, int]):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorKind.HAS_DEPENDENTS,
            details={"dependencies": dependencies}
        )


class AuthenticationError(BaseAPIError):
    """Base class for authentication-related errors"""
    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: ErrorKind = ErrorKind.AUTH_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=error_code,
            details=details
        )


class InvalidCredentialsException(AuthenticationError):
    """Raised when user credentials are invalid"""
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, error_code=ErrorKind.INVALID_CREDENTIALS)


class TokenError(AuthenticationError):
    """Raised when there's a token-related error"""
    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message=message, error_code=ErrorKind.TOKEN_ERROR)


class PermissionDenied(BaseAPIError):
    """Raised when user doesn't have required permissions"""
    def __init__(
        self,
        message: str = "Operation not permitted",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code=ErrorKind.PERMISSION_DENIED,
            details=details
        )


class NotFoundError(BaseAPIError):
    """Raised when a requested resource is not found or not visible"""
    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorKind.NOT_FOUND,
            details=details
        )


class ConflictError(BaseAPIError):
    """Raised on duplicates and overlapping ranges"""
    def __init__(
        self,
        message: str = "Resource conflicts with existing data",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=ErrorKind.CONFLICT,
            details=details
        )


class DatabaseError(BaseAPIError):
    """Raised when there's a database-related error"""
    def __init__(
        self,
        message: str = "Database error occurred",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=ErrorKind.DB_ERROR,
            details=details
        )


def is_production() -> bool:
    return settings.PRODUCTION or not settings.DEBUG


def get_error_message(error: Exception) -> Dict[str, Any]:
    """
    Build the JSON body for an error response.

    API errors carry their own message and details; everything else is
    reported generically, with the exception text added outside production.
    """
    if isinstance(error, BaseAPIError):
        body = {"message": error.message, "error_code": error.error_code.value}
        body.update(error.details)
        return body

    if isinstance(error, IntegrityError):
        return {
            "message": "Resource conflicts with existing data",
            "error_code": ErrorKind.CONFLICT.value,
        }

    if isinstance(error, SQLAlchemyError):
        body = {"message": "Database error occurred", "error_code": ErrorKind.DB_ERROR.value}
    else:
        body = {"message": "Internal server error", "error_code": ErrorKind.INTERNAL_ERROR.value}

    if not is_production():
        body["error_type"] = error.__class__.__name__
        body["detail"] = str(error)
    return body


def _format_validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(location) or "body",
            "message": error.get("msg", "Invalid value")
        })
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error envelope handlers to the application"""

    @app.exception_handler(BaseAPIError)
    async def api_error_handler(request: Request, exc: BaseAPIError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code.value}: {exc.message}", exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content=get_error_message(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = _format_validation_errors(exc)
        logger.info(f"Invalid input on {request.url.path}: {errors}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": "Invalid input",
                "error_code": ErrorKind.VALIDATION_ERROR.value,
                "errors": errors
            }
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail), "error_code": ErrorKind.HTTP_ERROR.value},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.warning(f"Integrity violation on {request.url.path}: {exc.orig}")
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=get_error_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}",
            exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=get_error_message(exc)
        )
