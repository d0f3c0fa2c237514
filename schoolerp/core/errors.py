from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from schoolerp.core.logging import logger


class BaseAPIError(Exception):
    """Base exception class for API errors"""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
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
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_ERROR",
            details=details
        )


class InvalidStateError(BaseAPIError):
    """Raised when an operation conflicts with the current state of a record"""
    def __init__(
        self,
        message: str = "This operation cannot be performed in the current state",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_STATE",
            details=details
        )


class AuthenticationError(BaseAPIError):
    """Base class for authentication-related errors"""
    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: str = "AUTH_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code=error_code,
            details=details
        )


class TokenError(AuthenticationError):
    """Raised when there's a token-related error"""
    def __init__(
        self,
        message: str = "Invalid or expired token",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="TOKEN_ERROR",
            details=details
        )


class PermissionDenied(BaseAPIError):
    """Raised when user doesn't have required permissions"""
    def __init__(
        self,
        message: str = "Permission denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
            details=details
        )


class NotFoundError(BaseAPIError):
    """Raised when a requested resource is not found"""
    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details
        )


class SchoolNotFoundError(NotFoundError):
    def __init__(self, message: str = "School not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)


class RecordNotFoundError(NotFoundError):
    pass


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
            error_code="DB_ERROR",
            details=details
        )


class TenantConnectionError(DatabaseError):
    """Raised when a school database cannot be reached"""
    def __init__(
        self,
        message: str = "Failed to connect to school database",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, details=details)
        self.error_code = "TENANT_CONNECTION_ERROR"


class InternalServerError(BaseAPIError):
    """Wraps an unexpected failure with an operation-specific message"""
    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_ERROR",
            details={"error": error} if error else None
        )


def get_error_message(error: Exception, default_message: str = "An unexpected error occurred") -> Dict[str, Any]:
    """
    Formats an exception into the response envelope.

    Returns a dict with ``success``, ``message`` and an optional ``error``
    carrying the raw error text for server-side failures.
    """
    body: Dict[str, Any] = {"success": False, "message": default_message}

    if isinstance(error, BaseAPIError):
        body["message"] = error.message
        if "data" in error.details:
            body["data"] = error.details["data"]
        if error.details.get("error"):
            body["error"] = error.details["error"]
        elif error.status_code >= 500 and error.details:
            body["error"] = error.details
    elif isinstance(error, HTTPException):
        body["message"] = str(error.detail)
    elif isinstance(error, SQLAlchemyError):
        body["message"] = "Database error occurred"
        body["error"] = str(error)
    else:
        body["error"] = str(error)

    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that turn every failure into the JSON envelope"""

    @app.exception_handler(BaseAPIError)
    async def api_error_handler(request: Request, exc: BaseAPIError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=get_error_message(exc))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=get_error_message(exc),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid value for {location}: {first.get('msg')}" if location else "Invalid request"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": message},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=get_error_message(exc, default_message="Internal server error"),
        )
