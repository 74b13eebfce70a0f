"""
Custom exception handlers for consistent API error responses.

Every error leaves the API with the same body shape::

    {"error": "...", "error_code": "...", "timestamp": "...", "path": "..."}

regardless of whether it started as one of the exceptions below, a
Starlette routing error (404/405), a request validation failure or a
plain Python ``ValueError``/``KeyError`` raised by a service.
"""

from datetime import datetime
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

STATUS_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "AUTH_FAILED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


class APIError(HTTPException):
    """Base API error with consistent structure"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        details: Optional[List[Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.details = details


class NotFoundError(APIError):
    """Resource not found error"""

    def __init__(
        self, detail: str = "Resource not found", error_code: str = "NOT_FOUND"
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND, detail=detail, error_code=error_code
        )


class ValidationError(APIError):
    """Validation error"""

    def __init__(
        self,
        detail: str = "Validation failed",
        error_code: str = "VALIDATION_ERROR",
        details: Optional[List[Any]] = None,
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code,
            details=details,
        )


class AuthenticationError(APIError):
    """Authentication error"""

    def __init__(
        self, detail: str = "Authentication failed", error_code: str = "AUTH_FAILED"
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
        )


class PermissionError(APIError):
    """Permission denied error"""

    def __init__(
        self, detail: str = "Permission denied", error_code: str = "PERMISSION_DENIED"
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN, detail=detail, error_code=error_code
        )


class ServiceUnavailableError(APIError):
    """Upstream service temporarily unavailable"""

    def __init__(
        self,
        detail: str = "Service temporarily unavailable",
        retry_after: Optional[int] = None,
        error_code: str = "SERVICE_UNAVAILABLE",
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code=error_code,
            headers=headers,
        )


def error_body(
    request: Request, detail: Any, error_code: Optional[str]
) -> Dict[str, Any]:
    return {
        "error": detail,
        "error_code": error_code,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "path": str(request.url.path),
    }


async def handle_key_error(request: Request, exc: KeyError) -> JSONResponse:
    """Convert KeyError to consistent API response"""
    logger.warning(f"KeyError at {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=error_body(request, f"Resource not found: {str(exc)}", "NOT_FOUND"),
    )


async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Convert ValueError to consistent API response"""
    logger.warning(f"ValueError at {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(request, str(exc), "VALIDATION_ERROR"),
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report body/query validation failures as 400 with readable messages"""
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    logger.warning(f"Request validation failed at {request.url.path}: {messages}")
    body = error_body(request, "; ".join(messages) or "Invalid request", "VALIDATION_ERROR")
    body["details"] = messages
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle framework HTTP errors such as unknown routes or wrong methods"""
    detail = exc.detail
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        detail = "Method not allowed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, detail, STATUS_ERROR_CODES.get(exc.status_code)),
        headers=getattr(exc, "headers", None),
    )


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors"""
    body = error_body(
        request,
        exc.detail,
        exc.error_code or STATUS_ERROR_CODES.get(exc.status_code),
    )
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error at {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "Internal server error", "INTERNAL_ERROR"),
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(KeyError, handle_key_error)
    app.add_exception_handler(ValueError, handle_value_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
