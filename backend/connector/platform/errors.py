"""
Consistent error handling for the shop connector.

All API errors MUST use these error classes and the flat error shape:

    {"error": "<message>", "code": "<CODE>"}

Stack traces are NEVER returned to clients.

Standard HTTP status codes:
- 400: Bad Request (missing or malformed parameters)
- 403: Forbidden (missing cookie, invalid OAuth state)
- 429: Too Many Requests (rate limit)
- 500: Internal Server Error
- 502: Bad Gateway (authorization server failure)
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class AppError(Exception):
    """
    Base application error with consistent error shape.

    All custom errors should inherit from this class.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to API error response format."""
        return {"error": self.message, "code": self.code, **self.details}


class ValidationError(AppError):
    """Validation error (400)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class ForbiddenError(AppError):
    """Request refused (403), e.g. missing or forged OAuth state."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class UpstreamError(AppError):
    """Authorization server call failed (502)."""

    def __init__(self, message: str = "Authorization server request failed"):
        # SECURITY: upstream bodies may echo secrets, never forward them
        super().__init__(
            code="UPSTREAM_ERROR",
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
        )


class RateLimitError(AppError):
    """Rate limit exceeded (429)."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[int] = None):
        details = {}
        if retry_after:
            details["retry_after"] = retry_after
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details,
        )
        self.retry_after = retry_after


def generate_request_id() -> str:
    """Generate a unique request ID for tracing."""
    return str(uuid.uuid4())


def get_request_id(request: Request) -> str:
    """
    Get request ID from request or generate a new one.

    Checks the X-Request-ID header first, then request state.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER)
    if request_id:
        return request_id

    if hasattr(request.state, "request_id"):
        return request.state.request_id

    return generate_request_id()


def _error_headers(error: AppError, request_id: str) -> dict[str, str]:
    headers = {REQUEST_ID_HEADER: request_id}
    if isinstance(error, RateLimitError) and error.retry_after:
        headers["Retry-After"] = str(error.retry_after)
    return headers


def app_error_response(request: Request, error: AppError) -> JSONResponse:
    """Log an AppError and render it as a JSON response."""
    request_id = get_request_id(request)
    logger.warning(
        "Application error",
        extra={
            "request_id": request_id,
            "error_code": error.code,
            "status_code": error.status_code,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
        headers=_error_headers(error, request_id),
    )


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    return app_error_response(request, exc)


async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    request_id = get_request_id(request)
    headers = dict(exc.headers or {})
    headers[REQUEST_ID_HEADER] = request_id
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": "HTTP_ERROR"},
        headers=headers,
    )


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed query or body is reported like any other bad parameter
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    return app_error_response(
        request,
        ValidationError("Invalid request parameters", details={"fields": fields}),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the AppError, HTTPException and request validation handlers on an app."""
    app.add_exception_handler(AppError, _handle_app_error)
    app.add_exception_handler(HTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that tags every response with a request ID and turns
    anything unhandled into a generic 500.

    IMPORTANT: Stack traces are NEVER returned to clients.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = get_request_id(request)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        except AppError as e:
            return app_error_response(request, e)

        except Exception as e:
            # Full exception is logged server-side only
            logger.exception(
                "Unhandled exception",
                extra={
                    "request_id": request_id,
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal server error",
                    "code": "INTERNAL_ERROR",
                    "request_id": request_id,
                },
                headers={REQUEST_ID_HEADER: request_id},
            )
