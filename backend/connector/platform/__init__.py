from connector.platform.errors import (
    AppError,
    ValidationError,
    ForbiddenError,
    UpstreamError,
    RateLimitError,
    ErrorHandlerMiddleware,
    register_error_handlers,
)

__all__ = [
    "AppError",
    "ValidationError",
    "ForbiddenError",
    "UpstreamError",
    "RateLimitError",
    "ErrorHandlerMiddleware",
    "register_error_handlers",
]
