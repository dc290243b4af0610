from connector.middleware.rate_limit import (
    RateLimiter,
    RateLimitResult,
    rate_limit_dependency,
)

__all__ = ["RateLimiter", "RateLimitResult", "rate_limit_dependency"]
