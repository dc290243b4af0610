"""
Rate limiting for the connect endpoints using a Redis sliding window.

Limits are per endpoint and per client IP. There is no authenticated
user on the OAuth routes, so the client address is the only identity.
X-Forwarded-For is honoured only for TRUSTED_PROXY_COUNT proxy hops.

Features:
- Configurable limit and window (RATE_LIMIT_MAX, RATE_LIMIT_WINDOW_SECONDS)
- Returns 429 with Retry-After header when exceeded
- Emits rate_limit.triggered via structured logging
- Graceful degradation if Redis is unavailable (allow request, log warning)

Usage (FastAPI dependency injection):
    from connector.middleware.rate_limit import rate_limit_dependency

    @router.get("/connect/tiktok/start")
    def start(
        request: Request,
        _rate_limit=Depends(rate_limit_dependency("connect_start")),
    ):
        ...

The limiter instance is read from ``request.app.state.rate_limiter``;
when it is None rate limiting is disabled.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

import redis
from fastapi import Request

from connector.platform.errors import RateLimitError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rate limit result dataclass
# ---------------------------------------------------------------------------

@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    Attributes:
        allowed:     Whether the request is allowed.
        remaining:   Number of requests remaining in the current window.
        limit:       Maximum number of requests allowed per window.
        reset_at:    Unix timestamp when the current window resets.
        retry_after: Seconds until the client should retry (0 if allowed).
    """

    allowed: bool
    remaining: int
    limit: int
    reset_at: float
    retry_after: int


# ---------------------------------------------------------------------------
# RateLimiter class
# ---------------------------------------------------------------------------

class RateLimiter:
    """
    Redis-backed sliding window rate limiter.

    Each request is a sorted-set member scored by its timestamp. On each
    check the window is trimmed to the last ``window_seconds`` seconds
    and the remaining member count is compared against the limit.

    If Redis is unavailable the limiter fails open: requests are allowed
    and a warning is logged.
    """

    def __init__(
        self,
        redis_url: str,
        default_limit: int = 60,
        window_seconds: int = 60,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.default_limit = default_limit
        self.window_seconds = window_seconds
        self._redis: Optional[redis.Redis] = client

    # -- Redis connection (lazy) -----------------------------------------

    def _get_redis(self) -> redis.Redis:
        """
        Get or create a Redis connection.

        Created lazily on first use so the app can start before Redis is up.
        """
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self._redis

    def close(self) -> None:
        if self._redis is not None:
            self._redis.close()
            self._redis = None

    # -- Core sliding window check ---------------------------------------

    def check_rate_limit(
        self,
        client_id: str,
        endpoint: str,
        limit: Optional[int] = None,
        window: Optional[int] = None,
    ) -> RateLimitResult:
        """
        Check whether a request is allowed under the sliding window.

        Algorithm:
        1. Build key ``ratelimit:{endpoint}:{client_id}``
        2. Remove sorted-set members with score < (now - window)
        3. Count remaining members and read the oldest one
        4. If count >= limit  -> denied, retry when the oldest entry expires
        5. Otherwise          -> add current timestamp, set TTL, allow

        Args:
            client_id: Client identity (IP address).
            endpoint:  Logical endpoint name (e.g. ``"connect_start"``).
            limit:     Override for the per-window request limit.
            window:    Override for the window duration in seconds.

        Returns:
            :class:`RateLimitResult` describing the outcome.
        """
        effective_limit = limit if limit is not None else self.default_limit
        effective_window = window if window is not None else self.window_seconds

        now = time.time()
        window_start = now - effective_window
        reset_at = now + effective_window

        key = f"ratelimit:{endpoint}:{client_id}"

        try:
            r = self._get_redis()

            pipe = r.pipeline(transaction=True)
            pipe.zremrangebyscore(key, "-inf", window_start)
            pipe.zcard(key)
            pipe.zrange(key, 0, 0, withscores=True)
            results = pipe.execute()

            current_count: int = results[1]
            oldest = results[2]

            if current_count >= effective_limit:
                oldest_score = float(oldest[0][1]) if oldest else now
                retry_after = max(1, math.ceil(oldest_score + effective_window - now))
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    limit=effective_limit,
                    reset_at=oldest_score + effective_window,
                    retry_after=retry_after,
                )

            # Counter suffix keeps members unique within one timestamp
            member = f"{now}:{client_id}:{current_count}"
            pipe2 = r.pipeline(transaction=True)
            pipe2.zadd(key, {member: now})
            pipe2.expire(key, effective_window + 10)
            pipe2.execute()

            return RateLimitResult(
                allowed=True,
                remaining=max(0, effective_limit - current_count - 1),
                limit=effective_limit,
                reset_at=reset_at,
                retry_after=0,
            )

        except redis.RedisError as exc:
            logger.warning(
                "Redis unavailable for rate limiting - allowing request (fail-open)",
                extra={
                    "error_type": type(exc).__name__,
                    "endpoint": endpoint,
                    "client_id": client_id,
                },
            )
            return RateLimitResult(
                allowed=True,
                remaining=effective_limit,
                limit=effective_limit,
                reset_at=reset_at,
                retry_after=0,
            )


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

def get_client_ip(request: Request, trusted_proxies: int = 0) -> str:
    """
    Client address used as the rate limit identity.

    X-Forwarded-For is only consulted when ``trusted_proxies`` > 0. Each
    trusted proxy appends one hop on the right, so the client is the hop
    ``trusted_proxies`` positions from the end. Hops further left are
    client-supplied and never used.
    """
    if trusted_proxies > 0:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
            if hops:
                return hops[max(0, len(hops) - trusted_proxies)]
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_dependency(
    endpoint_name: str,
    limit: Optional[int] = None,
    window: Optional[int] = None,
) -> Callable:
    """
    Create a FastAPI dependency that enforces rate limiting.

    Args:
        endpoint_name: Logical name for the endpoint (used in the Redis key).
        limit:         Override for the per-window request limit.
        window:        Override for the window duration in seconds.

    Returns:
        A sync dependency function. FastAPI runs it in the threadpool, so
        the blocking Redis round trip stays off the event loop.
    """

    def _dependency(request: Request) -> Optional[RateLimitResult]:
        limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return None

        config = getattr(request.app.state, "config", None)
        trusted_proxies = config.trusted_proxy_count if config is not None else 0
        client_ip = get_client_ip(request, trusted_proxies)
        result = limiter.check_rate_limit(
            client_id=client_ip,
            endpoint=endpoint_name,
            limit=limit,
            window=window,
        )

        if not result.allowed:
            logger.warning(
                "Rate limit triggered",
                extra={
                    "action": "rate_limit.triggered",
                    "client_ip": client_ip,
                    "endpoint": endpoint_name,
                    "limit": result.limit,
                    "retry_after": result.retry_after,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            raise RateLimitError(
                "Too many requests. Please wait before retrying.",
                retry_after=result.retry_after,
            )

        return result

    return _dependency
