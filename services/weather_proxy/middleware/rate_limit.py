"""
Redis-backed sliding window rate limiter.

One tier for every route except /health: RATE_LIMIT_REQUESTS requests per
RATE_LIMIT_WINDOW_S seconds per client (default 1 req/s, keyed by client IP
or the first X-Forwarded-For hop).

Uses the process-wide Redis client from app.state. When Redis is missing or
erroring, requests pass through unlimited; weather resolution itself never
depends on this middleware.
"""

import logging
import math
import time
from typing import Callable

from fastapi import Request, Response
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health",)


def _get_client_key(request: Request) -> str:
    """Extract client identifier from the connection or proxy header."""
    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    return f"ip:{client_ip}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window rate limiter backed by Redis sorted sets."""

    def __init__(self, app, limit: int, window_s: float, enabled: bool = True):
        super().__init__(app)
        self.limit = limit
        self.window_s = window_s
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        redis = getattr(request.app.state, "redis", None)
        if redis is None:
            return await call_next(request)

        window_key = f"ratelimit:{_get_client_key(request)}"
        now = time.time()
        window_start = now - self.window_s

        try:
            pipe = redis.pipeline()
            # Remove expired entries
            pipe.zremrangebyscore(window_key, 0, window_start)
            # Count current entries
            pipe.zcard(window_key)
            # Add current request
            pipe.zadd(window_key, {f"{now}:{id(request)}": now})
            # Keep idle keys from lingering
            pipe.expire(window_key, max(1, math.ceil(self.window_s * 2)))
            results = await pipe.execute()
        except (RedisError, OSError):
            logger.warning("Rate limiter unavailable, passing request through", exc_info=True)
            return await call_next(request)

        current_count = results[1]

        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.limit - current_count - 1)),
            "X-RateLimit-Reset": str(math.ceil(now + self.window_s)),
        }

        if current_count >= self.limit:
            headers["Retry-After"] = str(max(1, math.ceil(self.window_s)))
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": (
                            f"Rate limit exceeded. Max {self.limit} requests "
                            f"per {self.window_s:g}s."
                        ),
                    },
                    "requestId": getattr(request.state, "request_id", ""),
                },
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response
