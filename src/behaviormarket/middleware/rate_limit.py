"""Fixed-window, per-IP rate limiting backed by Redis counters."""

import time
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from behaviormarket.redis_client import get_redis

logger = structlog.get_logger()

# Probes must never be throttled
_EXEMPT_PATHS = frozenset({"/health", "/ready"})


def client_ip(request: Request) -> str:
    """Best-effort client address, honouring a proxy's X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Allow ``limit`` requests per client IP per ``window_seconds``."""

    def __init__(self, app: Any, limit: int = 100, window_seconds: int = 900) -> None:  # noqa: ANN401
        super().__init__(app)
        self.limit = limit
        self.window_seconds = window_seconds

    def _limit_headers(self, remaining: int) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(remaining),
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        try:
            redis = get_redis()
        except RuntimeError:
            # No Redis pool (tests, local scripts): do not throttle
            return await call_next(request)

        ip = client_ip(request)
        window = int(time.time()) // self.window_seconds
        key = f"ratelimit:{ip}:{window}"

        pipe = redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_seconds + 1)
        count: int = (await pipe.execute())[0]

        if count > self.limit:
            logger.warning("rate_limit_exceeded", client_ip=ip, path=request.url.path, count=count)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests from this IP, please try again later."},
                headers={"Retry-After": str(self.window_seconds), **self._limit_headers(0)},
            )

        response = await call_next(request)
        response.headers.update(self._limit_headers(max(0, self.limit - count)))
        return response
