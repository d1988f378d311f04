"""Middleware registration."""

from fastapi import FastAPI

from behaviormarket.config import Settings
from behaviormarket.middleware.cors import setup_cors
from behaviormarket.middleware.error_handler import setup_error_handlers
from behaviormarket.middleware.logging import setup_logging
from behaviormarket.middleware.rate_limit import RateLimitMiddleware
from behaviormarket.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers and the HTTP middleware stack.

    Starlette runs middleware outermost-last, so CORS is added after the
    rate limiter to decorate its 429 responses too.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
