"""CORS configuration for the web frontend."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from behaviormarket.config import Settings

EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the configured frontend origins, with credentials."""
    origins = list(settings.cors_origins)
    if settings.frontend_url and settings.frontend_url not in origins:
        origins.append(settings.frontend_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-API-Key", "X-Request-Id", "Stripe-Signature"],
        expose_headers=EXPOSED_HEADERS,
    )
