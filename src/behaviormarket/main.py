"""FastAPI application factory."""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from behaviormarket.admin.router import router as admin_router
from behaviormarket.analytics.router import router as analytics_router
from behaviormarket.auth.router import router as auth_router
from behaviormarket.behaviors.router import router as behaviors_router
from behaviormarket.community.router import router as community_router
from behaviormarket.companies.router import router as companies_router
from behaviormarket.config import get_settings
from behaviormarket.database import close_db, init_db
from behaviormarket.gamification.router import router as gamification_router
from behaviormarket.health.router import router as health_router
from behaviormarket.marketplace.router import router as marketplace_router
from behaviormarket.middleware import setup_middleware
from behaviormarket.notifications.router import router as notifications_router
from behaviormarket.predictions.router import router as predictions_router
from behaviormarket.redis_client import close_redis, get_redis, init_redis
from behaviormarket.subscriptions.router import router as subscriptions_router
from behaviormarket.subscriptions.webhooks import router as webhooks_router
from behaviormarket.users.router import router as users_router
from behaviormarket.ws.bridge import PubSubBridge
from behaviormarket.ws.router import router as ws_router
from behaviormarket.ws.stats import run_stats_broadcaster

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database and Redis pools; run the WS bridge and stats broadcaster."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    bridge = PubSubBridge(get_redis())
    tasks = [
        asyncio.create_task(bridge.start()),
        asyncio.create_task(run_stats_broadcaster(settings.ws_stats_interval_seconds)),
    ]
    logger.info("app_started", environment=settings.environment, version=settings.app_version)

    yield

    await bridge.stop()
    for task in tasks:
        task.cancel()
    for task in tasks:
        with contextlib.suppress(asyncio.CancelledError):
            await task

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="BehaviorMarket API",
        description="Behavior logging, heuristic predictions and a data marketplace that pays its contributors",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(companies_router)
    app.include_router(behaviors_router)
    app.include_router(predictions_router)
    app.include_router(marketplace_router)
    app.include_router(subscriptions_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router)
    app.include_router(analytics_router)
    app.include_router(gamification_router)
    app.include_router(notifications_router)
    app.include_router(community_router)
    app.include_router(ws_router)

    return app


app = create_app()
