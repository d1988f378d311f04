"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis

from behaviormarket.redis_client import get_optional_redis, get_redis


async def get_redis_dep() -> AsyncGenerator[redis.Redis, None]:
    """Yield the Redis client as a FastAPI dependency."""
    yield get_redis()


async def get_optional_redis_dep() -> AsyncGenerator[redis.Redis | None, None]:
    """Yield the Redis client, or None when Redis is not configured.

    Routes that only use Redis for side effects (WebSocket pushes,
    notifications) depend on this so they keep working without it.
    """
    yield get_optional_redis()
