"""
Redis client initialization and connection management.

This module provides Redis client setup for caching trip summaries.
The client is created during application startup and stored on
``app.state``; routes receive it through ``get_redis``.
"""

import logging

import redis.asyncio as redis
from fastapi import Request
from redis.exceptions import RedisError

from backend.app.core.config import Settings

logger = logging.getLogger(__name__)


def create_redis_client(config: Settings) -> redis.Redis:
    """Build an async Redis client; connections are opened lazily."""
    return redis.from_url(
        config.redis_url,
        decode_responses=config.redis_decode_responses,
    )


async def get_redis(request: Request):
    """
    Get Redis client instance.

    This is used as a FastAPI dependency.
    """
    return request.app.state.redis


async def ping_redis(client) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
