"""Shared redis connection, used for rate limiting AI requests."""

import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import settings

logger = logging.getLogger(__name__)

_redis: Optional[Redis] = None


async def get_redis() -> Redis:
    global _redis
    if _redis is None:
        # Short connect timeout: a missing redis must not stall AI requests
        _redis = Redis.from_url(settings.REDIS_URL, decode_responses=True, socket_connect_timeout=2)
    return _redis


async def redis_status(redis: Redis) -> str:
    """Report "ok" or "unavailable"; the app keeps serving either way."""
    try:
        await redis.ping()
        return "ok"
    except RedisError as exc:
        logger.warning("Redis ping failed: %s", exc)
        return "unavailable"


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
