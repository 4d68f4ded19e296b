import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from resume_builder.core.exceptions import RateLimitedError

logger = logging.getLogger(__name__)


async def enforce_rate_limit(redis: Redis, key: str, limit: int, window: int) -> int:
    """
    Count one call against ``key`` and raise once ``limit`` calls happened
    within ``window`` seconds. Returns the current count.

    Redis being unavailable never blocks a caller.
    """
    try:
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, window)
        if count > limit:
            ttl = await redis.ttl(key)
            logger.info("Rate limit hit for %s (%d/%d)", key, count, limit)
            raise RateLimitedError(retry_after=ttl if ttl and ttl > 0 else window)
        return count
    except RedisError as exc:
        # If Redis unavailable, fail-open (no throttle)
        logger.warning("Rate limiter unavailable, allowing call: %s", exc)
        return 0
