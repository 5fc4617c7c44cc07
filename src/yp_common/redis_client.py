"""Shared Redis connection for short-lived coordination keys.

Only the on-demand accrual check throttle lives here. Balances, positions
and the ledger are PostgreSQL-only, so losing Redis never loses money
state: the worst case is an extra (idempotent) on-demand run.

Every key goes through redis_key() so that several environments can
share one Redis instance:
    redis_key("accrual", "check", "u1")  ->  "yp:accrual:check:u1"
"""

import logging

import redis.asyncio as aioredis

from config.settings import settings

logger = logging.getLogger(__name__)

_redis_pool: aioredis.Redis | None = None


def redis_key(*parts: str) -> str:
    return ":".join((settings.REDIS_KEY_PREFIX, *parts))


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool (FastAPI dependency)."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
    return _redis_pool


async def verify_redis() -> None:
    """Startup check; raises if Redis is unreachable."""
    redis = await get_redis()
    await redis.ping()
    logger.info("Redis reachable at %s", settings.REDIS_URL.rsplit("@", 1)[-1])


async def close_redis() -> None:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
