"""On-demand accrual check for one user (dashboard "check earnings").

Runs the same engine as the daily cron, restricted to one owner, at most
once per cooldown window. The window is a Redis key set with NX + EX:
whoever sets it runs the check, everyone else gets RateLimitError. A run
that fails deletes the key again.

Redis logic:
    claimed = await redis.set(redis_key("accrual", "check", user_id), "1", nx=True, ex=cooldown)
    if not claimed:
        raise RateLimitError()
"""

import logging

import redis.asyncio as aioredis

from config.settings import settings
from src.yp_accrual.application.engine import AccrualEngine, AccrualRunResult
from src.yp_common.errors import RateLimitError
from src.yp_common.redis_client import redis_key

logger = logging.getLogger(__name__)


def check_key(user_id: str) -> str:
    return redis_key("accrual", "check", user_id)


async def claim_freshness_check(
    redis: aioredis.Redis, user_id: str, cooldown_seconds: int
) -> bool:
    """True if this caller owns the check for the current window."""
    claimed = await redis.set(check_key(user_id), "1", nx=True, ex=cooldown_seconds)
    return bool(claimed)


async def run_user_check(
    engine: AccrualEngine,
    redis: aioredis.Redis,
    user_id: str,
    cooldown_seconds: int | None = None,
) -> AccrualRunResult:
    cooldown = (
        cooldown_seconds
        if cooldown_seconds is not None
        else settings.ACCRUAL_CHECK_COOLDOWN_SECONDS
    )
    if not await claim_freshness_check(redis, user_id, cooldown):
        logger.info("Accrual check for user %s throttled (cooldown %ds)", user_id, cooldown)
        raise RateLimitError()
    try:
        return await engine.run_due_accrual(user_id=user_id)
    except Exception:
        # No check ran; release the window so the user can retry
        await redis.delete(check_key(user_id))
        raise
