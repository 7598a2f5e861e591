"""
Redis-backed fixed-window rate limiter.

Keys are `vidah:ratelimit:{action}:{identifier}`. INCR and EXPIRE NX go out
in one transaction, so the first hit in a window sets the TTL and later hits
leave it alone. Redis failures fail open so an outage never blocks leads.
"""
import logging
from typing import Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Muitas requisições. Tente novamente mais tarde."

_redis_client = None


async def get_redis():
    """Get or create the shared Redis connection."""
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis
        from vidah.config import get_settings
        _redis_client = aioredis.from_url(
            get_settings().redis_url,
            decode_responses=True,
        )
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
    _redis_client = None


async def check_rate_limit(
    action: str,
    identifier: str,
    limit: int,
    window_seconds: int,
) -> tuple[bool, Optional[int]]:
    """
    Count one hit for (action, identifier).

    Returns: (allowed, retry_after_seconds | None)
    """
    try:
        redis = await get_redis()
        key = f"vidah:ratelimit:{action}:{identifier}"
        # MULTI/EXEC: the counter never exists without a TTL
        pipe = redis.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, window_seconds, nx=True)
        count, _ = await pipe.execute()
        if count > limit:
            ttl = await redis.ttl(key)
            retry_after = ttl if isinstance(ttl, int) and ttl > 0 else window_seconds
            logger.warning(
                "Rate limit exceeded: action=%s count=%d limit=%d", action, count, limit,
                extra={"client_ip": identifier},
            )
            return False, retry_after
        return True, None
    except Exception as e:
        logger.warning("Rate limiting unavailable (Redis error): %s", str(e))
        return True, None


async def enforce_rate_limit(
    action: str,
    identifier: str,
    limit: int,
    window_seconds: int,
) -> None:
    """Raise 429 with Retry-After when the caller is over the limit."""
    allowed, retry_after = await check_rate_limit(action, identifier, limit, window_seconds)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=RATE_LIMIT_MESSAGE,
            headers={"Retry-After": str(retry_after)},
        )
