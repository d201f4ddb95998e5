"""Rate limiting service using Redis."""

from __future__ import annotations

import logging

import redis

from ..cache import get_redis_client

logger = logging.getLogger(__name__)


def check_rate_limit(key: str, limit: int, window_seconds: int = 60) -> tuple[bool, int]:
    """
    Check and increment a rate limit counter.

    Uses Redis INCR with EXPIRE. Fails open when Redis is unavailable.

    Args:
        key: Redis key for the counter (e.g., "ratelimit:login:{email}")
        limit: Maximum number of requests allowed in the window
        window_seconds: Window length in seconds

    Returns:
        Tuple of (allowed, remaining)
    """
    client = get_redis_client()
    if not client:
        return True, limit

    try:
        current = client.get(key)
        count = int(current) if current else 0
        if count >= limit:
            return False, 0

        pipe = client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        new_count = pipe.execute()[0]
        return True, max(0, limit - new_count)
    except redis.RedisError as e:
        logger.error(f"Rate limit check error for key '{key}': {e}")
        return True, limit


def reset_rate_limit(key: str) -> None:
    client = get_redis_client()
    if not client:
        return
    try:
        client.delete(key)
    except redis.RedisError as e:
        logger.error(f"Rate limit reset error for key '{key}': {e}")
