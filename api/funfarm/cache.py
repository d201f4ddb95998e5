"""Redis cache utility functions."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import redis

logger = logging.getLogger(__name__)

# Redis connection
_redis_client: redis.Redis | None = None


def redis_url() -> str:
    """
    Redis URL from the environment, falling back to the Celery broker URL.

    An explicitly empty REDIS_URL disables Redis.
    """
    if "REDIS_URL" in os.environ:
        return os.environ["REDIS_URL"].strip()
    return os.getenv("CELERY_BROKER_URL", "redis://cache:6379/0")


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None if Redis is disabled or the connection fails.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    url = redis_url()
    if not url:
        return None

    try:
        client = redis.from_url(url, decode_responses=True, socket_connect_timeout=2)
        client.ping()
        logger.info("Redis cache connected successfully")
        _redis_client = client
        return _redis_client
    except redis.RedisError as e:
        logger.warning(f"Redis cache unavailable: {e}. Continuing without cache.")
        return None


def cache_get(key: str) -> Any | None:
    """
    Retrieve a cached value by key.

    Returns the JSON-decoded value if found, None otherwise.
    """
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value
    except redis.RedisError as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None


def cache_set(key: str, value: Any, ttl: int = 300) -> bool:
    """
    Set a cached value with TTL (seconds).
    """
    client = get_redis_client()
    if not client:
        return False

    try:
        if isinstance(value, (dict, list)):
            serialized = json.dumps(value, default=str)
        else:
            serialized = str(value)
        client.setex(key, ttl, serialized)
        return True
    except redis.RedisError as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False


def cache_invalidate(pattern: str) -> int:
    """
    Invalidate cache entries matching a pattern (e.g. "leaderboard:*").

    Returns the number of keys deleted.
    """
    client = get_redis_client()
    if not client:
        return 0

    try:
        keys = list(client.scan_iter(match=pattern))
        if not keys:
            return 0
        deleted = client.delete(*keys)
        logger.info(f"Invalidated {deleted} cache entries matching pattern '{pattern}'")
        return deleted
    except redis.RedisError as e:
        logger.warning(f"Cache invalidate error for pattern '{pattern}': {e}")
        return 0


def cache_delete(key: str) -> bool:
    client = get_redis_client()
    if not client:
        return False

    try:
        return bool(client.delete(key))
    except redis.RedisError as e:
        logger.warning(f"Cache delete error for key '{key}': {e}")
        return False
