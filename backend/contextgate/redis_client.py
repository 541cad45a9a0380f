"""Async Redis client with graceful fallback.

Only used when SESSION_BACKEND=redis. If Redis is unavailable at startup the
app logs a warning and keeps login state in cookies instead.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None


async def connect_redis(url: str) -> aioredis.Redis | None:
    """Connect to Redis. Logs warning if unavailable — does not raise."""
    global _redis
    _redis = aioredis.from_url(url, decode_responses=True)
    try:
        await _redis.ping()
        logger.info("Redis connected at %s", url)
    except Exception:
        logger.warning("Redis unavailable at %s — falling back to cookie sessions", url)
        await _redis.aclose()
        _redis = None
    return _redis


async def disconnect_redis() -> None:
    """Close Redis connection if open."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Redis disconnected")


def get_redis() -> aioredis.Redis | None:
    """Return the shared Redis instance (or None if unavailable)."""
    return _redis
