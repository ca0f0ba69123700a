"""Redis client and cache helpers for trending snapshots"""
import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis

from trendvault.core.config import settings

logger = logging.getLogger(__name__)

# Trending snapshots are recomputed at most once per TTL per (period, limit)
TRENDING_CACHE_TTL = settings.TRENDING_CACHE_TTL


def create_async_redis_client(url: Optional[str] = None):
    """Create an async Redis client; no connection is opened until first use"""
    return aioredis.from_url(
        url or settings.REDIS_URL,
        decode_responses=True,
        max_connections=20
    )


def trending_cache_key(period: str, limit: int) -> str:
    return f"trending:{period}:{limit}"


async def get_cached_json(client, key: str) -> Optional[Any]:
    """Read a JSON value from the cache. Returns None when absent.

    Cache failures are logged and treated as a miss so that reads fall back
    to the database instead of failing the request.
    """
    try:
        cached = await client.get(key)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return None
    if not cached:
        return None
    try:
        return json.loads(cached)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Discarding undecodable cache entry {key}")
        return None


async def set_cached_json(client, key: str, value: Any, ttl: int) -> None:
    """Write a JSON value to the cache with an expiry (best-effort)"""
    try:
        await client.setex(key, ttl, json.dumps(value))
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {e}")
