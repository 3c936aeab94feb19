"""
Redis caching service for package listings.

CACHING STRATEGY
================

What we cache:
  - Package listing responses (paginated, JSON-serialized)
  - Cache key pattern: "packages:list:page={page}&size={size}&dest={destination}&upcoming={upcoming}"

Invalidation strategy:
  - On booking commit or cancellation: available_slots changed
  - On package create/update
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

  All listing keys share the "packages:list:" prefix so they can be found
  with SCAN and deleted together.

Package detail is never cached: the booking form needs the live slot count.

Every Redis failure here is logged and treated as a miss. The cache is never
allowed to fail a request.
"""

import json
from typing import Optional

import redis.asyncio as redis

from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import record_cache_operation, redis_connection_errors
from travel_booking.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

LIST_PREFIX = "packages:list:"


def _make_package_list_key(page: int, page_size: int, destination: Optional[str], upcoming_only: bool) -> str:
    dest = (destination or "").strip().lower()
    return f"{LIST_PREFIX}page={page}&size={page_size}&dest={dest}&upcoming={upcoming_only}"


async def get_cached_packages(
    page: int, page_size: int, destination: Optional[str], upcoming_only: bool,
) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_package_list_key(page, page_size, destination, upcoming_only)
    try:
        data = await client.get(key)
    except redis.RedisError as e:
        redis_connection_errors.labels(store="cache").inc()
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data:
        logger.debug("cache_hit", key=key)
        return json.loads(data)
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_packages(
    page: int, page_size: int, destination: Optional[str], upcoming_only: bool, data: dict,
) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_package_list_key(page, page_size, destination, upcoming_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        redis_connection_errors.labels(store="cache").inc()
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_package_cache() -> None:
    """Drop every cached package listing."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        redis_connection_errors.labels(store="cache").inc()
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}
