"""
Redis-backed login attempt store.

Key layout:
  login:fail:{email}  -> integer counter, TTL = attempt window (reset on every failure)
  login:lock:{email}  -> "1", TTL = lockout duration

INCR and EXPIRE run inside one MULTI/EXEC, so two simultaneous wrong
passwords for the same email always observe distinct counter values.
Lockout time left is read straight from PTTL; Redis expires both keys on
its own, nothing sweeps them.
"""

import redis.asyncio as redis

from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import redis_connection_errors
from travel_booking.services.interfaces.attempt_store import AttemptStore, StoreUnavailable

logger = get_logger(__name__)

FAIL_KEY = "login:fail:{}"
LOCK_KEY = "login:lock:{}"


class RedisAttemptStore(AttemptStore):
    def __init__(self, client: redis.Redis):
        self.redis = client

    def _unavailable(self, operation: str, error: Exception) -> StoreUnavailable:
        redis_connection_errors.labels(store="attempts").inc()
        logger.error("attempt_store_error", operation=operation, error=str(error))
        return StoreUnavailable(str(error))

    async def lockout_remaining(self, key: str) -> float:
        try:
            ttl_ms = await self.redis.pttl(LOCK_KEY.format(key))
        except redis.RedisError as e:
            raise self._unavailable("lockout_remaining", e) from e
        # -2: no key, -1: key without expiry (never written that way)
        return ttl_ms / 1000 if ttl_ms > 0 else 0.0

    async def record_failure(self, key: str, window_seconds: int) -> int:
        fail_key = FAIL_KEY.format(key)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(fail_key)
                pipe.expire(fail_key, window_seconds)
                count, _ = await pipe.execute()
        except redis.RedisError as e:
            raise self._unavailable("record_failure", e) from e
        return int(count)

    async def lock(self, key: str, seconds: int) -> None:
        try:
            await self.redis.set(LOCK_KEY.format(key), "1", ex=seconds)
        except redis.RedisError as e:
            raise self._unavailable("lock", e) from e

    async def clear(self, key: str) -> None:
        try:
            await self.redis.delete(FAIL_KEY.format(key), LOCK_KEY.format(key))
        except redis.RedisError as e:
            raise self._unavailable("clear", e) from e
