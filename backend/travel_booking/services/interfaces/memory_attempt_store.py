"""
In-process attempt store. Expiry is checked on access and expired entries
are swept on every write.
"""

import time
from typing import Callable

from travel_booking.services.interfaces.attempt_store import AttemptStore


class MemoryAttemptStore(AttemptStore):
    """
    Dict-backed store for a single process.

    Each method does its read-modify-write without awaiting, so concurrent
    coroutines on the same event loop cannot interleave inside an increment.
    Also the fallback when Redis is down, so one-off identifiers must not
    pile up: every write drops whatever has already expired.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._failures: dict[str, tuple[int, float]] = {}
        self._locks: dict[str, float] = {}

    def _prune(self, now: float) -> None:
        for key in [k for k, (_, expires_at) in self._failures.items() if expires_at <= now]:
            del self._failures[key]
        for key in [k for k, expires_at in self._locks.items() if expires_at <= now]:
            del self._locks[key]

    def size(self) -> int:
        """Identifiers currently held, expired or not."""
        return len(self._failures.keys() | self._locks.keys())

    async def lockout_remaining(self, key: str) -> float:
        expires_at = self._locks.get(key)
        if expires_at is None:
            return 0.0
        remaining = expires_at - self._clock()
        if remaining <= 0:
            del self._locks[key]
            return 0.0
        return remaining

    async def record_failure(self, key: str, window_seconds: int) -> int:
        now = self._clock()
        self._prune(now)
        count, _ = self._failures.get(key, (0, now))
        count += 1
        self._failures[key] = (count, now + window_seconds)
        return count

    async def lock(self, key: str, seconds: int) -> None:
        now = self._clock()
        self._prune(now)
        self._locks[key] = now + seconds

    async def clear(self, key: str) -> None:
        self._failures.pop(key, None)
        self._locks.pop(key, None)
