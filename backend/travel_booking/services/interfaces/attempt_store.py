"""
Login attempt store interface.
Holds per-account fail counters and lockout markers with TTLs.
"""

from abc import ABC, abstractmethod


class StoreUnavailable(Exception):
    """The backing store could not be reached. Callers decide whether to fail open."""


class AttemptStore(ABC):
    """
    Interface for the login guard's fast-expiry state.

    Implementations:
    - RedisAttemptStore: shared across processes, atomic INCR
    - MemoryAttemptStore: single process, injectable clock (tests, local dev)

    Keys are the account identifier exactly as the client supplied it.
    """

    @abstractmethod
    async def lockout_remaining(self, key: str) -> float:
        """
        Seconds left on an active lockout, 0 when there is none.
        """

    @abstractmethod
    async def record_failure(self, key: str, window_seconds: int) -> int:
        """
        Atomically increment the fail counter and restart its expiry window.

        Returns:
            The counter value after this failure
        """

    @abstractmethod
    async def lock(self, key: str, seconds: int) -> None:
        """Start a lockout that expires on its own after ``seconds``."""

    @abstractmethod
    async def clear(self, key: str) -> None:
        """Drop both the fail counter and any lockout."""
