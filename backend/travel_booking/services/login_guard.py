"""
Login throttling guard.

LOCKOUT POLICY
==============

Per account identifier (the email exactly as typed):

  Clear    -> no counter, no lockout
  Warning  -> 1..2 failures inside the sliding window; tell the user how
              many attempts are left
  ShortLock-> 3rd failure: every attempt rejected for 30 seconds
  LongLock -> any failure after that (counter >= 4): rejected for 5 minutes

The fail counter lives for 10 minutes after the most recent failure. A
lockout is checked before the password is even looked at, and expires on its
own; the next failure after it expires re-evaluates the counter. A correct
password clears everything.

The guard is advisory. If its store is unreachable it lets the attempt
through (the password check still runs) and logs the outage.
"""

import math
from dataclasses import dataclass
from typing import Optional

from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import login_lockouts
from travel_booking.services.interfaces.attempt_store import AttemptStore, StoreUnavailable

logger = get_logger(__name__)
settings = get_settings()


def format_wait(seconds: float) -> str:
    """Remaining lockout as whole minutes when at least a minute is left, else seconds."""
    seconds = max(math.ceil(seconds), 1)
    if seconds >= 60:
        minutes = math.ceil(seconds / 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


@dataclass(frozen=True)
class LockoutPolicy:
    max_attempts: int = 3
    short_lockout_seconds: int = 30
    long_lockout_seconds: int = 300
    window_seconds: int = 600

    @classmethod
    def from_settings(cls) -> "LockoutPolicy":
        return cls(
            max_attempts=settings.LOGIN_MAX_ATTEMPTS,
            short_lockout_seconds=settings.LOGIN_SHORT_LOCKOUT_SECONDS,
            long_lockout_seconds=settings.LOGIN_LONG_LOCKOUT_SECONDS,
            window_seconds=settings.LOGIN_ATTEMPT_WINDOW_SECONDS,
        )


@dataclass(frozen=True)
class FailureVerdict:
    attempts: int
    remaining_attempts: int
    lockout_seconds: int = 0

    @property
    def locked(self) -> bool:
        return self.lockout_seconds > 0


class LoginGuard:
    def __init__(self, store: AttemptStore, policy: Optional[LockoutPolicy] = None):
        self.store = store
        self.policy = policy or LockoutPolicy.from_settings()

    async def lockout_remaining(self, email: str) -> float:
        try:
            return await self.store.lockout_remaining(email)
        except StoreUnavailable:
            logger.warning("login_guard_fail_open", email=email, operation="check")
            return 0.0

    async def register_failure(self, email: str) -> Optional[FailureVerdict]:
        """
        Count a wrong password. Returns None when the store is unavailable.
        """
        try:
            attempts = await self.store.record_failure(email, self.policy.window_seconds)
        except StoreUnavailable:
            logger.warning("login_guard_fail_open", email=email, operation="record")
            return None

        if attempts < self.policy.max_attempts:
            return FailureVerdict(attempts, self.policy.max_attempts - attempts)

        if attempts == self.policy.max_attempts:
            seconds, kind = self.policy.short_lockout_seconds, "short"
        else:
            seconds, kind = self.policy.long_lockout_seconds, "long"

        try:
            await self.store.lock(email, seconds)
        except StoreUnavailable:
            logger.warning("login_guard_fail_open", email=email, operation="lock")
            return FailureVerdict(attempts, 0)

        login_lockouts.labels(kind=kind).inc()
        logger.warning("login_locked", email=email, attempts=attempts, seconds=seconds)
        return FailureVerdict(attempts, 0, lockout_seconds=seconds)

    async def register_success(self, email: str) -> None:
        try:
            await self.store.clear(email)
        except StoreUnavailable:
            logger.warning("login_guard_fail_open", email=email, operation="clear")
