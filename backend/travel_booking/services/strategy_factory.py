"""
Store factories.
Pick the Redis or in-memory implementation of each ancillary store.

Used as FastAPI dependencies, so tests swap them through
``app.dependency_overrides`` instead of touching module state.
"""

from typing import Optional

from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger
from travel_booking.infrastructure.redis_client import get_redis
from travel_booking.services.attempt_store import RedisAttemptStore
from travel_booking.services.draft_store import RedisDraftStore
from travel_booking.services.interfaces import (
    AttemptStore, DraftStore, MemoryAttemptStore, MemoryDraftStore,
)

logger = get_logger(__name__)
settings = get_settings()

# Fallbacks used when Redis is configured but not reachable at startup
_memory_attempts: Optional[MemoryAttemptStore] = None
_memory_drafts: Optional[MemoryDraftStore] = None


def _fallback_attempts() -> MemoryAttemptStore:
    global _memory_attempts
    if _memory_attempts is None:
        _memory_attempts = MemoryAttemptStore()
    return _memory_attempts


def _fallback_drafts() -> MemoryDraftStore:
    global _memory_drafts
    if _memory_drafts is None:
        _memory_drafts = MemoryDraftStore()
    return _memory_drafts


async def get_attempt_store() -> AttemptStore:
    """
    Strategy selection via ATTEMPT_STORE:
    - redis: shared counters (production, several workers)
    - memory: single-process counters (local dev)
    """
    if settings.ATTEMPT_STORE == "redis":
        client = await get_redis()
        if client is not None:
            return RedisAttemptStore(client)
        logger.warning("attempt_store_fallback", store="memory")
    return _fallback_attempts()


async def get_draft_store() -> DraftStore:
    """Strategy selection via DRAFT_STORE, same rules as get_attempt_store."""
    if settings.DRAFT_STORE == "redis":
        client = await get_redis()
        if client is not None:
            return RedisDraftStore(client)
        logger.warning("draft_store_fallback", store="memory")
    return _fallback_drafts()
