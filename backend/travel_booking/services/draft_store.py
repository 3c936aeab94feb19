"""
Redis-backed booking draft store: one JSON document per draft with a TTL.
"""

from typing import Optional

import redis.asyncio as redis

from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import redis_connection_errors
from travel_booking.schemas.draft import BookingDraft
from travel_booking.services.interfaces.draft_store import DraftStore
from travel_booking.services.interfaces.attempt_store import StoreUnavailable

logger = get_logger(__name__)

DRAFT_KEY = "booking:draft:{}"


class RedisDraftStore(DraftStore):
    def __init__(self, client: redis.Redis):
        self.redis = client

    async def save(self, draft: BookingDraft, ttl_seconds: int) -> None:
        try:
            await self.redis.set(DRAFT_KEY.format(draft.id), draft.model_dump_json(), ex=ttl_seconds)
        except redis.RedisError as e:
            redis_connection_errors.labels(store="drafts").inc()
            logger.error("draft_store_error", operation="save", draft_id=draft.id, error=str(e))
            raise StoreUnavailable(str(e)) from e

    async def load(self, draft_id: str) -> Optional[BookingDraft]:
        try:
            payload = await self.redis.get(DRAFT_KEY.format(draft_id))
        except redis.RedisError as e:
            redis_connection_errors.labels(store="drafts").inc()
            logger.error("draft_store_error", operation="load", draft_id=draft_id, error=str(e))
            raise StoreUnavailable(str(e)) from e
        if payload is None:
            return None
        return BookingDraft.model_validate_json(payload)

    async def delete(self, draft_id: str) -> None:
        try:
            await self.redis.delete(DRAFT_KEY.format(draft_id))
        except redis.RedisError as e:
            redis_connection_errors.labels(store="drafts").inc()
            logger.error("draft_store_error", operation="delete", draft_id=draft_id, error=str(e))
            raise StoreUnavailable(str(e)) from e
