"""
Booking draft store interface.
Keeps in-progress booking flows between requests, keyed by draft id.
"""

from abc import ABC, abstractmethod
from typing import Optional

from travel_booking.schemas.draft import BookingDraft


class DraftStore(ABC):
    """
    Implementations:
    - RedisDraftStore: JSON documents with a TTL, survives restarts
    - MemoryDraftStore: single process (tests, local dev)

    An expired draft is an abandoned booking; nothing else needs cleaning up.
    """

    @abstractmethod
    async def save(self, draft: BookingDraft, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    async def load(self, draft_id: str) -> Optional[BookingDraft]:
        pass

    @abstractmethod
    async def delete(self, draft_id: str) -> None:
        pass
