"""
In-process draft store. Abandoned drafts are swept on every save.
"""

import time
from typing import Callable, Optional

from travel_booking.schemas.draft import BookingDraft
from travel_booking.services.interfaces.draft_store import DraftStore


class MemoryDraftStore(DraftStore):
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._drafts: dict[str, tuple[str, float]] = {}

    def _prune(self, now: float) -> None:
        for draft_id in [d for d, (_, expires_at) in self._drafts.items() if expires_at <= now]:
            del self._drafts[draft_id]

    def size(self) -> int:
        """Drafts currently held, expired or not."""
        return len(self._drafts)

    async def save(self, draft: BookingDraft, ttl_seconds: int) -> None:
        now = self._clock()
        self._prune(now)
        # Stored as JSON so callers never share a mutable draft object
        self._drafts[draft.id] = (draft.model_dump_json(), now + ttl_seconds)

    async def load(self, draft_id: str) -> Optional[BookingDraft]:
        entry = self._drafts.get(draft_id)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at <= self._clock():
            del self._drafts[draft_id]
            return None
        return BookingDraft.model_validate_json(payload)

    async def delete(self, draft_id: str) -> None:
        self._drafts.pop(draft_id, None)
