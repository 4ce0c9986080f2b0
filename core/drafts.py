"""In-memory draft storage for long posts.

Drafts live for the lifetime of the process and are gone after a restart.
"""

import asyncio
import logging
import random
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from core.splitter import split_content_into_chunks

logger = logging.getLogger(__name__)

DRAFT_ID_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
DRAFT_ID_LENGTH = 8


def generate_draft_id() -> str:
    return "".join(random.choice(DRAFT_ID_ALPHABET) for _ in range(DRAFT_ID_LENGTH))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Draft:
    content: str
    chunks: list[str]
    title: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    @property
    def display_title(self) -> str:
        return self.title or "Untitled"


class DraftStore:
    """Keyed registry of drafts, iterated in insertion order."""

    def __init__(
        self,
        id_factory: Callable[[], str] = generate_draft_id,
        splitter: Callable[[str], list[str]] = split_content_into_chunks,
    ):
        self._id_factory = id_factory
        self._splitter = splitter
        self._drafts: dict[str, Draft] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._drafts)

    def __contains__(self, draft_id: str) -> bool:
        return draft_id in self._drafts

    def _new_id(self) -> str:
        draft_id = self._id_factory()
        while draft_id in self._drafts:
            logger.debug("Draft id %s already taken, regenerating", draft_id)
            draft_id = self._id_factory()
        return draft_id

    def create(self, content: str, title: Optional[str] = None) -> tuple[str, Draft]:
        """Split content and store it as a new draft."""
        draft_id = self._new_id()
        draft = Draft(content=content, chunks=self._splitter(content), title=title)
        self._drafts[draft_id] = draft
        logger.info("Created draft %s with %d chunks", draft_id, len(draft.chunks))
        return draft_id, draft

    def get(self, draft_id: str) -> Optional[Draft]:
        return self._drafts.get(draft_id)

    def list(self, limit: int = 10) -> list[tuple[str, Draft]]:
        """Return up to limit drafts, oldest first."""
        return list(self._drafts.items())[:max(0, limit)]

    def delete(self, draft_id: str) -> bool:
        self._locks.pop(draft_id, None)
        if self._drafts.pop(draft_id, None) is None:
            return False
        logger.info("Deleted draft %s", draft_id)
        return True

    def lock(self, draft_id: str) -> asyncio.Lock:
        """Lock serialising publish and delete for one draft."""
        return self._locks.setdefault(draft_id, asyncio.Lock())
