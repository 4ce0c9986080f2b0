"""Publish a stored draft as a BlueSky reply chain."""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from core.drafts import DraftStore
from core.errors import UnresolvedPostError, describe_error
from platforms.bluesky import PostRef, ReplyTarget

logger = logging.getLogger(__name__)


class PublishStatus(enum.Enum):
    PUBLISHED = "published"
    PARTIAL = "partial"
    NOT_FOUND = "not_found"
    EMPTY = "empty"


@dataclass
class PublishResult:
    draft_id: str
    status: PublishStatus
    total: int = 0
    uris: list[str] = field(default_factory=list)
    failed_index: Optional[int] = None
    error: Optional[str] = None
    # set when a CID lookup ran out of attempts rather than the post being rejected
    unresolved: bool = False

    @property
    def success(self) -> bool:
        return self.status is PublishStatus.PUBLISHED

    @property
    def root_uri(self) -> Optional[str]:
        return self.uris[0] if self.uris else None


class ThreadPublisher:
    """Posts draft chunks in order, each replying to the one before.

    The first post is the thread root. A failure stops the run without
    deleting anything already posted, and the draft stays in the store.
    """

    def __init__(
        self,
        platform,
        store: DraftStore,
        post_delay: float = 0.5,
        resolve_attempts: int = 3,
    ):
        self.platform = platform
        self.store = store
        self.post_delay = post_delay
        self.resolve_attempts = max(1, resolve_attempts)

    async def publish(self, draft_id: str) -> PublishResult:
        if draft_id not in self.store:
            return PublishResult(draft_id, PublishStatus.NOT_FOUND)

        async with self.store.lock(draft_id):
            draft = self.store.get(draft_id)
            if draft is None:
                return PublishResult(draft_id, PublishStatus.NOT_FOUND)
            if not draft.chunks:
                return PublishResult(draft_id, PublishStatus.EMPTY)

            result = PublishResult(draft_id, PublishStatus.PARTIAL, total=len(draft.chunks))
            root_uri = None
            parent_uri = None

            for index, chunk in enumerate(draft.chunks, 1):
                try:
                    if root_uri is None:
                        post = await self.platform.create_post(chunk)
                        root_uri = post.uri
                    else:
                        parent_cid = await self._resolve_cid(parent_uri)
                        root_cid = await self._resolve_cid(root_uri)
                        post = await self.platform.create_post(
                            chunk,
                            reply=ReplyTarget(
                                root=PostRef(root_uri, root_cid),
                                parent=PostRef(parent_uri, parent_cid),
                            ),
                        )
                except Exception as e:
                    logger.warning(
                        "Publishing draft %s failed at post %d/%d: %s",
                        draft_id, index, result.total, e,
                    )
                    result.failed_index = index
                    result.error = describe_error(e)
                    result.unresolved = isinstance(e, UnresolvedPostError)
                    return result

                parent_uri = post.uri
                result.uris.append(post.uri)
                logger.debug("Draft %s post %d/%d: %s", draft_id, index, result.total, post.uri)

                await asyncio.sleep(self.post_delay)

            self.store.delete(draft_id)
            result.status = PublishStatus.PUBLISHED
            logger.info("Published draft %s as %d posts, root %s", draft_id, result.total, root_uri)
            return result

    async def _resolve_cid(self, uri: str) -> str:
        """Fetch a post's CID, polling while the new record is not yet readable."""
        last_error = None
        for attempt in range(1, self.resolve_attempts + 1):
            try:
                return await self.platform.resolve_cid(uri)
            except Exception as e:
                last_error = e
                logger.debug("CID lookup for %s failed (attempt %d): %s", uri, attempt, e)
                if attempt < self.resolve_attempts:
                    await asyncio.sleep(self.post_delay)
        raise UnresolvedPostError(uri, self.resolve_attempts) from last_error
