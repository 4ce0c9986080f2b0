"""Tests for publishing drafts as threads."""

import asyncio
from unittest.mock import AsyncMock, patch

from conftest import FakePlatform
from core.errors import RATE_LIMIT_MESSAGE
from core.publisher import PublishStatus


class TestThreadPublisher:
    def test_three_chunk_thread_linkage(self, store, platform, make_publisher):
        draft_id, _ = store.create("one|two|three")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.status is PublishStatus.PUBLISHED
        assert result.success
        assert result.uris == [post["ref"].uri for post in platform.posts]
        assert [post["text"] for post in platform.posts] == ["one", "two", "three"]

        first, second, third = (post["ref"] for post in platform.posts)
        assert platform.posts[0]["reply"] is None
        assert platform.posts[1]["reply"].root == first
        assert platform.posts[1]["reply"].parent == first
        assert platform.posts[2]["reply"].root == first
        assert platform.posts[2]["reply"].parent == second
        assert result.root_uri == first.uri
        assert third.uri == result.uris[-1]

    def test_success_evicts_draft(self, store, platform, make_publisher):
        draft_id, _ = store.create("one|two")
        asyncio.run(make_publisher(platform).publish(draft_id))
        assert store.get(draft_id) is None

    def test_single_chunk_needs_no_lookup(self, store, platform, make_publisher):
        draft_id, _ = store.create("only")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.success
        assert platform.resolve_calls == []

    def test_partial_failure_keeps_draft(self, store, make_publisher):
        platform = FakePlatform(fail_on=2, error=RuntimeError("Upstream exploded"))
        draft_id, draft = store.create("one|two|three")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.status is PublishStatus.PARTIAL
        assert not result.success
        assert len(result.uris) == 1
        assert result.failed_index == 2
        assert result.total == 3
        assert result.error == "Upstream exploded"
        assert store.get(draft_id) is draft
        assert draft.chunks == ["one", "two", "three"]

    def test_failure_on_first_post(self, store, make_publisher):
        platform = FakePlatform(fail_on=1, error=RuntimeError("down"))
        draft_id, _ = store.create("one|two")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.uris == []
        assert result.failed_index == 1
        assert draft_id in store

    def test_rate_limit_error_is_rewritten(self, store, make_publisher):
        platform = FakePlatform(fail_on=3, error=RuntimeError("429 Too Many Requests"))
        draft_id, _ = store.create("one|two|three")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.error == RATE_LIMIT_MESSAGE
        assert len(result.uris) == 2

    def test_retry_restarts_from_first_chunk(self, store, make_publisher):
        platform = FakePlatform(fail_on=2)
        draft_id, _ = store.create("one|two")
        publisher = make_publisher(platform)

        asyncio.run(publisher.publish(draft_id))
        result = asyncio.run(publisher.publish(draft_id))

        assert result.success
        assert [post["text"] for post in platform.posts] == ["one", "one", "two"]

    def test_missing_draft(self, platform, make_publisher):
        result = asyncio.run(make_publisher(platform).publish("missing1"))

        assert result.status is PublishStatus.NOT_FOUND
        assert platform.posts == []

    def test_empty_draft(self, store, platform, make_publisher):
        draft_id, _ = store.create("|")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.status is PublishStatus.EMPTY
        assert platform.posts == []
        assert draft_id in store

    def test_cid_lookup_is_retried(self, store, make_publisher):
        platform = FakePlatform(unresolved=1)
        draft_id, _ = store.create("one|two")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.success
        assert len(platform.resolve_calls) == 3

    def test_unresolvable_parent_fails_that_chunk(self, store, make_publisher):
        platform = FakePlatform(unresolved=10)
        draft_id, _ = store.create("one|two")
        result = asyncio.run(make_publisher(platform, resolve_attempts=2).publish(draft_id))

        assert result.status is PublishStatus.PARTIAL
        assert result.failed_index == 2
        assert "Could not resolve CID" in result.error
        assert result.unresolved
        assert len(platform.resolve_calls) == 2
        assert draft_id in store

    def test_rejected_post_is_not_unresolved(self, store, make_publisher):
        platform = FakePlatform(fail_on=2, error=RuntimeError("Invalid record"))
        draft_id, _ = store.create("one|two")
        result = asyncio.run(make_publisher(platform).publish(draft_id))

        assert result.status is PublishStatus.PARTIAL
        assert not result.unresolved

    def test_pauses_after_each_post(self, store, platform, make_publisher):
        draft_id, _ = store.create("one|two|three")
        publisher = make_publisher(platform)
        publisher.post_delay = 0.5

        sleep = AsyncMock()
        with patch("core.publisher.asyncio.sleep", sleep):
            asyncio.run(publisher.publish(draft_id))

        assert sleep.await_count == 3
        sleep.assert_awaited_with(0.5)
