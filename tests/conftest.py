"""Shared fixtures: an in-memory stand-in for the BlueSky platform."""

import pytest

from core.drafts import DraftStore
from core.publisher import ThreadPublisher
from mcp_server.tools import ToolContext
from platforms.bluesky import PostRef


class FakePlatform:
    """Records posts instead of sending them.

    fail_on: 1-based post attempt that raises.
    unresolved: number of resolve_cid calls that fail before lookups succeed.
    """

    def __init__(self, fail_on=None, error=None, unresolved=0):
        self.fail_on = fail_on
        self.error = error or RuntimeError("Network unreachable")
        self.unresolved = unresolved
        self.posts = []
        self.attempts = 0
        self.resolve_calls = []

    async def create_post(self, text, reply=None, embed=None):
        self.attempts += 1
        if self.attempts == self.fail_on:
            raise self.error
        number = len(self.posts) + 1
        ref = PostRef(f"at://did:plc:tester/app.bsky.feed.post/p{number}", f"cid{number}")
        self.posts.append({"text": text, "reply": reply, "embed": embed, "ref": ref})
        return ref

    async def resolve_cid(self, uri):
        self.resolve_calls.append(uri)
        if self.unresolved > 0:
            self.unresolved -= 1
            raise RuntimeError("Could not locate record")
        return "cid" + uri.rsplit("/p", 1)[1]


@pytest.fixture
def store():
    return DraftStore(splitter=lambda content: [part for part in content.split("|") if part])


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def make_publisher(store):
    def _make(platform, resolve_attempts=3):
        return ThreadPublisher(platform, store, post_delay=0, resolve_attempts=resolve_attempts)
    return _make


@pytest.fixture
def context(store, platform, make_publisher):
    return ToolContext(platform=platform, store=store, publisher=make_publisher(platform))
