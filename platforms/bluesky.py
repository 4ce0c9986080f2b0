"""BlueSky platform module: typed wrapper around the atproto async client."""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from atproto import AsyncClient, client_utils, models

logger = logging.getLogger(__name__)

AT_URI_RE = re.compile(r"^at://([^/]+)/([^/]+)/([^/?#]+)$")
PROFILE_COLLECTION = "app.bsky.actor.profile"

URL_PATTERN = r"https?://[^\s]+"
TAG_PATTERN = r"(?<!\S)#[A-Za-z0-9_]+"
MENTION_PATTERN = r"(?<!\S)@[A-Za-z0-9_.-]+(?:\.[A-Za-z0-9_.-]+)*"
TOKEN_RE = re.compile(rf"({URL_PATTERN}|{TAG_PATTERN}|{MENTION_PATTERN})")

PostText = Union[str, client_utils.TextBuilder]


@dataclass(frozen=True)
class PostRef:
    """Strong reference to a post: its at:// URI and content CID."""

    uri: str
    cid: str


@dataclass(frozen=True)
class ReplyTarget:
    root: PostRef
    parent: PostRef


@dataclass
class RecordRef:
    uri: str
    cid: str
    value: dict = field(default_factory=dict)

    @property
    def reply_target(self) -> Optional[ReplyTarget]:
        """Reply linkage stored in a post record, if the post was a reply."""
        reply = self.value.get("reply")
        if not isinstance(reply, dict):
            return None
        try:
            return ReplyTarget(
                root=PostRef(reply["root"]["uri"], reply["root"]["cid"]),
                parent=PostRef(reply["parent"]["uri"], reply["parent"]["cid"]),
            )
        except (KeyError, TypeError):
            logger.warning("Malformed reply reference in record %s", self.uri)
            return None


def parse_at_uri(uri: str) -> tuple[str, str, str]:
    """Split at://<repo>/<collection>/<rkey> into its parts."""
    match = AT_URI_RE.match(uri.strip())
    if not match:
        raise ValueError(f"Invalid URI format: {uri}")
    return match.group(1), match.group(2), match.group(3)


def uri_to_web_url(uri: str) -> Optional[str]:
    """Convert at:// URI to public bsky.app URL when possible."""
    try:
        repo, _collection, rkey = parse_at_uri(uri)
    except ValueError:
        return None
    return f"https://bsky.app/profile/{repo}/post/{rkey}"


def _as_dict(model: Any) -> Any:
    """Dump an atproto response model to plain JSON-compatible data."""
    if hasattr(model, "model_dump"):
        return model.model_dump(mode="json", by_alias=True, exclude_none=True)
    return model


def _normalize_handle(value: str) -> str:
    value = value.strip().lstrip("@")
    if value and "." not in value and not value.startswith("did:"):
        value = f"{value}.bsky.social"
    return value


class BlueskyPlatform:
    """Post to BlueSky with thread, quote and rich-text support."""

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        service: Optional[str] = None,
    ):
        self.username = username or os.environ.get("BLUESKY_USERNAME")
        self.password = password or os.environ.get("BLUESKY_PASSWORD")

        if not self.username or not self.password:
            raise ValueError(
                "Bluesky credentials required. Set BLUESKY_USERNAME and "
                "BLUESKY_PASSWORD in .env"
            )

        base_url = None
        if service:
            base_url = service.rstrip("/")
            if not base_url.endswith("/xrpc"):
                base_url = f"{base_url}/xrpc"
        self.client = AsyncClient(base_url)
        self._logged_in = False

    async def login(self) -> None:
        if not self._logged_in:
            await self.client.login(self.username, self.password)
            self._logged_in = True
            logger.info("Logged in to Bluesky as %s", self.username)

    async def build_text(self, text: str) -> client_utils.TextBuilder:
        """Turn links, #hashtags and @mentions into rich-text facets.

        Mentions whose handle cannot be resolved stay plain text.
        """
        builder = client_utils.TextBuilder()
        last_end = 0

        for match in TOKEN_RE.finditer(text):
            if match.start() > last_end:
                builder.text(text[last_end:match.start()])

            token = match.group(1)
            if re.fullmatch(URL_PATTERN, token):
                builder.link(token, token)
            elif token.startswith("#"):
                builder.tag(token, token[1:])
            else:
                try:
                    response = await self.client.resolve_handle(_normalize_handle(token))
                    builder.mention(token, response.did)
                except Exception:
                    logger.debug("Could not resolve mention %s", token, exc_info=True)
                    builder.text(token)

            last_end = match.end()

        if last_end < len(text):
            builder.text(text[last_end:])

        return builder

    async def create_post(
        self,
        text: PostText,
        reply: Optional[ReplyTarget] = None,
        embed: Optional[Any] = None,
    ) -> PostRef:
        """Create a post, optionally as a reply. Returns its URI and CID."""
        await self.login()
        if isinstance(text, str):
            text = await self.build_text(text)

        reply_to = None
        if reply is not None:
            reply_to = models.AppBskyFeedPost.ReplyRef(
                parent=models.ComAtprotoRepoStrongRef.Main(
                    uri=reply.parent.uri, cid=reply.parent.cid
                ),
                root=models.ComAtprotoRepoStrongRef.Main(
                    uri=reply.root.uri, cid=reply.root.cid
                ),
            )

        response = await self.client.send_post(text=text, reply_to=reply_to, embed=embed)
        return PostRef(uri=response.uri, cid=response.cid)

    async def get_record(self, uri: str) -> RecordRef:
        await self.login()
        repo, collection, rkey = parse_at_uri(uri)
        response = await self.client.com.atproto.repo.get_record(
            {"repo": repo, "collection": collection, "rkey": rkey}
        )
        if not response.cid:
            raise RuntimeError(f"CID not found in record {uri}")
        value = _as_dict(response.value)
        return RecordRef(
            uri=response.uri or uri,
            cid=response.cid,
            value=value if isinstance(value, dict) else {},
        )

    async def resolve_cid(self, uri: str) -> str:
        return (await self.get_record(uri)).cid

    @staticmethod
    def quote_embed(uri: str, cid: str) -> models.AppBskyEmbedRecord.Main:
        return models.AppBskyEmbedRecord.Main(
            record=models.ComAtprotoRepoStrongRef.Main(uri=uri, cid=cid)
        )

    async def delete_post(self, uri: str) -> None:
        await self.login()
        await self.client.delete_post(uri)

    async def like(self, uri: str, cid: str) -> PostRef:
        await self.login()
        response = await self.client.like(uri, cid)
        return PostRef(uri=response.uri, cid=response.cid)

    async def repost(self, uri: str, cid: str) -> PostRef:
        await self.login()
        response = await self.client.repost(uri, cid)
        return PostRef(uri=response.uri, cid=response.cid)

    async def follow(self, subject_did: str) -> PostRef:
        await self.login()
        response = await self.client.follow(subject_did)
        return PostRef(uri=response.uri, cid=response.cid)

    async def unlike(self, like_uri: str) -> None:
        await self.login()
        await self.client.unlike(like_uri)

    async def unrepost(self, repost_uri: str) -> None:
        await self.login()
        await self.client.unrepost(repost_uri)

    async def unfollow(self, follow_uri: str) -> None:
        await self.login()
        await self.client.unfollow(follow_uri)

    async def update_profile(self, fields: dict) -> dict:
        """Write profile fields, keeping the ones already on the record."""
        await self.login()
        did = getattr(self.client.me, "did", None)
        if not did:
            raise RuntimeError("Not logged in or session missing DID")

        record = {}
        try:
            record = dict((await self.get_record(f"at://{did}/{PROFILE_COLLECTION}/self")).value)
        except Exception as e:
            # no profile record yet
            logger.warning("Could not retrieve existing profile: %s", e)

        record.update(fields)
        record["$type"] = PROFILE_COLLECTION
        response = await self.client.com.atproto.repo.put_record(
            {"repo": did, "collection": PROFILE_COLLECTION, "rkey": "self", "record": record}
        )
        logger.info("Updated profile fields %s", ", ".join(sorted(fields)))
        return _as_dict(response)

    async def get_followers(
        self,
        actor: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> dict:
        await self.login()
        return _as_dict(await self.client.get_followers(actor, cursor=cursor, limit=limit))

    async def get_follows(
        self,
        actor: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> dict:
        await self.login()
        return _as_dict(await self.client.get_follows(actor, cursor=cursor, limit=limit))

    async def get_likes(
        self,
        uri: str,
        cid: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> dict:
        await self.login()
        return _as_dict(await self.client.get_likes(uri, cid=cid, cursor=cursor, limit=limit))

    async def get_profile(self, actor: str) -> dict:
        await self.login()
        return _as_dict(await self.client.get_profile(actor))

    async def get_timeline(
        self,
        algorithm: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> dict:
        await self.login()
        response = await self.client.get_timeline(algorithm=algorithm, cursor=cursor, limit=limit)
        return _as_dict(response)

    async def get_post_thread(
        self,
        uri: str,
        depth: Optional[int] = None,
        parent_height: Optional[int] = None,
    ) -> dict:
        await self.login()
        response = await self.client.get_post_thread(uri, depth=depth, parent_height=parent_height)
        return _as_dict(response)

    async def search_posts(
        self,
        query: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> dict:
        await self.login()
        params = {"q": query}
        if limit is not None:
            params["limit"] = limit
        if cursor:
            params["cursor"] = cursor
        return _as_dict(await self.client.app.bsky.feed.search_posts(params))
