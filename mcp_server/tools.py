"""MCP tool definitions and handlers.

Each tool validates its arguments with a pydantic model before touching the
store or the network, and always answers with a single text block.
"""

import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import mcp.types as types
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.drafts import DraftStore
from core.errors import describe_error
from core.graphemes import grapheme_length, truncate_graphemes
from core.publisher import PublishStatus, ThreadPublisher
from core.splitter import MAX_POST_LENGTH, format_chunk_preview
from platforms.bluesky import BlueskyPlatform, PostRef, ReplyTarget, uri_to_web_url

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50
DATE_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


@dataclass
class ToolContext:
    platform: BlueskyPlatform
    store: DraftStore
    publisher: ThreadPublisher


@dataclass
class ToolSpec:
    name: str
    description: str
    arguments: type[BaseModel]
    handler: Callable[[ToolContext, BaseModel], Awaitable[str]]

    def definition(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.arguments.model_json_schema(by_alias=True),
        )


TOOLS: dict[str, ToolSpec] = {}


def tool(name: str, description: str, arguments: type[BaseModel]):
    def register(handler):
        TOOLS[name] = ToolSpec(name, description, arguments, handler)
        return handler
    return register


class Arguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def text_result(text: str) -> list[types.TextContent]:
    return [types.TextContent(type="text", text=text)]


def format_validation_error(error: ValidationError) -> str:
    problems = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "arguments"
        problems.append(f"{location}: {err['msg']}")
    return f"Validation error: {', '.join(problems)}"


def too_long_message(kind: str, length: int) -> str:
    overage = length - MAX_POST_LENGTH
    plural = "" if overage == 1 else "s"
    return (
        f"{kind} is too long. Please remove approximately {overage} character{plural}.\n"
        f"Current length: {length} (maximum: {MAX_POST_LENGTH})"
    )


def _format_date(value) -> str:
    return value.strftime(DATE_FORMAT)


async def call_tool(context: ToolContext, name: str, arguments: Optional[dict]) -> list[types.TextContent]:
    """Validate arguments, run the named tool and wrap its reply."""
    spec = TOOLS.get(name)
    if spec is None:
        raise ValueError(f"Unknown tool: {name}")

    try:
        args = spec.arguments.model_validate(arguments or {})
    except ValidationError as e:
        return text_result(format_validation_error(e))

    try:
        text = await spec.handler(context, args)
    except Exception as e:
        logger.exception("Tool %s failed", name)
        text = f"Error: {describe_error(e)}"
    return text_result(text)


# Drafts

class CreateDraftArguments(Arguments):
    content: str = Field(
        min_length=1,
        description=(
            "The content of your draft post, can be of ANY LENGTH (unlimited) and will be "
            "automatically split into multiple posts with smart sentence/paragraph boundaries"
        ),
    )
    title: Optional[str] = Field(
        None,
        description="Optional title for the draft (for your reference only, won't be published)",
    )


class ListDraftsArguments(Arguments):
    limit: int = Field(
        10, ge=1, le=50,
        description="Maximum number of drafts to return (default: 10, max: 50)",
    )


class DraftIdArguments(Arguments):
    draft_id: str = Field(alias="draftId", min_length=1, description="The ID of the draft")


@tool(
    "bluesky_create_draft",
    "CREATE LONG POSTS (>300 CHARACTERS): Create a draft post of any length that will be "
    "intelligently split into a thread when published. Use this for posting content longer "
    "than 300 characters.",
    CreateDraftArguments,
)
async def create_draft(context: ToolContext, args: CreateDraftArguments) -> str:
    draft_id, draft = context.store.create(args.content, args.title)
    return (
        f"Draft created with ID: {draft_id}\n\n"
        f"Preview of thread ({len(draft.chunks)} posts):\n\n"
        f"{format_chunk_preview(draft.chunks)}"
    )


@tool("bluesky_list_drafts", "List all available draft posts", ListDraftsArguments)
async def list_drafts(context: ToolContext, args: ListDraftsArguments) -> str:
    total = len(context.store)
    if total == 0:
        return "No drafts available. Create a draft first with bluesky_create_draft."

    entries = []
    for draft_id, draft in context.store.list(args.limit):
        entries.append(
            f"ID: {draft_id}\n"
            f"Title: {draft.display_title}\n"
            f"Created: {_format_date(draft.created_at)}\n"
            f"Posts: {len(draft.chunks)}\n"
            f"Preview: {truncate_graphemes(draft.content, PREVIEW_LENGTH)}"
        )
    return f"Available drafts ({len(entries)} of {total}):\n\n" + "\n\n".join(entries)


@tool("bluesky_get_draft", "Get a specific draft post by ID", DraftIdArguments)
async def get_draft(context: ToolContext, args: DraftIdArguments) -> str:
    draft = context.store.get(args.draft_id)
    if draft is None:
        return f"Draft with ID {args.draft_id} not found."

    return (
        f"Draft ID: {args.draft_id}\n"
        f"Title: {draft.display_title}\n"
        f"Created: {_format_date(draft.created_at)}\n"
        f"Updated: {_format_date(draft.updated_at)}\n"
        f"Posts: {len(draft.chunks)}\n\n"
        f"Content:\n\n{format_chunk_preview(draft.chunks)}"
    )


@tool(
    "bluesky_publish_draft",
    "Publish a long draft post as a thread (automatically splits content longer than "
    "300 characters into multiple posts)",
    DraftIdArguments,
)
async def publish_draft(context: ToolContext, args: DraftIdArguments) -> str:
    result = await context.publisher.publish(args.draft_id)

    if result.status is PublishStatus.NOT_FOUND:
        return f"Draft with ID {args.draft_id} not found."
    if result.status is PublishStatus.EMPTY:
        return "Draft has no content to publish."
    if result.status is PublishStatus.PUBLISHED:
        return (
            f"Successfully published thread with {len(result.uris)} posts.\n"
            f"Root post: {result.root_uri}"
        )

    text = (
        f"Error publishing post {result.failed_index}/{result.total}: {result.error}\n\n"
        f"Already published {len(result.uris)} posts."
    )
    for uri in result.uris:
        web_url = uri_to_web_url(uri)
        text += f"\n{uri} ({web_url})" if web_url else f"\n{uri}"
    if result.unresolved:
        text += (
            "\n\nThe earlier posts were created, but one could not be read back in time "
            f"to link post {result.failed_index} as a reply."
        )
    return text + f"\n\nDraft {args.draft_id} was kept. Publishing it again starts from post 1."


@tool("bluesky_delete_draft", "Delete a draft post", DraftIdArguments)
async def delete_draft(context: ToolContext, args: DraftIdArguments) -> str:
    if args.draft_id not in context.store:
        return f"Draft with ID {args.draft_id} not found."
    async with context.store.lock(args.draft_id):
        if not context.store.delete(args.draft_id):
            return f"Draft with ID {args.draft_id} not found."
    return f"Draft {args.draft_id} deleted."


# Posting

class PostArguments(Arguments):
    text: str = Field(
        min_length=1,
        description=(
            "The text of the message. Can include @mentions, URLs, and #hashtags which "
            "will be properly formatted as rich text."
        ),
    )
    reply_to: Optional[str] = Field(
        None, alias="replyTo",
        description="The AT URI of the post you're replying to",
    )
    root_post_id: Optional[str] = Field(
        None, alias="rootPostId",
        description=(
            "The AT URI of the root post in a thread. If replying to a top-level post, "
            "this should match replyTo"
        ),
    )


class QuotePostArguments(Arguments):
    text: str = Field(min_length=1, description="Your commentary on the post you're quoting")
    uri: str = Field(min_length=1, description="The URI of the post to quote")
    cid: str = Field(min_length=1, description="The CID of the post to quote")


@tool("bluesky_post", "Post a message or reply to another post", PostArguments)
async def post(context: ToolContext, args: PostArguments) -> str:
    if args.reply_to and not args.root_post_id:
        return "When replying, both replyTo and rootPostId must be provided"

    rich_text = await context.platform.build_text(args.text)
    length = grapheme_length(rich_text.build_text())
    if length > MAX_POST_LENGTH:
        return too_long_message("Post", length)

    reply = None
    if args.reply_to:
        parent_cid = await context.platform.resolve_cid(args.reply_to)
        root_cid = await context.platform.resolve_cid(args.root_post_id)
        reply = ReplyTarget(
            root=PostRef(args.root_post_id, root_cid),
            parent=PostRef(args.reply_to, parent_cid),
        )

    created = await context.platform.create_post(rich_text, reply=reply)
    return json.dumps({"uri": created.uri, "cid": created.cid})


@tool("bluesky_quote_post", "Quote another post with your own commentary", QuotePostArguments)
async def quote_post(context: ToolContext, args: QuotePostArguments) -> str:
    rich_text = await context.platform.build_text(args.text.replace("\r\n", "\n"))
    length = grapheme_length(rich_text.build_text())
    if length > MAX_POST_LENGTH:
        return too_long_message("Quote post", length)

    embed = context.platform.quote_embed(args.uri, args.cid)
    try:
        created = await context.platform.create_post(rich_text, embed=embed)
    except Exception as e:
        message = str(e).lower()
        if "not found" in message or "invalid uri" in message or "invalid cid" in message:
            return (
                "Could not quote the post. The URI or CID might be invalid or the post "
                "might no longer exist."
            )
        raise

    return (
        f"Quote post successful! Reference: {created.uri}\n"
        f"Character count: {length}/{MAX_POST_LENGTH} "
        f"({MAX_POST_LENGTH - length} characters remaining)"
    )


class EditPostArguments(Arguments):
    uri: str = Field(min_length=1, description="The URI of the post to edit")
    text: str = Field(min_length=1, description="The new text for the post (max 300 characters)")
    mark_as_edit: bool = Field(
        True, alias="markAsEdit",
        description="Whether to mark this as an edit (adds '(edited)' marker, default: true)",
    )


@tool(
    "bluesky_edit_post",
    "Edit a post (creates a new post that replaces the original)",
    EditPostArguments,
)
async def edit_post(context: ToolContext, args: EditPostArguments) -> str:
    try:
        original = await context.platform.get_record(args.uri)
    except Exception as e:
        logger.warning("Could not load post %s for editing: %s", args.uri, e)
        return "Could not find the original post. It may have been deleted or is inaccessible."

    display_text = f"{args.text} (edited)" if args.mark_as_edit else args.text
    rich_text = await context.platform.build_text(display_text)
    length = grapheme_length(rich_text.build_text())
    if length > MAX_POST_LENGTH:
        return too_long_message("Edited post", length)

    embed = context.platform.quote_embed(args.uri, original.cid) if args.mark_as_edit else None
    try:
        created = await context.platform.create_post(
            rich_text, reply=original.reply_target, embed=embed,
        )
    except Exception as e:
        return f"Failed to edit post: {describe_error(e)}"

    try:
        await context.platform.delete_post(args.uri)
    except Exception as e:
        logger.warning("Edited post %s created but %s was not deleted: %s", created.uri, args.uri, e)
        return (
            f"Created edited post ({created.uri}) but could not delete the original post. "
            "You may want to delete it manually."
        )
    return f"Successfully edited post. Original post deleted and replaced with: {created.uri}"


class DeletePostArguments(Arguments):
    post_uri: str = Field(alias="postUri", min_length=1, description="The URI of the post to delete")


class PostRefArguments(Arguments):
    uri: str = Field(min_length=1, description="The URI of the post")
    cid: str = Field(min_length=1, description="The CID of the post")


class FollowArguments(Arguments):
    subject_did: str = Field(alias="subjectDid", min_length=1, description="The DID of the user to follow")


@tool("bluesky_delete_post", "Delete a post", DeletePostArguments)
async def delete_post(context: ToolContext, args: DeletePostArguments) -> str:
    await context.platform.delete_post(args.post_uri)
    return "Successfully deleted the post"


@tool("bluesky_like", "Like a post", PostRefArguments)
async def like(context: ToolContext, args: PostRefArguments) -> str:
    created = await context.platform.like(args.uri, args.cid)
    return json.dumps({"uri": created.uri, "cid": created.cid})


@tool("bluesky_repost", "Repost a post", PostRefArguments)
async def repost(context: ToolContext, args: PostRefArguments) -> str:
    created = await context.platform.repost(args.uri, args.cid)
    return json.dumps({"uri": created.uri, "cid": created.cid})


@tool("bluesky_follow", "Follow a user", FollowArguments)
async def follow(context: ToolContext, args: FollowArguments) -> str:
    created = await context.platform.follow(args.subject_did)
    return json.dumps({"uri": created.uri, "cid": created.cid})


class DeleteLikeArguments(Arguments):
    like_uri: str = Field(alias="likeUri", min_length=1, description="The URI of the like to delete")


class DeleteRepostArguments(Arguments):
    repost_uri: str = Field(alias="repostUri", min_length=1, description="The URI of the repost to delete")


class DeleteFollowArguments(Arguments):
    follow_uri: str = Field(
        alias="followUri", min_length=1, description="The URI of the follow record to delete",
    )


@tool("bluesky_delete_like", "Delete a like", DeleteLikeArguments)
async def delete_like(context: ToolContext, args: DeleteLikeArguments) -> str:
    await context.platform.unlike(args.like_uri)
    return "Successfully deleted the like"


@tool("bluesky_delete_repost", "Delete a repost", DeleteRepostArguments)
async def delete_repost(context: ToolContext, args: DeleteRepostArguments) -> str:
    await context.platform.unrepost(args.repost_uri)
    return "Successfully deleted the repost"


@tool("bluesky_delete_follow", "Unfollow a user", DeleteFollowArguments)
async def delete_follow(context: ToolContext, args: DeleteFollowArguments) -> str:
    await context.platform.unfollow(args.follow_uri)
    return "Successfully deleted the follow"


# Profile

URL_PATTERN = r"^[A-Za-z][A-Za-z0-9+.-]*://\S+$"


class UpdateBioArguments(Arguments):
    bio: str = Field(max_length=256, description="The bio/description to set (max 256 characters)")


class UpdateDisplayNameArguments(Arguments):
    display_name: str = Field(
        alias="displayName", max_length=64,
        description="The display name to set (max 64 characters)",
    )


class UpdateExternalUrlArguments(Arguments):
    url: str = Field(
        max_length=256, pattern=URL_PATTERN,
        description="The external URL to set (max 256 characters, must be a valid URL)",
    )


class UpdateProfileArguments(Arguments):
    display_name: Optional[str] = Field(
        None, alias="displayName", max_length=64,
        description="The display name to set (max 64 characters)",
    )
    description: Optional[str] = Field(
        None, max_length=256, description="The bio/description to set (max 256 characters)",
    )
    external_url: Optional[str] = Field(
        None, alias="externalUrl", max_length=256, pattern=URL_PATTERN,
        description="The external URL/website to set (must be a valid URL)",
    )

    def profile_fields(self) -> dict:
        fields = {
            "displayName": self.display_name,
            "description": self.description,
            "externalUrl": self.external_url,
        }
        return {key: value for key, value in fields.items() if value is not None}


@tool(
    "bluesky_update_bio",
    "Update your profile bio/description while preserving other profile fields",
    UpdateBioArguments,
)
async def update_bio(context: ToolContext, args: UpdateBioArguments) -> str:
    return json.dumps(await context.platform.update_profile({"description": args.bio}))


@tool(
    "bluesky_update_display_name",
    "Update your display name while preserving other profile fields",
    UpdateDisplayNameArguments,
)
async def update_display_name(context: ToolContext, args: UpdateDisplayNameArguments) -> str:
    return json.dumps(await context.platform.update_profile({"displayName": args.display_name}))


@tool(
    "bluesky_update_external_url",
    "Update your profile's external URL while preserving other profile fields",
    UpdateExternalUrlArguments,
)
async def update_external_url(context: ToolContext, args: UpdateExternalUrlArguments) -> str:
    return json.dumps(await context.platform.update_profile({"externalUrl": args.url}))


@tool("bluesky_update_profile", "Update your profile information", UpdateProfileArguments)
async def update_profile(context: ToolContext, args: UpdateProfileArguments) -> str:
    fields = args.profile_fields()
    if not fields:
        return "At least one field (displayName, description, or externalUrl) must be provided"
    return json.dumps(await context.platform.update_profile(fields))


# Reading

class ProfileArguments(Arguments):
    actor: str = Field(
        min_length=1,
        description="The DID (or handle) of the user whose profile you'd like to fetch",
    )


class TimelineArguments(Arguments):
    algorithm: Optional[str] = Field(None, description="The algorithm to use for timeline generation")
    limit: Optional[int] = Field(None, ge=1, le=100, description="The maximum number of posts to fetch")
    cursor: Optional[str] = Field(None, description="The cursor to use for pagination")


class PostThreadArguments(Arguments):
    uri: str = Field(min_length=1, description="The URI of the post to get the thread for")
    depth: Optional[int] = Field(None, ge=0, description="The levels of reply depth to fetch")
    parent_height: Optional[int] = Field(
        None, ge=0, alias="parentHeight", description="The number of parent posts to include",
    )


class SearchPostsArguments(Arguments):
    q: str = Field(min_length=1, description="Search query")
    limit: Optional[int] = Field(None, ge=1, le=100, description="Maximum number of results")
    cursor: Optional[str] = Field(None, description="Pagination cursor")
    since: Optional[str] = Field(None, description="Filter posts since this date (ISO format)")
    until: Optional[str] = Field(None, description="Filter posts until this date (ISO format)")
    author: Optional[str] = Field(None, description="Filter by specific author (handle or DID)")
    hashtag: Optional[str] = Field(None, description="Filter by hashtag (without the # symbol)")
    include_replies: Optional[bool] = Field(
        None, alias="includeReplies", description="Include replies in search results (default: true)",
    )
    include_quotes: Optional[bool] = Field(
        None, alias="includeQuotes", description="Include quote posts in search results (default: true)",
    )

    def search_query(self) -> str:
        query = self.q
        if self.since:
            query += f" since:{self.since}"
        if self.until:
            query += f" until:{self.until}"
        if self.author:
            query += f" from:{self.author}"
        if self.hashtag:
            query += f" #{self.hashtag.lstrip('#')}"
        if self.include_replies is False:
            query += " -is:reply"
        if self.include_quotes is False:
            query += " -is:quote"
        return query


@tool("bluesky_get_profile", "Get a user's profile information", ProfileArguments)
async def get_profile(context: ToolContext, args: ProfileArguments) -> str:
    return json.dumps(await context.platform.get_profile(args.actor))


class ActorListArguments(Arguments):
    actor: str = Field(min_length=1, description="The DID (or handle) of the user")
    limit: Optional[int] = Field(None, ge=1, le=100, description="The maximum number of entries to fetch")
    cursor: Optional[str] = Field(None, description="The cursor to use for pagination")


class LikesArguments(Arguments):
    uri: str = Field(min_length=1, description="The URI of the post to get likes for")
    cid: Optional[str] = Field(None, description="The CID of the post to get likes for")
    limit: Optional[int] = Field(None, ge=1, le=100, description="The maximum number of likes to fetch")
    cursor: Optional[str] = Field(None, description="The cursor to use for pagination")


@tool("bluesky_get_followers", "Get user's followers", ActorListArguments)
async def get_followers(context: ToolContext, args: ActorListArguments) -> str:
    return json.dumps(await context.platform.get_followers(args.actor, args.limit, args.cursor))


@tool("bluesky_get_follows", "Get user's follows", ActorListArguments)
async def get_follows(context: ToolContext, args: ActorListArguments) -> str:
    return json.dumps(await context.platform.get_follows(args.actor, args.limit, args.cursor))


@tool("bluesky_get_likes", "Get likes for a post", LikesArguments)
async def get_likes(context: ToolContext, args: LikesArguments) -> str:
    likes = await context.platform.get_likes(args.uri, args.cid, args.limit, args.cursor)
    return json.dumps(likes)


@tool("bluesky_get_timeline", "Get user's timeline", TimelineArguments)
async def get_timeline(context: ToolContext, args: TimelineArguments) -> str:
    timeline = await context.platform.get_timeline(args.algorithm, args.limit, args.cursor)
    return json.dumps(timeline)


@tool("bluesky_get_post_thread", "Get a post thread", PostThreadArguments)
async def get_post_thread(context: ToolContext, args: PostThreadArguments) -> str:
    thread = await context.platform.get_post_thread(args.uri, args.depth, args.parent_height)
    return json.dumps(thread)


def format_search_results(response: dict) -> str:
    posts = response.get("posts") or []
    if not posts:
        return "No posts found matching your search criteria."

    hits = response.get("hitsTotal")
    lines = [f"Found {len(posts)} posts ({hits if hits is not None else 'unknown'} total matches):", ""]
    for index, found in enumerate(posts, 1):
        author = found.get("author") or {}
        name = author.get("displayName") or author.get("handle") or "Unknown"
        record = found.get("record") or {}
        text = record.get("text", "No content") if isinstance(record, dict) else "No content"

        stats = f"   [Posted: {found.get('indexedAt') or 'Unknown time'}"
        if found.get("likeCount"):
            stats += f", Likes: {found['likeCount']}"
        if found.get("repostCount"):
            stats += f", Reposts: {found['repostCount']}"
        stats += "]"

        lines.extend([f"{index}. @{name}: {text}", stats, f"   URI: {found.get('uri')}", ""])

    if response.get("cursor"):
        lines.append(f"For more results, use cursor: {response['cursor']}")
    return "\n".join(lines).rstrip()


@tool(
    "bluesky_search_posts",
    "Search for posts on Bluesky with optional date, author, hashtag, reply and quote filters",
    SearchPostsArguments,
)
async def search_posts(context: ToolContext, args: SearchPostsArguments) -> str:
    try:
        response = await context.platform.search_posts(args.search_query(), args.limit, args.cursor)
    except Exception as e:
        return (
            f"Search failed: {describe_error(e)}. This might be due to rate limiting "
            "or an invalid search query."
        )
    return format_search_results(response)
