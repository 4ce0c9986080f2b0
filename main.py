"""Bluesky MCP server: post, read and publish long drafts as threads."""

import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from core.config import Settings
from core.drafts import DraftStore
from core.publisher import ThreadPublisher
from mcp_server.app import serve
from mcp_server.tools import ToolContext
from platforms.bluesky import BlueskyPlatform

logger = logging.getLogger("bluesky_mcp")


async def run(settings: Settings) -> None:
    platform = BlueskyPlatform(settings.username, settings.password, settings.service)
    try:
        await platform.login()
    except Exception as e:
        logger.error("Failed to login to Bluesky: %s", e)
        raise SystemExit(1)

    store = DraftStore()
    publisher = ThreadPublisher(
        platform,
        store,
        post_delay=settings.post_delay,
        resolve_attempts=settings.resolve_attempts,
    )
    await serve(ToolContext(platform=platform, store=store, publisher=publisher))


def main():
    # .env beside this file first, then the working directory
    load_dotenv(Path(__file__).parent / ".env")
    load_dotenv()

    settings = Settings.from_env()
    # stdout carries the MCP stream
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not settings.username or not settings.password:
        logger.error("Please set BLUESKY_USERNAME and BLUESKY_PASSWORD environment variables")
        raise SystemExit(1)

    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
