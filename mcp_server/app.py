"""MCP server factory for the Bluesky tools."""

import logging
from typing import Optional

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from mcp_server.tools import TOOLS, ToolContext, call_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "Bluesky MCP Server"


def create_server(context: ToolContext) -> Server:
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return [spec.definition() for spec in TOOLS.values()]

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: Optional[dict]) -> list[types.TextContent]:
        logger.debug("Tool call %s", name)
        return await call_tool(context, name, arguments)

    return server


async def serve(context: ToolContext) -> None:
    """Run the server over stdio until the client disconnects."""
    server = create_server(context)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
