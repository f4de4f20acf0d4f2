"""MCP stdio server exposing the tool gateway to the agent.

stdout carries the protocol, so all logging goes to stderr.
"""

from __future__ import annotations

import logging
from typing import Any

import anyio.to_thread
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from hookpilot.config import GatewayConfig
from hookpilot.observability import log_event
from hookpilot.tool_gateway import SERVER_NAME, TOOL_METADATA, ToolGateway


LOGGER = logging.getLogger("hookpilot.server")


class ToolCallFailed(Exception):
    """Raised inside the MCP handler so the SDK marks the result ``isError``."""


def list_tool_definitions() -> list[Tool]:
    return [
        Tool(
            name=name,
            description=metadata["description"],
            inputSchema=metadata["inputSchema"],
        )
        for name, metadata in TOOL_METADATA.items()
    ]


async def handle_call_tool(
    gateway: ToolGateway, name: str, arguments: dict[str, Any] | None
) -> list[TextContent]:
    # Git and HTTP calls block; the gateway lock keeps them one at a time.
    result = await anyio.to_thread.run_sync(gateway.dispatch, name, arguments)
    if result.is_error:
        raise ToolCallFailed(result.text)
    return [TextContent(type="text", text=result.text)]


def build_server(gateway: ToolGateway) -> Server:
    server: Server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return list_tool_definitions()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        return await handle_call_tool(gateway, name, arguments)

    return server


async def run_server(config: GatewayConfig) -> None:
    gateway = ToolGateway(config)
    server = build_server(gateway)
    log_event(
        LOGGER,
        "gateway_started",
        repo_full_name=config.repository.full_name,
        branch=config.branch_name,
        repo_dir=str(config.repo_dir),
        pr_creation_enabled=gateway.github is not None,
    )
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
