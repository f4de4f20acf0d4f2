from __future__ import annotations

import asyncio
from pathlib import Path
import threading
from typing import Any

import pytest
from mcp.server import Server
from mcp.types import TextContent

from hookpilot.config import GatewayConfig, GitIdentity
from hookpilot.models import RepositoryRef
from hookpilot.server import ToolCallFailed, build_server, handle_call_tool, list_tool_definitions
from hookpilot.tool_gateway import TOOL_METADATA, ToolGateway, ToolResult


def _gateway(tmp_path: Path) -> ToolGateway:
    return ToolGateway(
        GatewayConfig(
            repository=RepositoryRef(owner="octo", name="widgets"),
            branch_name="main",
            repo_dir=tmp_path,
            token=None,
            api_url="https://api.github.com",
            git_identity=GitIdentity(name="bot", email="bot@example.com"),
        )
    )


def test_list_tool_definitions_matches_catalogue() -> None:
    tools = list_tool_definitions()

    assert [tool.name for tool in tools] == list(TOOL_METADATA)
    commit = next(tool for tool in tools if tool.name == "commit_files")
    assert commit.inputSchema["required"] == ["files", "message"]


def test_build_server(tmp_path: Path) -> None:
    server = build_server(_gateway(tmp_path))
    assert isinstance(server, Server)
    assert server.name == "local_git_ops"


def test_handle_call_tool_success(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def fake_run(cmd: list[str], **kwargs: object) -> str:
        _ = kwargs
        if cmd[3:] == ["rev-parse", "--abbrev-ref", "HEAD"]:
            return "main\n"
        return " M a.py\n"

    monkeypatch.setattr("hookpilot.git_ops.run", fake_run)

    content = asyncio.run(handle_call_tool(_gateway(tmp_path), "git_status", {}))

    assert content == [
        TextContent(type="text", text="Current branch: main\nStatus:\n M a.py")
    ]


def test_handle_call_tool_error_raises(tmp_path: Path) -> None:
    with pytest.raises(ToolCallFailed, match="Error in nope: Unknown tool: nope"):
        asyncio.run(handle_call_tool(_gateway(tmp_path), "nope", None))


def test_handle_call_tool_dispatches_off_the_event_loop_thread() -> None:
    seen: dict[str, object] = {}

    class RecordingGateway:
        def dispatch(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
            seen["thread"] = threading.get_ident()
            seen["call"] = (name, arguments)
            return ToolResult(text="ok")

    async def call() -> list[TextContent]:
        seen["loop_thread"] = threading.get_ident()
        gateway = RecordingGateway()
        return await handle_call_tool(gateway, "git_status", {})  # type: ignore[arg-type]

    content = asyncio.run(call())

    assert content == [TextContent(type="text", text="ok")]
    assert seen["call"] == ("git_status", {})
    assert seen["thread"] != seen["loop_thread"]
