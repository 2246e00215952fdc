"""Tests for tool registration, listing and dispatch."""

from __future__ import annotations

import logging

import anyio
import pytest
from mcp import types
from pydantic import BaseModel, Field

from tailnet_mcp.errors import BackendError
from tailnet_mcp.models import ToolContext, tool_success
from tailnet_mcp.tools import ToolDefinition, ToolRegistry
from tests.fixtures.backend import result_text

# ── Test tools ──────────────────────────────────────────────────────


class EchoArgs(BaseModel):
    text: str


class CountArgs(BaseModel):
    count: int = Field(default=4, ge=1, le=100)


async def _echo(args: EchoArgs, context: ToolContext) -> types.CallToolResult:
    return tool_success(args.text)


async def _explode(args: EchoArgs, context: ToolContext) -> types.CallToolResult:
    raise RuntimeError("backend went away")


async def _backend_failure(args: EchoArgs, context: ToolContext) -> types.CallToolResult:
    raise BackendError("Device not found", status_code=404)


class _Recorder:
    def __init__(self) -> None:
        self.calls = []

    async def __call__(self, args: CountArgs, context: ToolContext) -> types.CallToolResult:
        self.calls.append(args)
        return tool_success(str(args.count))


# ── Registration ────────────────────────────────────────────────────


class TestRegistration:
    def test_register_and_get(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("echo", "Echo text", EchoArgs, _echo)
        definition = empty_registry.get("echo")
        assert isinstance(definition, ToolDefinition)
        assert definition.handler is _echo
        assert "echo" in empty_registry
        assert len(empty_registry) == 1

    def test_get_missing_returns_none(self, empty_registry: ToolRegistry) -> None:
        assert empty_registry.get("nope") is None
        assert "nope" not in empty_registry

    def test_duplicate_last_write_wins(
        self, empty_registry: ToolRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        empty_registry.add_tool("echo", "first", EchoArgs, _echo)
        with caplog.at_level(logging.WARNING, logger="tailnet_mcp.tools"):
            empty_registry.add_tool("echo", "second", EchoArgs, _explode)

        tools = empty_registry.list_tools()
        assert [t.name for t in tools] == ["echo"]
        assert tools[0].description == "second"
        assert empty_registry.duplicates == ["echo"]
        assert any("Duplicate tool name" in r.message for r in caplog.records)

    def test_duplicate_moves_to_end_of_listing(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("a", "a", EchoArgs, _echo)
        empty_registry.add_tool("b", "b", EchoArgs, _echo)
        empty_registry.add_tool("a", "a again", EchoArgs, _echo)
        assert empty_registry.names() == ["b", "a"]


# ── Listing ─────────────────────────────────────────────────────────


class TestListing:
    def test_input_schema_is_json_schema(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("echo", "Echo text", EchoArgs, _echo)
        tool = empty_registry.list_tools()[0]
        assert tool.inputSchema["type"] == "object"
        assert "text" in tool.inputSchema["properties"]
        assert tool.inputSchema["required"] == ["text"]

    def test_defaults_exposed(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("count", "Count", CountArgs, _Recorder())
        schema = empty_registry.list_tools()[0].inputSchema
        assert schema["properties"]["count"]["default"] == 4

    def test_production_tools_registered(self, registry: ToolRegistry) -> None:
        assert set(registry.names()) == {
            "list_devices",
            "device_action",
            "manage_routes",
            "get_network_status",
            "connect_network",
            "disconnect_network",
            "ping_peer",
            "get_version",
            "manage_acl",
            "manage_dns",
            "manage_keys",
            "manage_network_lock",
            "manage_policy_file",
            "get_tailnet_info",
            "manage_file_sharing",
            "manage_exit_nodes",
            "manage_webhooks",
            "manage_device_tags",
        }
        assert registry.duplicates == []


# ── Dispatch ────────────────────────────────────────────────────────


class TestDispatch:
    async def test_echo_success(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("echo", "Echo text", EchoArgs, _echo)
        result = await empty_registry.dispatch("echo", {"text": "hi"})
        assert not result.isError
        assert result.model_dump(mode="json", exclude_none=True)["content"] == [
            {"type": "text", "text": "hi"}
        ]

    async def test_missing_field_names_the_field(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("echo", "Echo text", EchoArgs, _echo)
        result = await empty_registry.dispatch("echo", {})
        assert result.isError is True
        assert "text" in result_text(result)

    async def test_unknown_tool(self, empty_registry: ToolRegistry) -> None:
        result = await empty_registry.dispatch("does_not_exist", {"x": 1})
        assert result.isError is True
        assert result_text(result) == "Unknown tool: does_not_exist"

    async def test_validation_failure_skips_handler(self, empty_registry: ToolRegistry) -> None:
        recorder = _Recorder()
        empty_registry.add_tool("count", "Count", CountArgs, recorder)
        result = await empty_registry.dispatch("count", {"count": 500})
        assert result.isError is True
        assert "count" in result_text(result)
        assert recorder.calls == []

    async def test_defaults_filled_before_handler(self, empty_registry: ToolRegistry) -> None:
        recorder = _Recorder()
        empty_registry.add_tool("count", "Count", CountArgs, recorder)
        result = await empty_registry.dispatch("count")
        assert result_text(result) == "4"
        assert recorder.calls[0].count == 4

    async def test_non_mapping_arguments_are_a_validation_error(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("echo", "Echo text", EchoArgs, _echo)
        result = await empty_registry.dispatch("echo", ["hi"])  # type: ignore[arg-type]
        assert result.isError is True
        assert result_text(result).startswith("Invalid arguments")

    async def test_handler_exception_contained(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("boom", "Always fails", EchoArgs, _explode)
        result = await empty_registry.dispatch("boom", {"text": "x"})
        assert result.isError is True
        assert result_text(result) == "Tool error: backend went away"
        assert "Traceback" not in result_text(result)

    async def test_backend_error_message_only(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("lookup", "Lookup", EchoArgs, _backend_failure)
        result = await empty_registry.dispatch("lookup", {"text": "x"})
        assert result_text(result) == "Tool error: Device not found"

    async def test_concurrent_dispatch(self, empty_registry: ToolRegistry) -> None:
        empty_registry.add_tool("echo", "Echo text", EchoArgs, _echo)
        results = {}

        async def call(i: int) -> None:
            results[i] = await empty_registry.dispatch("echo", {"text": str(i)})

        async with anyio.create_task_group() as tg:
            for i in range(20):
                tg.start_soon(call, i)

        assert {i: result_text(r) for i, r in results.items()} == {i: str(i) for i in range(20)}

    async def test_aclose_releases_backend(self, registry: ToolRegistry, backend) -> None:
        await registry.aclose()
        assert backend.closed is True
        assert len(registry) == 0
