"""
Tests for the tool registry.

Tests definition filtering, required-parameter checks and error wrapping.
"""

from unittest.mock import AsyncMock

import pytest

from src.morrow.agent.domain.entities import ToolDefinition
from src.morrow.agent.domain.errors import (
    MissingParameterError,
    ToolExecutionError,
    UnknownToolError,
)
from src.morrow.agent.tools.registry import RegisteredTool, ToolRegistry


def _definition(name, required=None):
    return ToolDefinition(
        name=name,
        description=f"{name} tool",
        parameters={
            "type": "object",
            "properties": {p: {"type": "string"} for p in required or []},
            "required": required or [],
        },
    )


@pytest.fixture
def echo_handler():
    return AsyncMock(side_effect=lambda args: {"echo": args.get("text")})


@pytest.fixture
def registry(echo_handler):
    return ToolRegistry([
        RegisteredTool(_definition("echo", ["text"]), echo_handler),
        RegisteredTool(_definition("leads_list"), AsyncMock(return_value={"leads": []})),
        RegisteredTool(_definition("explode"), AsyncMock(side_effect=RuntimeError("kaboom"))),
    ])


class TestDefinitions:
    """Tests for listing tools."""

    def test_all_definitions_in_registration_order(self, registry):
        """No allow-list exposes every tool."""
        assert [d.name for d in registry.get_definitions()] == ["echo", "leads_list", "explode"]

    def test_allow_list_filters_and_orders(self, registry):
        """Allow-list order is kept and unknown names are ignored."""
        defs = registry.get_definitions(["leads_list", "nope", "echo"])
        assert [d.name for d in defs] == ["leads_list", "echo"]

    def test_empty_allow_list_exposes_nothing(self, registry):
        """An empty allow-list means no tools at all."""
        assert registry.get_definitions([]) == []
        assert registry.is_allowed("echo", []) is False
        assert registry.is_allowed("echo", None) is True

    def test_duplicate_names_rejected(self, echo_handler):
        """Tool names are unique."""
        with pytest.raises(ValueError, match="Duplicate tool name: echo"):
            ToolRegistry([
                RegisteredTool(_definition("echo"), echo_handler),
                RegisteredTool(_definition("echo"), echo_handler),
            ])

    def test_membership(self, registry):
        assert "echo" in registry
        assert "send_fax" not in registry
        assert len(registry) == 3
        assert registry.get_tool("send_fax") is None


class TestExecuteTool:
    """Tests for execute_tool."""

    @pytest.mark.asyncio
    async def test_executes_handler(self, registry, echo_handler):
        """Valid calls reach the handler with the parsed args."""
        result = await registry.execute_tool("echo", {"text": "hi"})
        assert result == {"echo": "hi"}
        echo_handler.assert_awaited_once_with({"text": "hi"})

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        with pytest.raises(UnknownToolError, match="Unknown tool: send_fax"):
            await registry.execute_tool("send_fax", {})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("args", [{}, None, {"text": None}])
    async def test_missing_required_parameter_skips_handler(self, registry, echo_handler, args):
        """Missing or null required params fail before the handler runs."""
        with pytest.raises(MissingParameterError, match="Missing required parameter: text"):
            await registry.execute_tool("echo", args)
        echo_handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handler_exception_wrapped(self, registry):
        """Unexpected handler errors become ToolExecutionError."""
        with pytest.raises(ToolExecutionError, match="Tool execution failed: kaboom") as exc_info:
            await registry.execute_tool("explode", {})
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.tool == "explode"

    @pytest.mark.asyncio
    async def test_tool_error_message_prefixed(self):
        """Handler ToolExecutionErrors keep their message under the prefix."""
        registry = ToolRegistry([
            RegisteredTool(
                _definition("report_generate"),
                AsyncMock(side_effect=ToolExecutionError("Audit not found: aud_1")),
            )
        ])
        with pytest.raises(ToolExecutionError) as exc_info:
            await registry.execute_tool("report_generate", {})
        assert exc_info.value.message == "Tool execution failed: Audit not found: aud_1"
