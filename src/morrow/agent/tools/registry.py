"""
Tool Registry.

Holds the immutable set of tools the brain loop may call and routes
executions to their handlers after checking required parameters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..domain.entities import ToolDefinition
from ..domain.errors import MissingParameterError, ToolExecutionError, UnknownToolError

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class RegisteredTool:
    """A tool definition bound to the coroutine that implements it."""

    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


class ToolRegistry:
    """Registry of the tools exposed to the model.

    The tool set is fixed at construction. Handlers raise on failure;
    the registry wraps unexpected exceptions in ``ToolExecutionError``
    and lets them propagate to the orchestrator.

    Usage:
        registry = ToolRegistry([
            RegisteredTool(ToolDefinition("echo", "Echo input", schema), echo),
        ])

        tools = registry.get_definitions(allow_list=["echo"])
        result = await registry.execute_tool("echo", {"text": "hi"})
    """

    def __init__(self, tools: Optional[Iterable[RegisteredTool]] = None):
        """Initialize the registry.

        Args:
            tools: Tools to register. Names must be unique.

        Raises:
            ValueError: If two tools share a name
        """
        table: dict[str, RegisteredTool] = {}
        for tool in tools or []:
            if tool.name in table:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            table[tool.name] = tool
        self._tools = MappingProxyType(table)
        logger.info(f"Tool registry loaded {len(table)} tools")

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        tool = self._tools.get(name)
        return tool.definition if tool else None

    def get_definitions(
        self, allow_list: Optional[Iterable[str]] = None
    ) -> list[ToolDefinition]:
        """Get tool definitions, optionally restricted to an allow-list.

        Args:
            allow_list: Names to expose. Unknown names are ignored.
                None exposes every registered tool.

        Returns:
            Definitions in allow-list order (or registration order)
        """
        names = list(allow_list) if allow_list is not None else list(self._tools)
        return [self._tools[n].definition for n in names if n in self._tools]

    def is_allowed(self, name: str, allow_list: Optional[Iterable[str]] = None) -> bool:
        """Check allow-list membership. No allow-list means everything is allowed."""
        if allow_list is None:
            return True
        return name in set(allow_list)

    async def execute_tool(self, name: str, args: Optional[dict[str, Any]]) -> Any:
        """Execute a registered tool.

        Required parameters are checked before the handler runs, so a
        partially-invalid call never reaches side-effecting code. A
        parameter that is present but null counts as missing.

        Args:
            name: Tool name
            args: Parsed arguments

        Returns:
            Whatever the handler returns (JSON-serializable)

        Raises:
            UnknownToolError: If ``name`` is not registered
            MissingParameterError: If a required parameter is absent
            ToolExecutionError: If the handler fails
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)

        args = args or {}
        for param in tool.definition.required:
            if args.get(param) is None:
                raise MissingParameterError(name, param)

        try:
            return await tool.handler(args)
        except ToolExecutionError as e:
            raise ToolExecutionError(
                f"Tool execution failed: {e.message}",
                tool=name,
                details=dict(e.details),
                cause=e,
            ) from e
        except Exception as e:
            logger.error(f"Tool {name} raised {type(e).__name__}: {e}")
            raise ToolExecutionError(
                f"Tool execution failed: {e}",
                tool=name,
                cause=e,
            ) from e
