"""
Tool Executor.

Runs one model-requested tool call and turns every outcome, success or
failure, into a result plus a trace entry. Tool failures never escape.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ..domain.entities import ToolCall, ToolTraceEntry
from ..domain.errors import DisallowedToolError, MorrowError
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Executes tool calls with error handling.

    Usage:
        executor = ToolExecutor(registry)
        output, entry = await executor.execute(tool_call, step=1, allow_list=["search_knowledge"])
    """

    def __init__(self, tool_registry: ToolRegistry):
        """Initialize the tool executor.

        Args:
            tool_registry: Registry for tool lookup and execution
        """
        self.tools = tool_registry

    async def execute(
        self,
        tool_call: ToolCall,
        step: int,
        allow_list: Optional[Iterable[str]] = None,
    ) -> tuple[Any, ToolTraceEntry]:
        """Execute a tool call.

        Malformed arguments become an empty object. A disallowed tool is
        never invoked; an error result is synthesized instead.

        Args:
            tool_call: Tool call from the model
            step: Provider round-trip that requested it (1-based)
            allow_list: Tool names permitted for this run (None = all)

        Returns:
            Tuple of (output, trace entry). Failed calls return ``{"error": message}``.
        """
        args = tool_call.parse_arguments()
        logger.info(f"Executing tool: {tool_call.name}")

        try:
            if not self.tools.is_allowed(tool_call.name, allow_list):
                raise DisallowedToolError(tool_call.name)
            output = await self.tools.execute_tool(tool_call.name, args)
        except Exception as e:
            message = e.message if isinstance(e, MorrowError) else str(e)
            logger.error(f"Tool {tool_call.name} failed: {message}")
            output = {"error": message}
            return output, ToolTraceEntry(
                step=step,
                tool=tool_call.name,
                input=args,
                output=output,
                success=False,
                error=message,
            )

        logger.debug(f"Tool {tool_call.name} result: {output}")
        return output, ToolTraceEntry(
            step=step,
            tool=tool_call.name,
            input=args,
            output=output,
            success=True,
        )
