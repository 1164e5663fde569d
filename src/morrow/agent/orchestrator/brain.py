"""
Brain Orchestrator.

The tool-calling loop. Each run is a small state machine:

    AWAITING_MODEL --tool calls--> EXECUTING_TOOLS --> AWAITING_MODEL
    AWAITING_MODEL --plain text--> DONE
    AWAITING_MODEL --budget------> TIMED_OUT | STEP_LIMIT_REACHED

The wall-clock budget is checked only before each provider call; an
in-flight provider or tool call is never interrupted and can overrun it.
Provider and configuration errors propagate to the caller. Tool errors
are recorded in the trace and the loop continues.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from ..domain.entities import (
    BrainResult,
    BrainState,
    Message,
    ProviderResponse,
    TokenUsage,
    ToolTraceEntry,
)
from ..domain.ports import IProviderAdapter
from ..memory.conversation import ConversationMemory
from ..tools.registry import ToolRegistry
from .prompt_builder import MORROW_SYSTEM_PROMPT, PromptBuilder
from .tool_executor import ToolExecutor

logger = logging.getLogger(__name__)

TIME_LIMIT_PREFIX = "[Time limit reached]"
STEP_LIMIT_PREFIX = "[Step limit reached]"

TRANSITIONS: dict[BrainState, frozenset[BrainState]] = {
    BrainState.AWAITING_MODEL: frozenset(
        {
            BrainState.EXECUTING_TOOLS,
            BrainState.DONE,
            BrainState.TIMED_OUT,
            BrainState.STEP_LIMIT_REACHED,
        }
    ),
    BrainState.EXECUTING_TOOLS: frozenset({BrainState.AWAITING_MODEL}),
    BrainState.DONE: frozenset(),
    BrainState.TIMED_OUT: frozenset(),
    BrainState.STEP_LIMIT_REACHED: frozenset(),
}


@dataclass
class BrainConfig:
    """Configuration for the brain loop.

    Attributes:
        max_steps: Provider round-trips allowed per run
        time_budget_seconds: Wall-clock budget checked between steps
        temperature: LLM temperature
        max_tokens: Maximum tokens per response (None = provider default)
        memory_context_entries: Recent memory entries placed in the prompt
        memory_context_chars: Character cap of the memory snippet
        system_prompt: Persona/policy system message
    """

    max_steps: int = 5
    time_budget_seconds: float = 45.0
    temperature: float = 0.4
    max_tokens: Optional[int] = None
    memory_context_entries: int = 6
    memory_context_chars: int = 1200
    system_prompt: str = MORROW_SYSTEM_PROMPT


@dataclass
class BrainRun:
    """Mutable state of one invocation. Never shared between runs."""

    conversation_id: str
    messages: list[Message]
    started_at: float
    state: BrainState = BrainState.AWAITING_MODEL
    steps_used: int = 0
    trace: list[ToolTraceEntry] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    partial_text: str = ""
    final_text: str = ""
    pending: Optional[ProviderResponse] = None

    def transition(self, new_state: BrainState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal brain transition {self.state.value} -> {new_state.value}")
        logger.debug(f"[{self.conversation_id}] {self.state.value} -> {new_state.value}")
        self.state = new_state


def serialize_tool_output(output: Any) -> str:
    """JSON-encode a tool result for the tool-role message."""
    try:
        return json.dumps(output, default=str)
    except (TypeError, ValueError):
        return json.dumps({"result": str(output)})


class BrainOrchestrator:
    """Tool-calling orchestration loop.

    Usage:
        brain = BrainOrchestrator(provider, registry, memory=memory)
        result = await brain.run("Audit Sunset Plumbing in San Diego")
        print(result.final_text, len(result.tool_trace))
    """

    def __init__(
        self,
        provider: IProviderAdapter,
        tool_registry: ToolRegistry,
        memory: Optional[ConversationMemory] = None,
        config: Optional[BrainConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the orchestrator.

        Args:
            provider: Default provider adapter
            tool_registry: Tools the model may call
            memory: Conversation memory (None disables context and persistence)
            config: Loop configuration
            clock: Monotonic clock in seconds
        """
        self.provider = provider
        self.tools = tool_registry
        self.memory = memory
        self.config = config or BrainConfig()
        self.clock = clock
        self.prompt_builder = PromptBuilder(self.config.system_prompt)
        self.executor = ToolExecutor(tool_registry)

    async def run(
        self,
        prompt: str,
        conversation_id: Optional[str] = None,
        tools_allow: Optional[Iterable[str]] = None,
        max_steps: Optional[int] = None,
        time_budget_seconds: Optional[float] = None,
        model: Optional[str] = None,
        provider: Optional[IProviderAdapter] = None,
    ) -> BrainResult:
        """Run the loop until a final answer or a budget is exhausted.

        Args:
            prompt: User prompt
            conversation_id: Memory key (generated when omitted)
            tools_allow: Tool names permitted for this run (None = all)
            max_steps: Override of the step limit
            time_budget_seconds: Override of the wall-clock budget
            model: Model override for this run
            provider: Provider override for this run

        Returns:
            BrainResult with the final text and the tool trace

        Raises:
            ConfigurationError: If the provider is not configured
            ProviderError: If a provider call fails
        """
        provider = provider or self.provider
        allow = list(tools_allow) if tools_allow is not None else None
        max_steps = self.config.max_steps if max_steps is None else max_steps
        budget = (
            self.config.time_budget_seconds
            if time_budget_seconds is None
            else time_budget_seconds
        )
        model_name = model or provider.model_name
        conversation_id = conversation_id or f"conv_{uuid.uuid4().hex[:12]}"

        snippet = None
        if self.memory is not None:
            snippet = self.memory.context_snippet(
                conversation_id,
                max_entries=self.config.memory_context_entries,
                max_chars=self.config.memory_context_chars,
            )

        run = BrainRun(
            conversation_id=conversation_id,
            messages=self.prompt_builder.build_messages(prompt, snippet),
            started_at=self.clock(),
        )
        tools = self.tools.get_definitions(allow)

        while not run.state.is_terminal:
            if run.state == BrainState.AWAITING_MODEL:
                await self._await_model(run, provider, tools, model, max_steps, budget)
            elif run.state == BrainState.EXECUTING_TOOLS:
                await self._execute_tools(run, allow)

        if run.state == BrainState.TIMED_OUT:
            run.final_text = f"{TIME_LIMIT_PREFIX} {self._best_effort_text(run)}"
        elif run.state == BrainState.STEP_LIMIT_REACHED:
            run.final_text = f"{STEP_LIMIT_PREFIX} {self._best_effort_text(run)}"
        elif self.memory is not None:
            await self.memory.append_exchange(conversation_id, prompt, run.final_text)

        duration_ms = int((self.clock() - run.started_at) * 1000)
        logger.info(
            f"Brain run {conversation_id} finished: state={run.state.value}, "
            f"steps={run.steps_used}, tools={len(run.trace)}, {duration_ms}ms"
        )

        return BrainResult(
            final_text=run.final_text,
            tool_trace=list(run.trace),
            steps_used=run.steps_used,
            provider=provider.get_name(),
            model=model_name,
            conversation_id=conversation_id,
            duration_ms=duration_ms,
            state=run.state,
            usage=run.usage,
        )

    async def _await_model(
        self,
        run: BrainRun,
        provider: IProviderAdapter,
        tools: list,
        model: Optional[str],
        max_steps: int,
        budget: float,
    ) -> None:
        if run.steps_used >= max_steps:
            run.transition(BrainState.STEP_LIMIT_REACHED)
            return
        if self.clock() - run.started_at >= budget:
            run.transition(BrainState.TIMED_OUT)
            return

        response = await provider.send_message(
            list(run.messages),
            tools or None,
            model=model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        run.steps_used += 1
        run.usage.add(response.usage)
        if response.content:
            run.partial_text = response.content

        if response.has_tool_calls:
            run.pending = response
            run.transition(BrainState.EXECUTING_TOOLS)
        else:
            run.final_text = response.content
            run.transition(BrainState.DONE)

    async def _execute_tools(self, run: BrainRun, allow: Optional[list[str]]) -> None:
        response = run.pending
        run.pending = None

        # One assistant message per call keeps each request directly
        # followed by its result.
        for index, call in enumerate(response.tool_calls):
            content = response.content if index == 0 and response.content else None
            run.messages.append(Message.assistant(content, [call]))

            output, entry = await self.executor.execute(call, run.steps_used, allow)
            run.trace.append(entry)
            run.messages.append(
                Message.tool(call.id, call.name, serialize_tool_output(output))
            )

        run.transition(BrainState.AWAITING_MODEL)

    def _best_effort_text(self, run: BrainRun) -> str:
        if run.partial_text:
            return run.partial_text
        succeeded = [entry.tool for entry in run.trace if entry.success]
        if succeeded:
            return (
                "I gathered results from "
                + ", ".join(dict.fromkeys(succeeded))
                + " but ran out of room to finish the answer."
            )
        return "I wasn't able to finish working on that yet."
