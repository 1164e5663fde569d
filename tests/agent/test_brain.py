"""
Tests for the brain orchestration loop.

Uses a scripted provider and a fake clock so budgets are deterministic.
"""

import json
from unittest.mock import AsyncMock

import pytest

from src.morrow.agent.domain.entities import (
    BrainState,
    MessageRole,
    ProviderResponse,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from src.morrow.agent.domain.errors import ProviderError
from src.morrow.agent.domain.ports import IProviderAdapter
from src.morrow.agent.memory import ConversationMemory
from src.morrow.agent.orchestrator import (
    STEP_LIMIT_PREFIX,
    TIME_LIMIT_PREFIX,
    BrainConfig,
    BrainOrchestrator,
)
from src.morrow.agent.orchestrator.brain import BrainRun
from src.morrow.agent.tools.registry import RegisteredTool, ToolRegistry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ScriptedProvider(IProviderAdapter):
    """Provider whose send_message is an AsyncMock."""

    def __init__(self, responses=None, side_effect=None):
        self.send_message = AsyncMock(side_effect=side_effect or list(responses or []))

    async def send_message(self, messages, tools=None, model=None, temperature=None, max_tokens=None):
        raise NotImplementedError  # replaced per instance

    def is_configured(self):
        return True

    def get_name(self):
        return "scripted"

    @property
    def model_name(self):
        return "scripted-1"


def text(content, tokens=0):
    return ProviderResponse(
        content=content,
        finish_reason="stop",
        usage=TokenUsage(total_tokens=tokens),
    )


def calls(*tool_calls, content=""):
    return ProviderResponse(content=content, tool_calls=list(tool_calls), finish_reason="tool_calls")


def _tool(name, handler, required=None):
    definition = ToolDefinition(
        name=name,
        description=name,
        parameters={"type": "object", "properties": {}, "required": required or []},
    )
    return RegisteredTool(definition, handler)


@pytest.fixture
def search_handler():
    return AsyncMock(return_value={"results": [{"title": "local-seo.md"}]})


@pytest.fixture
def notify_handler():
    return AsyncMock(return_value={"ok": True})


@pytest.fixture
def registry(search_handler, notify_handler):
    return ToolRegistry([
        _tool("search_knowledge", search_handler),
        _tool("send_notification", notify_handler),
    ])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory():
    return ConversationMemory(max_entries=20)


def _brain(provider, registry, memory=None, clock=None, **config):
    return BrainOrchestrator(
        provider,
        registry,
        memory=memory,
        config=BrainConfig(**config),
        clock=clock or FakeClock(),
    )


class TestFinalAnswer:
    """Tests for runs that end with plain text."""

    @pytest.mark.asyncio
    async def test_plain_answer(self, registry, memory):
        """A text reply ends the run after one step and is remembered."""
        provider = ScriptedProvider([text("I'm Morrow.AI.", tokens=12)])
        brain = _brain(provider, registry, memory=memory)

        result = await brain.run("Who are you?", conversation_id="conv_1")

        assert result.final_text == "I'm Morrow.AI."
        assert result.state == BrainState.DONE
        assert result.steps_used == 1
        assert result.tool_trace == []
        assert result.provider == "scripted"
        assert result.model == "scripted-1"
        assert result.usage.total_tokens == 12
        assert [e.content for e in memory.get_history("conv_1")] == ["Who are you?", "I'm Morrow.AI."]

    @pytest.mark.asyncio
    async def test_opening_messages(self, registry, memory):
        """System persona, memory context, then the user prompt."""
        await memory.append_exchange("conv_1", "Hi", "Hello!")
        provider = ScriptedProvider([text("ok")])

        await _brain(provider, registry, memory=memory).run("Next?", conversation_id="conv_1")

        messages = provider.send_message.await_args.args[0]
        assert [m.role for m in messages] == [MessageRole.SYSTEM, MessageRole.SYSTEM, MessageRole.USER]
        assert "Morrow.AI" in messages[0].content
        assert messages[1].content == "Recent conversation context:\nuser: Hi\nassistant: Hello!"
        assert messages[2].content == "Next?"

    @pytest.mark.asyncio
    async def test_conversation_id_generated(self, registry):
        provider = ScriptedProvider([text("ok")])
        result = await _brain(provider, registry).run("hello")
        assert result.conversation_id.startswith("conv_")


class TestToolExecution:
    """Tests for tool call handling."""

    @pytest.mark.asyncio
    async def test_each_call_followed_by_its_result(self, registry, search_handler, notify_handler):
        """Assistant requests and tool results interleave with matching ids."""
        provider = ScriptedProvider([
            calls(
                ToolCall("call_a", "search_knowledge", '{"query": "citations"}'),
                ToolCall("call_b", "send_notification", "{}"),
                content="Let me check.",
            ),
            text("Done."),
        ])

        result = await _brain(provider, registry).run("Help with citations")

        assert result.final_text == "Done."
        assert result.steps_used == 2
        assert [(e.step, e.tool, e.success) for e in result.tool_trace] == [
            (1, "search_knowledge", True),
            (1, "send_notification", True),
        ]
        search_handler.assert_awaited_once_with({"query": "citations"})

        messages = provider.send_message.await_args_list[1].args[0]
        tail = messages[2:]
        assert [m.role for m in tail] == [
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
        ]
        assert tail[0].content == "Let me check."
        assert tail[0].tool_calls[0].id == tail[1].tool_call_id == "call_a"
        assert tail[2].content is None
        assert tail[2].tool_calls[0].id == tail[3].tool_call_id == "call_b"
        assert json.loads(tail[1].content) == {"results": [{"title": "local-seo.md"}]}

    @pytest.mark.asyncio
    async def test_history_only_grows_between_steps(self, registry):
        """Each provider call sees the previous call's messages unchanged, plus more."""
        provider = ScriptedProvider([
            calls(ToolCall("call_1", "search_knowledge", '{"query": "reviews"}')),
            calls(
                ToolCall("call_2", "search_knowledge", '{"query": "citations"}'),
                ToolCall("call_3", "send_notification", "{}"),
                content="Checking two things.",
            ),
            calls(ToolCall("call_4", "search_knowledge", '{"query": "nap"}')),
            text("All set."),
        ])

        result = await _brain(provider, registry, max_steps=5).run("Plan my local SEO")

        assert result.state == BrainState.DONE
        sent = [c.args[0] for c in provider.send_message.await_args_list]
        assert len(sent) == 4
        for before, after in zip(sent, sent[1:]):
            assert len(after) > len(before)
            assert after[: len(before)] == before

    @pytest.mark.asyncio
    async def test_malformed_arguments_become_empty(self, registry, search_handler):
        provider = ScriptedProvider([
            calls(ToolCall("call_1", "search_knowledge", "{not json")),
            text("ok"),
        ])

        result = await _brain(provider, registry).run("x")

        assert result.tool_trace[0].input == {}
        search_handler.assert_awaited_once_with({})

    @pytest.mark.asyncio
    async def test_disallowed_tool_not_invoked(self, registry, notify_handler):
        """A tool outside the allow-list is refused and the run still answers."""
        provider = ScriptedProvider([
            calls(ToolCall("call_1", "send_notification", '{"channel": "sms"}')),
            text("I can't send messages right now."),
        ])

        result = await _brain(provider, registry).run(
            "Text my client", tools_allow=["search_knowledge"]
        )

        assert len(result.tool_trace) == 1
        entry = result.tool_trace[0]
        assert entry.success is False
        assert entry.error == "Tool send_notification not allowed"
        assert entry.output == {"error": "Tool send_notification not allowed"}
        notify_handler.assert_not_awaited()
        assert result.final_text == "I can't send messages right now."

        offered = provider.send_message.await_args_list[0].args[1]
        assert [d.name for d in offered] == ["search_knowledge"]

    @pytest.mark.asyncio
    async def test_empty_allow_list_offers_no_tools(self, registry):
        provider = ScriptedProvider([text("ok")])
        await _brain(provider, registry).run("x", tools_allow=[])
        assert provider.send_message.await_args.args[1] is None

    @pytest.mark.asyncio
    async def test_tool_failure_recorded(self):
        """Handler errors land in the trace and the loop continues."""
        registry = ToolRegistry([_tool("search_knowledge", AsyncMock(side_effect=RuntimeError("index gone")))])
        provider = ScriptedProvider([
            calls(ToolCall("call_1", "search_knowledge", "{}")),
            text("Sorry, search is down."),
        ])

        result = await _brain(provider, registry).run("x")

        assert result.tool_trace[0].success is False
        assert result.tool_trace[0].error == "Tool execution failed: index gone"
        assert result.state == BrainState.DONE


class TestBudgets:
    """Tests for the step and time budgets."""

    @pytest.mark.asyncio
    async def test_step_limit(self, registry, memory):
        """The provider is called at most max_steps times."""
        provider = ScriptedProvider(
            side_effect=lambda *a, **kw: calls(ToolCall("call_1", "search_knowledge", "{}"))
        )

        result = await _brain(provider, registry, memory=memory).run(
            "loop forever", conversation_id="conv_1", max_steps=3
        )

        assert provider.send_message.await_count == 3
        assert result.steps_used == 3
        assert result.state == BrainState.STEP_LIMIT_REACHED
        assert result.final_text.startswith(STEP_LIMIT_PREFIX)
        assert "search_knowledge" in result.final_text
        assert len(result.tool_trace) == 3
        assert memory.get_history("conv_1") == []

    @pytest.mark.asyncio
    async def test_time_limit(self, registry, clock):
        """The budget is checked before each provider call."""

        def slow_reply(*args, **kwargs):
            clock.advance(20)
            return calls(ToolCall("call_1", "search_knowledge", "{}"), content="Checking sources.")

        provider = ScriptedProvider(side_effect=slow_reply)

        result = await _brain(provider, registry, clock=clock).run("x", time_budget_seconds=15)

        assert result.state == BrainState.TIMED_OUT
        assert result.steps_used == 1
        assert result.final_text == f"{TIME_LIMIT_PREFIX} Checking sources."
        assert result.duration_ms == 20000

    @pytest.mark.asyncio
    async def test_config_defaults_used(self, registry):
        provider = ScriptedProvider(
            side_effect=lambda *a, **kw: calls(ToolCall("call_1", "search_knowledge", "{}"))
        )
        result = await _brain(provider, registry, max_steps=2).run("x")
        assert result.steps_used == 2


class TestErrors:
    """Tests for failures that abort the run."""

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, registry, memory):
        provider = ScriptedProvider(side_effect=ProviderError("upstream 500", provider="scripted"))

        with pytest.raises(ProviderError, match="upstream 500"):
            await _brain(provider, registry, memory=memory).run("x", conversation_id="conv_1")
        assert memory.get_history("conv_1") == []

    def test_illegal_transition(self):
        run = BrainRun(conversation_id="conv_1", messages=[], started_at=0.0)
        run.transition(BrainState.DONE)
        with pytest.raises(RuntimeError, match="Illegal brain transition"):
            run.transition(BrainState.EXECUTING_TOOLS)
