"""
Domain entities for the Morrow brain.

These are pure domain objects with no infrastructure dependencies.
They define the core data structures shared by the provider adapters,
the tool registry, the knowledge store and the orchestrator.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# ============================================
# Error Classification
# ============================================


class ErrorType(str, Enum):
    """Classification of errors raised across the brain."""

    RECOVERABLE = "recoverable"  # Can retry
    FATAL = "fatal"  # Must abort
    TIMEOUT = "timeout"  # Tool/LLM timeout
    RATE_LIMIT = "rate_limit"  # Rate limited, back off


# ============================================
# Message Types
# ============================================


class MessageRole(str, Enum):
    """Role of a message in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model.

    Attributes:
        id: Provider-assigned identifier, unique within one response
        name: Tool name being called
        arguments: Serialized argument object exactly as the provider sent it
    """

    id: str
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> dict[str, Any]:
        """Parse the argument payload.

        A malformed or non-object payload yields an empty dict.
        """
        if not self.arguments:
            return {}
        try:
            parsed = json.loads(self.arguments)
        except (TypeError, ValueError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def to_wire(self) -> dict[str, Any]:
        """Convert to the chat-completion tool call format."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class Message:
    """A single message passed to a provider adapter.

    Attributes:
        role: Message role (system, user, assistant, tool)
        content: Text content, None for a pure tool-call request
        tool_calls: Tool calls carried by an assistant message
        tool_call_id: For tool messages, the id of the call being answered
        name: For tool messages, the tool name
    """

    role: MessageRole
    content: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls, content: Optional[str], tool_calls: Optional[list[ToolCall]] = None
    ) -> Message:
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls)

    @classmethod
    def tool(cls, tool_call_id: str, name: str, content: str) -> Message:
        return cls(
            role=MessageRole.TOOL,
            content=content,
            tool_call_id=tool_call_id,
            name=name,
        )

    def to_wire(self) -> dict[str, Any]:
        """Convert to the chat-completion message format."""
        result: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            result["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            result["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            result["name"] = self.name
        return result


# ============================================
# Tool System
# ============================================


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of an available tool.

    Attributes:
        name: Tool name (unique key in the registry)
        description: Human-readable description
        parameters: JSON Schema for parameters, with a ``required`` list
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )

    @property
    def required(self) -> list[str]:
        """Names of the parameters the schema marks as required."""
        return list(self.parameters.get("required") or [])

    def to_dict(self) -> dict[str, Any]:
        """Provider-neutral wire form: name, description, parameters."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": self.to_dict(),
        }

    def to_anthropic_format(self) -> dict[str, Any]:
        """Convert to Anthropic tool use format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


@dataclass(frozen=True)
class ToolTraceEntry:
    """One tool invocation attempted during a brain run.

    Entries are append-only; the dataclass is frozen so a recorded
    attempt cannot be altered after the fact.

    Attributes:
        step: Provider round-trip number (1-based) that requested the call
        tool: Tool name
        input: Parsed arguments the tool was invoked with
        output: Result object (an ``{"error": ...}`` object on failure)
        success: Whether the tool completed without error
        error: Error message if the call failed
        timestamp: ISO-8601 time the attempt finished
    """

    step: int
    tool: str
    input: dict[str, Any]
    output: Optional[Any]
    success: bool
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)

    def __post_init__(self):
        if self.step < 1:
            raise ValueError("step must be >= 1")

    def to_dict(self) -> dict[str, Any]:
        result = {
            "step": self.step,
            "tool": self.tool,
            "input": self.input,
            "output": self.output,
            "success": self.success,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


# ============================================
# Provider Responses
# ============================================


@dataclass
class TokenUsage:
    """Token accounting reported by a provider (zeroed when unavailable)."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: TokenUsage) -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ProviderResponse:
    """Normalized result of one chat-completion call.

    ``content`` is never None and ``tool_calls`` is never None, whatever
    the backend returned.
    """

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: TokenUsage = field(default_factory=TokenUsage)

    def __post_init__(self):
        if self.content is None:
            self.content = ""
        if self.tool_calls is None:
            self.tool_calls = []

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


# ============================================
# Memory & Knowledge
# ============================================


@dataclass(frozen=True)
class MemoryEntry:
    """A single remembered exchange line."""

    role: str
    content: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryEntry:
        return cls(
            role=str(data.get("role", "")),
            content=str(data.get("content", "")),
            timestamp=str(data.get("timestamp") or utc_now_iso()),
        )


@dataclass(frozen=True)
class KnowledgeItem:
    """A document loaded from the knowledge folder.

    Attributes:
        title: Source identifier (the file name)
        content: Text content, capped at load time
    """

    title: str
    content: str


@dataclass(frozen=True)
class VectorChunk:
    """An embedded window of a knowledge file."""

    file: str
    chunk_index: int
    text: str
    vector: tuple[float, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "chunkIndex": self.chunk_index,
            "text": self.text,
            "vector": list(self.vector),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VectorChunk:
        return cls(
            file=data["file"],
            chunk_index=int(data["chunkIndex"]),
            text=data.get("text", ""),
            vector=tuple(float(v) for v in data.get("vector", [])),
        )


# ============================================
# Intent Parsing
# ============================================


@dataclass
class IntentResult:
    """Structured outcome of parsing free text into an intent."""

    intent: str
    action: str
    confidence: float
    parameters: dict[str, Any] = field(default_factory=dict)
    missing_fields: list[str] = field(default_factory=list)
    raw_input: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "action": self.action,
            "confidence": self.confidence,
            "parameters": self.parameters,
            "missing_fields": self.missing_fields,
            "raw_input": self.raw_input,
        }


# ============================================
# Brain Loop
# ============================================


class BrainState(str, Enum):
    """States of one orchestration run."""

    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    TIMED_OUT = "timed_out"
    STEP_LIMIT_REACHED = "step_limit_reached"

    @property
    def is_terminal(self) -> bool:
        return self in (
            BrainState.DONE,
            BrainState.TIMED_OUT,
            BrainState.STEP_LIMIT_REACHED,
        )


@dataclass
class BrainResult:
    """Everything a caller gets back from one orchestration run."""

    final_text: str
    tool_trace: list[ToolTraceEntry]
    steps_used: int
    provider: str
    model: str
    conversation_id: str
    duration_ms: int
    state: BrainState
    usage: TokenUsage = field(default_factory=TokenUsage)
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_text": self.final_text,
            "tool_trace": [entry.to_dict() for entry in self.tool_trace],
            "steps_used": self.steps_used,
            "provider": self.provider,
            "model": self.model,
            "conversation_id": self.conversation_id,
            "duration_ms": self.duration_ms,
            "state": self.state.value,
            "usage": self.usage.to_dict(),
            "timestamp": self.timestamp,
        }
