"""
Anthropic Claude Provider Adapter.

Implements the provider contract on Anthropic's Messages API with tool use.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..domain.entities import (
    ErrorType,
    Message,
    MessageRole,
    ProviderResponse,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from ..domain.errors import ProviderError
from .base import BaseProviderAdapter, ProviderConfig

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring anthropic if not used
try:
    import anthropic
    from anthropic import AsyncAnthropic

    ANTHROPIC_AVAILABLE = True
except ImportError:
    ANTHROPIC_AVAILABLE = False
    anthropic = None
    AsyncAnthropic = None


class AnthropicAdapter(BaseProviderAdapter):
    """Anthropic Claude adapter.

    Claude takes the system prompt as a separate parameter and expects
    tool results as ``tool_result`` blocks inside a user turn, so the
    domain message list is reshaped before sending.

    Usage:
        config = ProviderConfig(api_key="sk-ant-...")
        adapter = AnthropicAdapter(config)

        response = await adapter.send_message(messages, tools)
    """

    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
    PROVIDER_NAME = "anthropic"
    DISPLAY_NAME = "Anthropic"

    def __init__(self, config: ProviderConfig):
        """Initialize the Anthropic adapter.

        Args:
            config: Provider configuration

        Raises:
            ImportError: If anthropic package is not installed
        """
        if not ANTHROPIC_AVAILABLE:
            raise ImportError(
                "anthropic package is required for AnthropicAdapter. "
                "Install with: pip install anthropic"
            )

        super().__init__(config)

        self.client = None
        if config.api_key:
            self.client = AsyncAnthropic(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
                max_retries=0,
            )

    def is_configured(self) -> bool:
        return self.client is not None

    def _format_messages_for_api(
        self, messages: list[Message]
    ) -> tuple[Optional[str], list[dict[str, Any]]]:
        """Convert messages to Anthropic format.

        Returns:
            Tuple of (system prompt, message list). Consecutive turns with
            the same role are merged, as the API requires alternation.
        """
        system_parts: list[str] = []
        api_messages: list[dict[str, Any]] = []

        def append(role: str, blocks: list[dict[str, Any]]) -> None:
            if api_messages and api_messages[-1]["role"] == role:
                api_messages[-1]["content"].extend(blocks)
            else:
                api_messages.append({"role": role, "content": list(blocks)})

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                if msg.content:
                    system_parts.append(msg.content)
            elif msg.role == MessageRole.TOOL:
                append("user", [{
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content or "",
                }])
            elif msg.role == MessageRole.ASSISTANT:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls or []:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.parse_arguments(),
                    })
                if blocks:
                    append("assistant", blocks)
            else:
                append("user", [{"type": "text", "text": msg.content or ""}])

        system = "\n\n".join(system_parts) if system_parts else None
        return system, api_messages

    def _format_tools_for_api(
        self, tools: list[ToolDefinition]
    ) -> list[dict[str, Any]]:
        """Convert tools to Anthropic format."""
        return [tool.to_anthropic_format() for tool in tools]

    async def send_message(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderResponse:
        """Run one Messages API call.

        Raises:
            ConfigurationError: If no API key is configured
            ProviderError: On any upstream failure
        """
        self._require_configured("API key")
        model, temperature, max_tokens = self._resolve_options(model, temperature, max_tokens)

        system, api_messages = self._format_messages_for_api(messages)

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": api_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = self._format_tools_for_api(tools)

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            logger.warning(f"Rate limited by Anthropic: {e}")
            raise ProviderError(
                f"Anthropic API error: 429 rate limited: {e}",
                provider=self.PROVIDER_NAME,
                status_code=429,
                error_type=ErrorType.RATE_LIMIT,
                cause=e,
            )
        except anthropic.APITimeoutError as e:
            logger.error(f"Anthropic API timeout: {e}")
            raise ProviderError(
                f"Anthropic API error: request timed out: {e}",
                provider=self.PROVIDER_NAME,
                error_type=ErrorType.TIMEOUT,
                cause=e,
            )
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error: {e.status_code} {e}")
            raise ProviderError(
                f"Anthropic API error: {e.status_code} {e.message}",
                provider=self.PROVIDER_NAME,
                status_code=e.status_code,
                cause=e,
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise ProviderError(
                f"Anthropic API error: {e}",
                provider=self.PROVIDER_NAME,
                cause=e,
            )

        text_parts = []
        tool_calls = []
        for block in response.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input or {}))
                )

        usage = TokenUsage()
        if response.usage is not None:
            input_tokens = response.usage.input_tokens or 0
            output_tokens = response.usage.output_tokens or 0
            usage = TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )

        return ProviderResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            finish_reason=response.stop_reason,
            usage=usage,
        )

    async def aclose(self) -> None:
        """Close the client."""
        if self.client is not None:
            await self.client.close()
