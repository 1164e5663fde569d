"""
OpenAI Provider Adapter.

Implements the provider contract on OpenAI's Chat Completions API with
function calling, plus batch embeddings for the vector store.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..domain.entities import (
    ErrorType,
    Message,
    ProviderResponse,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from ..domain.errors import ConfigurationError, ProviderError
from ..domain.ports import IEmbeddingProvider
from .base import BaseProviderAdapter, ProviderConfig

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring openai if not used
try:
    import openai
    from openai import AsyncOpenAI

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False
    openai = None
    AsyncOpenAI = None


class OpenAIAdapter(BaseProviderAdapter, IEmbeddingProvider):
    """OpenAI chat-completion adapter.

    Supports:
    - GPT-4o / GPT-4o-mini and other chat models
    - Tool/function calling (tool_choice "auto" only)
    - Embeddings (text-embedding-3-small/large)

    Usage:
        config = ProviderConfig(api_key="sk-...", model="gpt-4o-mini")
        adapter = OpenAIAdapter(config)

        response = await adapter.send_message(messages, tools)
        for call in response.tool_calls:
            print(call.name, call.arguments)
    """

    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
    PROVIDER_NAME = "openai"
    DISPLAY_NAME = "OpenAI"

    def __init__(self, config: ProviderConfig):
        """Initialize the OpenAI adapter.

        A missing API key is allowed at construction time; calls will
        raise ConfigurationError instead.

        Args:
            config: Provider configuration

        Raises:
            ImportError: If openai package is not installed
        """
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "openai package is required for OpenAIAdapter. "
                "Install with: pip install openai"
            )

        super().__init__(config)

        self._embedding_model = config.embedding_model or self.DEFAULT_EMBEDDING_MODEL

        self.client = None
        if config.api_key:
            self.client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
                max_retries=0,
            )

    @property
    def embedding_model(self) -> str:
        return self._embedding_model

    def is_configured(self) -> bool:
        return self.client is not None

    def _format_messages_for_api(self, messages: list[Message]) -> list[dict[str, Any]]:
        """OpenAI takes the domain wire format as-is, system messages included."""
        return [msg.to_wire() for msg in messages]

    async def send_message(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderResponse:
        """Run one chat completion.

        Args:
            messages: Conversation so far
            tools: Available tools
            model: Model override (default gpt-4o-mini)
            temperature: Sampling temperature (default 0.7)
            max_tokens: Maximum tokens to generate (default 2000)

        Returns:
            Normalized ProviderResponse

        Raises:
            ConfigurationError: If no API key is configured
            ProviderError: On any upstream failure
        """
        self._require_configured("API key")
        model, temperature, max_tokens = self._resolve_options(model, temperature, max_tokens)

        payload: dict[str, Any] = {
            "model": model,
            "messages": self._format_messages_for_api(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if tools:
            payload["tools"] = self._format_tools_for_api(tools)
            payload["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**payload)
        except openai.RateLimitError as e:
            logger.warning(f"Rate limited by OpenAI: {e}")
            raise ProviderError(
                f"OpenAI API error: 429 rate limited: {e}",
                provider=self.PROVIDER_NAME,
                status_code=429,
                error_type=ErrorType.RATE_LIMIT,
                cause=e,
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise ProviderError(
                f"OpenAI API error: request timed out: {e}",
                provider=self.PROVIDER_NAME,
                error_type=ErrorType.TIMEOUT,
                cause=e,
            )
        except openai.APIStatusError as e:
            logger.error(f"OpenAI API error: {e.status_code} {e}")
            raise ProviderError(
                f"OpenAI API error: {e.status_code} {e.message}",
                provider=self.PROVIDER_NAME,
                status_code=e.status_code,
                cause=e,
            )
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise ProviderError(
                f"OpenAI API error: {e}",
                provider=self.PROVIDER_NAME,
                cause=e,
            )

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> ProviderResponse:
        """Normalize a ChatCompletion object."""
        if not getattr(response, "choices", None):
            raise ProviderError(
                "OpenAI API error: malformed response (no choices)",
                provider=self.PROVIDER_NAME,
            )

        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in (message.tool_calls or [])
        ]

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        return ProviderResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=usage,
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request.

        Args:
            texts: List of texts to embed

        Returns:
            One embedding vector per input, in input order

        Raises:
            ConfigurationError: If no API key is configured
            ProviderError: On API errors
        """
        if not texts:
            return []
        if not self.is_configured():
            raise ConfigurationError(
                "OpenAI embeddings not configured: missing API key",
                missing_keys=["OPENAI_API_KEY"],
            )

        try:
            response = await self.client.embeddings.create(
                model=self.embedding_model,
                input=texts,
            )
        except openai.RateLimitError as e:
            logger.warning(f"Rate limited during embedding: {e}")
            raise ProviderError(
                f"Rate limited: {e}",
                provider=self.PROVIDER_NAME,
                status_code=429,
                error_type=ErrorType.RATE_LIMIT,
                cause=e,
            )
        except openai.APIError as e:
            logger.error(f"OpenAI embedding error: {e}")
            raise ProviderError(
                f"Embedding failed: {e}",
                provider=self.PROVIDER_NAME,
                cause=e,
            )

        return [list(item.embedding) for item in response.data]

    async def aclose(self) -> None:
        """Close the client."""
        if self.client is not None:
            await self.client.close()
