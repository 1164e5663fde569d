"""
Ollama Provider Adapter.

Implements the provider contract on Ollama's local ``/api/chat`` endpoint
(non-streaming) and ``/api/embeddings`` for locally-hosted models.
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
from ..domain.errors import ConfigurationError, ProviderError
from ..domain.ports import IEmbeddingProvider
from .base import BaseProviderAdapter, ProviderConfig

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring httpx if not used
try:
    import httpx

    OLLAMA_AVAILABLE = True
except ImportError:
    OLLAMA_AVAILABLE = False
    httpx = None


class OllamaAdapter(BaseProviderAdapter, IEmbeddingProvider):
    """Ollama local LLM adapter.

    Ollama needs no credential; it counts as configured once a base URL
    has been supplied.

    Usage:
        config = ProviderConfig(
            model="qwen3:4b",
            base_url="http://localhost:11434",
        )
        adapter = OllamaAdapter(config)

        response = await adapter.send_message(messages, tools)
    """

    DEFAULT_MODEL = "qwen3:4b"
    DEFAULT_BASE_URL = "http://localhost:11434"
    DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
    PROVIDER_NAME = "ollama"
    DISPLAY_NAME = "Ollama"

    def __init__(self, config: ProviderConfig, client: Optional[Any] = None):
        """Initialize the Ollama adapter.

        Args:
            config: Provider configuration
            client: Optional pre-built httpx.AsyncClient (used in tests)

        Raises:
            ImportError: If httpx package is not installed
        """
        if not OLLAMA_AVAILABLE:
            raise ImportError(
                "httpx package is required for OllamaAdapter. "
                "Install with: pip install httpx"
            )

        super().__init__(config)

        self.base_url = config.base_url or self.DEFAULT_BASE_URL
        self._embedding_model = config.embedding_model or self.DEFAULT_EMBEDDING_MODEL

        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.timeout,
        )

    @property
    def embedding_model(self) -> str:
        return self._embedding_model

    def is_configured(self) -> bool:
        return bool(self.config.base_url)

    def _format_messages_for_api(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert messages to Ollama format.

        Tool traffic is flattened into plain text so that models without
        native tool support still see the full exchange.
        """
        api_messages = []

        for msg in messages:
            if msg.role == MessageRole.TOOL:
                # Tool results as user messages
                api_messages.append({
                    "role": "user",
                    "content": f"Tool result ({msg.name}): {msg.content}",
                })
            elif msg.role == MessageRole.ASSISTANT and msg.tool_calls:
                tool_calls_text = "\n".join(
                    f"Calling {tc.name} with {json.dumps(tc.parse_arguments())}"
                    for tc in msg.tool_calls
                )
                content = msg.content or ""
                if content:
                    content = f"{content}\n\n{tool_calls_text}"
                else:
                    content = tool_calls_text
                api_messages.append({
                    "role": "assistant",
                    "content": content,
                })
            else:
                api_messages.append({
                    "role": msg.role.value,
                    "content": msg.content or "",
                })

        return api_messages

    async def send_message(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderResponse:
        """Run one non-streaming chat call against Ollama.

        Raises:
            ConfigurationError: If no base URL is configured
            ProviderError: On HTTP, timeout, connection or decoding errors
        """
        self._require_configured("base URL")
        model, temperature, max_tokens = self._resolve_options(model, temperature, max_tokens)

        payload: dict[str, Any] = {
            "model": model,
            "messages": self._format_messages_for_api(messages),
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

        if tools:
            payload["tools"] = self._format_tools_for_api(tools)

        try:
            response = await self.client.post("/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            error_msg = f"Ollama API error: {e.response.status_code} - {e.response.text}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg,
                provider=self.PROVIDER_NAME,
                status_code=e.response.status_code,
                cause=e,
            )
        except httpx.TimeoutException as e:
            error_msg = f"Ollama request timeout: {str(e)}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg,
                provider=self.PROVIDER_NAME,
                error_type=ErrorType.TIMEOUT,
                cause=e,
            )
        except httpx.RequestError as e:
            error_msg = f"Ollama connection error: {str(e)}"
            logger.error(error_msg)
            raise ProviderError(
                error_msg,
                provider=self.PROVIDER_NAME,
                error_type=ErrorType.FATAL,
                cause=e,
            )
        except ValueError as e:
            raise ProviderError(
                f"Ollama API error: malformed response: {e}",
                provider=self.PROVIDER_NAME,
                cause=e,
            )

        return self._parse_response(data)

    def _parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        message = data.get("message") or {}

        tool_calls = []
        for idx, tool_call in enumerate(message.get("tool_calls") or []):
            function = tool_call.get("function") or {}
            name = function.get("name")
            if not name:
                continue
            arguments = function.get("arguments", {})
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            tool_calls.append(
                ToolCall(
                    id=tool_call.get("id") or f"ollama_call_{idx}",
                    name=name,
                    arguments=arguments,
                )
            )

        prompt_tokens = int(data.get("prompt_eval_count") or 0)
        completion_tokens = int(data.get("eval_count") or 0)

        return ProviderResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            finish_reason=data.get("done_reason") or ("tool_calls" if tool_calls else "stop"),
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings, one request per text.

        Raises:
            ConfigurationError: If no base URL is configured
            ProviderError: If embedding generation fails
        """
        if not self.is_configured():
            raise ConfigurationError(
                "Ollama embeddings not configured: missing base URL",
                missing_keys=["OLLAMA_BASE_URL"],
            )

        vectors = []
        for text in texts:
            try:
                response = await self.client.post(
                    "/api/embeddings",
                    json={"model": self.embedding_model, "prompt": text},
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise ProviderError(
                    f"Ollama embedding API error: {e.response.status_code} - {e.response.text}",
                    provider=self.PROVIDER_NAME,
                    status_code=e.response.status_code,
                    cause=e,
                )
            except httpx.RequestError as e:
                raise ProviderError(
                    f"Ollama connection error: {str(e)}",
                    provider=self.PROVIDER_NAME,
                    error_type=ErrorType.FATAL,
                    cause=e,
                )
            except ValueError as e:
                raise ProviderError(
                    f"Ollama embedding API error: malformed response: {e}",
                    provider=self.PROVIDER_NAME,
                    cause=e,
                )

            embedding = data.get("embedding") if isinstance(data, dict) else None
            if not embedding:
                raise ProviderError(
                    "No embedding returned from Ollama",
                    provider=self.PROVIDER_NAME,
                )
            vectors.append(list(embedding))

        return vectors

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
