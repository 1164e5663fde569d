"""
Base Provider Adapter Implementation.

Provides common functionality for all chat-completion backends.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..domain.entities import Message, ProviderResponse, ToolDefinition
from ..domain.errors import ConfigurationError
from ..domain.ports import IProviderAdapter

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for provider adapters.

    Attributes:
        api_key: API key for the provider (None = not configured)
        model: Default model name
        embedding_model: Model for embeddings (if the backend has one)
        base_url: Optional custom base URL
        timeout: Request timeout in seconds
        temperature: Default temperature
        max_tokens: Default max tokens
    """

    api_key: Optional[str] = None
    model: Optional[str] = None
    embedding_model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 60.0
    temperature: float = 0.7
    max_tokens: int = 2000
    extra: dict[str, Any] = field(default_factory=dict)


class BaseProviderAdapter(IProviderAdapter, ABC):
    """Base class for provider adapter implementations.

    Adapters make exactly one upstream attempt per ``send_message`` call.
    Retry policy, if any, belongs to the caller.
    """

    DEFAULT_MODEL = ""
    PROVIDER_NAME = ""
    DISPLAY_NAME = ""

    def __init__(self, config: ProviderConfig):
        """Initialize the adapter.

        Args:
            config: Provider configuration
        """
        self.config = config

    @property
    def model_name(self) -> str:
        """Return the default model name."""
        return self.config.model or self.DEFAULT_MODEL

    def get_name(self) -> str:
        return self.PROVIDER_NAME

    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def _require_configured(self, missing: str) -> None:
        """Raise ConfigurationError when the adapter cannot make calls."""
        if not self.is_configured():
            raise ConfigurationError(
                f"{self.DISPLAY_NAME} adapter not configured: missing {missing}",
                missing_keys=[missing],
            )

    def _resolve_options(
        self,
        model: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> tuple[str, float, int]:
        """Apply adapter defaults to per-call options."""
        return (
            model or self.model_name,
            self.config.temperature if temperature is None else temperature,
            max_tokens or self.config.max_tokens,
        )

    def _format_tools_for_api(
        self, tools: list[ToolDefinition]
    ) -> list[dict[str, Any]]:
        """Convert tool definitions to API format.

        Subclasses override for provider-specific formatting.
        """
        return [tool.to_openai_format() for tool in tools]

    @abstractmethod
    async def send_message(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderResponse:
        """Send messages. Must be implemented by subclasses."""
        pass

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
