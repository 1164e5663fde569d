"""
Port interfaces (abstract base classes) for the Morrow brain.

These define the contracts that adapters must implement.
Following the Ports & Adapters (Hexagonal) architecture pattern:
the orchestrator and the tools depend only on these, never on a
concrete SDK, database or HTTP API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .entities import Message, ProviderResponse, ToolDefinition


# ============================================
# LLM Provider Interface
# ============================================


class IProviderAdapter(ABC):
    """Interface for chat-completion backends (OpenAI, Ollama, Anthropic).

    Implementations normalize each API into a ``ProviderResponse`` so the
    orchestrator never needs to know which backend it is talking to.
    New backends are added by implementing this contract.
    """

    @abstractmethod
    async def send_message(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ProviderResponse:
        """Send an ordered message list and return the normalized result.

        Args:
            messages: Non-empty message sequence, conventionally starting
                with a system message
            tools: Tool definitions the model may call
            model: Model identifier override
            temperature: Sampling temperature override
            max_tokens: Token cap override

        Returns:
            ProviderResponse with content, tool calls, finish reason and usage

        Raises:
            ConfigurationError: If the adapter has no credential
            ProviderError: If the upstream call fails
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True if the adapter has what it needs to make calls."""
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return the provider identifier (e.g., 'openai')."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the default model identifier."""
        pass


# ============================================
# Embedding Provider Interface
# ============================================


class IEmbeddingProvider(ABC):
    """Interface for embedding generation, used by the vector store."""

    @property
    @abstractmethod
    def embedding_model(self) -> str:
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, returning one vector per input in order."""
        pass


# ============================================
# Collaborator Interfaces
# ============================================


class IAuditStore(ABC):
    """Persistence provider for audit documents."""

    @abstractmethod
    async def save_audit(
        self, audit: dict[str, Any], owner_id: Optional[str] = None
    ) -> str:
        """Persist an audit and return its storage id."""
        pass

    @abstractmethod
    async def get_audit(self, audit_id: str) -> Optional[dict[str, Any]]:
        """Return a stored audit, or None if it does not exist."""
        pass


class IAuditRunner(ABC):
    """Audit-execution collaborator the audit tools depend on."""

    @abstractmethod
    async def run_full_audit(
        self,
        business_name: str,
        website: Optional[str] = None,
        location: Optional[str] = None,
        industry: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> dict[str, Any]:
        pass


class INotificationProvider(ABC):
    """Email/SMS delivery.

    Implementations must tolerate missing credentials by returning a
    ``simulated`` result carrying the same payload.
    """

    @abstractmethod
    async def send(
        self,
        channel: str,
        target: str,
        link: Optional[str],
        message: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> dict[str, Any]:
        """Deliver a link (portal invite) or a free-form message.

        Args:
            channel: 'email' or 'sms'
            target: Email address or phone number
            link: Link to deliver with the default template
            message: Free-form body replacing the template
            subject: Email subject override
        """
        pass


class IPlacesProvider(ABC):
    """Business data lookups. Optional: absence degrades audits gracefully."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    async def find_business(
        self, name: str, location: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    async def find_competitors(
        self,
        place: dict[str, Any],
        business_type: Optional[str] = None,
        radius_meters: int = 5000,
    ) -> list[dict[str, Any]]:
        pass
