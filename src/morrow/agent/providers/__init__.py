"""Provider adapter implementations."""

from .base import BaseProviderAdapter, ProviderConfig
from .anthropic import AnthropicAdapter
from .factory import PROVIDER_CLASSES, available_providers, create_provider
from .ollama import OllamaAdapter
from .openai import OpenAIAdapter

__all__ = [
    "BaseProviderAdapter",
    "ProviderConfig",
    "AnthropicAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "PROVIDER_CLASSES",
    "available_providers",
    "create_provider",
]
