"""
Provider selection.

The set of backends is closed: each variant name maps to one adapter
class and one way of reading its settings. Call sites only ever see
``IProviderAdapter``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..config import MorrowSettings
from ..domain.errors import ConfigurationError
from .anthropic import AnthropicAdapter
from .base import BaseProviderAdapter, ProviderConfig
from .ollama import OllamaAdapter
from .openai import OpenAIAdapter

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[BaseProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "ollama": OllamaAdapter,
    "anthropic": AnthropicAdapter,
}


def provider_config(
    name: str, settings: MorrowSettings, model: Optional[str] = None
) -> ProviderConfig:
    """Build the ProviderConfig for a variant from process settings."""
    if name == "openai":
        return ProviderConfig(
            api_key=settings.openai_api_key,
            model=model,
            embedding_model=settings.embedding_model,
        )
    if name == "anthropic":
        return ProviderConfig(api_key=settings.anthropic_api_key, model=model)
    if name == "ollama":
        return ProviderConfig(model=model, base_url=settings.ollama_base_url)
    raise ConfigurationError(
        f"Unknown provider: {name}",
        details={"available": sorted(PROVIDER_CLASSES)},
    )


def create_provider(
    name: str, settings: MorrowSettings, model: Optional[str] = None
) -> BaseProviderAdapter:
    """Instantiate a provider adapter by variant name.

    Args:
        name: One of 'openai', 'ollama', 'anthropic'
        settings: Process settings holding credentials
        model: Default model override

    Raises:
        ConfigurationError: If the name is not a known variant
    """
    key = (name or "").lower()
    if key not in PROVIDER_CLASSES:
        raise ConfigurationError(
            f"Unknown provider: {name}",
            details={"available": sorted(PROVIDER_CLASSES)},
        )

    config = provider_config(key, settings, model=model or settings.model)
    adapter = PROVIDER_CLASSES[key](config)
    logger.info(
        f"Created {key} provider (model={adapter.model_name}, "
        f"configured={adapter.is_configured()})"
    )
    return adapter


def available_providers(settings: MorrowSettings) -> list[dict[str, Any]]:
    """Describe every variant and whether its settings are present."""
    configured = {
        "openai": bool(settings.openai_api_key),
        "ollama": bool(settings.ollama_base_url),
        "anthropic": bool(settings.anthropic_api_key),
    }
    return [
        {
            "id": name,
            "default_model": cls.DEFAULT_MODEL,
            "configured": configured[name],
            "default": name == settings.provider,
        }
        for name, cls in PROVIDER_CLASSES.items()
    ]
