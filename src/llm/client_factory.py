# src/llm/client_factory.py — v2
"""Build the provider client the AI router sits on, from settings."""

from __future__ import annotations

import importlib
import logging
from typing import NamedTuple

from linklore.config.settings import Settings
from linklore.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)


class ProviderEntry(NamedTuple):
    module: str
    class_name: str
    key_setting: str  # Settings attribute holding the API key


_PROVIDERS: dict[str, ProviderEntry] = {
    "anthropic": ProviderEntry(
        "linklore.llm.adapters.anthropic_adapter", "AnthropicAdapter", "anthropic_api_key"
    ),
    "openai": ProviderEntry(
        "linklore.llm.adapters.openai_adapter", "OpenAIAdapter", "openai_api_key"
    ),
}


class UnsupportedProviderError(ValueError):
    """Provider name has no registered adapter."""


def available_providers() -> list[str]:
    return sorted(_PROVIDERS)


def create_llm_client(
    settings: Settings,
    provider: str | None = None,
    model: str | None = None,
) -> BaseLLMClient:
    """Instantiate the adapter for `provider` (default: settings').

    The adapter module is imported on demand so an unused provider SDK
    never has to be installed.

    Raises:
        UnsupportedProviderError: Unknown provider name.
    """
    name = provider or settings.llm_default_provider
    entry = _PROVIDERS.get(name)
    if entry is None:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider {name!r} (known: {', '.join(available_providers())})"
        )

    adapter_cls = getattr(importlib.import_module(entry.module), entry.class_name)
    chosen_model = model or settings.llm_default_model
    logger.debug("LLM client: %s/%s", name, chosen_model)
    return adapter_cls(model=chosen_model, api_key=getattr(settings, entry.key_setting, ""))
