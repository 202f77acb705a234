# src/llm/embeddings/embedder_factory.py — v1
"""Factory: instantiate the embedding provider from configuration."""

from __future__ import annotations

from linklore.config.settings import Settings
from linklore.llm.embeddings.base_embedder import BaseEmbedder


class UnsupportedEmbeddingProviderError(ValueError):
    """Raised when an embedding provider is not registered."""


def create_embedder(settings: Settings) -> BaseEmbedder | None:
    """Instantiate the configured embedder; None when disabled."""
    provider = settings.embedding_provider
    if provider == "none":
        return None
    if provider == "openai":
        from linklore.llm.embeddings.openai_embedder import OpenAIEmbedder
        return OpenAIEmbedder(
            model=settings.embedding_model,
            api_key=settings.openai_api_key,
            dimensions=settings.embedding_dimensions,
        )
    raise UnsupportedEmbeddingProviderError(
        f"Unsupported embedding provider: {provider!r}"
    )
