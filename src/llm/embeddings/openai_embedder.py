# src/llm/embeddings/openai_embedder.py — v2
"""OpenAI embeddings (text-embedding-3-small / -large).

The text-embedding-3 models accept a ``dimensions`` argument that shortens
the returned vectors; older models always return their native size.
"""

from __future__ import annotations

import logging
from typing import Any

from linklore.llm.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class OpenAIEmbedder(BaseEmbedder):
    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str = "",
        dimensions: int | None = 1536,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._dimensions = dimensions
        self._sdk_client: Any = None

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    def _client(self) -> Any:
        if self._sdk_client is None:
            import openai

            self._sdk_client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._sdk_client

    def request_args(self, texts: list[str]) -> dict[str, Any]:
        args: dict[str, Any] = {"input": texts, "model": self._model}
        if self._dimensions and self._model.startswith("text-embedding-3"):
            args["dimensions"] = self._dimensions
        return args

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        response = await self._client().embeddings.create(**self.request_args(texts))
        logger.debug("Embedded %d texts with %s", len(texts), self._model)
        return [item.embedding for item in response.data]
