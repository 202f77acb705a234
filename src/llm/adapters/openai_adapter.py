# src/llm/adapters/openai_adapter.py — v2
"""OpenAI chat completions adapter.

``base_url`` points it at any OpenAI-compatible endpoint.
"""

from __future__ import annotations

import time
from typing import Any

from linklore.llm.base_client import BaseLLMClient
from linklore.llm.models import LLMResponse, Message


class OpenAIAdapter(BaseLLMClient):
    def __init__(
        self, model: str = "gpt-4o-mini", api_key: str = "", base_url: str | None = None
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url
        self._sdk_client: Any = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def _client(self) -> Any:
        if self._sdk_client is None:
            import openai

            self._sdk_client = openai.AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._sdk_client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        chat = [{"role": "system", "content": system}] if system else []
        chat += [{"role": m.role, "content": m.content} for m in messages]

        started = time.monotonic()
        resp = await self._client().chat.completions.create(
            model=self._model,
            messages=chat,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        elapsed_ms = int((time.monotonic() - started) * 1000)

        usage = resp.usage
        return LLMResponse(
            content=resp.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=resp.model or self._model,
            provider=self.provider_name,
            latency_ms=elapsed_ms,
            raw_response=resp,
        )
