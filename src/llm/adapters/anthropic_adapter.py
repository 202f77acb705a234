# src/llm/adapters/anthropic_adapter.py — v2
"""Anthropic Messages API adapter."""

from __future__ import annotations

import logging
import time
from typing import Any

from linklore.llm.base_client import BaseLLMClient
from linklore.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)


def split_system(messages: list[Message], system: str | None) -> tuple[str | None, list[dict[str, str]]]:
    """Fold system-role messages into the top-level system prompt.

    The Messages API only accepts user/assistant turns in ``messages``.
    """
    parts = [system] if system else []
    turns: list[dict[str, str]] = []
    for m in messages:
        if m.role == "system":
            parts.append(m.content)
        else:
            turns.append({"role": m.role, "content": m.content})
    return ("\n\n".join(parts) or None), turns


class AnthropicAdapter(BaseLLMClient):
    def __init__(self, model: str = "claude-sonnet-4-20250514", api_key: str = "") -> None:
        self._model = model
        self._api_key = api_key
        self._sdk_client: Any = None

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def _client(self) -> Any:
        if self._sdk_client is None:
            import anthropic

            self._sdk_client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._sdk_client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        system_prompt, turns = split_system(messages, system)
        request: dict[str, Any] = {
            "model": self._model,
            "messages": turns,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system_prompt:
            request["system"] = system_prompt

        started = time.monotonic()
        resp = await self._client().messages.create(**request)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        text = "".join(
            block.text for block in resp.content if getattr(block, "type", None) == "text"
        )
        logger.debug(
            "anthropic %s: %d in / %d out in %dms",
            resp.model, resp.usage.input_tokens, resp.usage.output_tokens, elapsed_ms,
        )
        return LLMResponse(
            content=text,
            input_tokens=resp.usage.input_tokens,
            output_tokens=resp.usage.output_tokens,
            model=resp.model,
            provider=self.provider_name,
            latency_ms=elapsed_ms,
            raw_response=resp,
        )
