# src/llm/base_client.py — v2
"""Provider client interface used behind the AI router.

Adapters implement ``complete`` over a message list. Stage code never
talks to a client directly: the router sends a single user prompt through
``complete_prompt``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from linklore.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """One configured provider and model."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Chat completion over `messages`."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """anthropic, openai, ..."""

    async def complete_prompt(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        return await self.complete(
            [Message(role="user", content=prompt)],
            system=system,
            max_tokens=max_tokens,
            temperature=temperature,
        )
