# tests/conftest.py — v2
"""Shared test fixtures for the unit tests.

Provides settings without a .env file, an in-memory repository and broker,
a scripted AI router keyed by task, and helpers to seed documents.
No external services: every collaborator is in-process.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from linklore.config.settings import Settings
from linklore.core.models import (
    DimensionScore,
    Document,
    Evaluation,
    ProcessingStatus,
    Summary,
    Topic,
)
from linklore.llm.base_client import BaseLLMClient
from linklore.llm.models import LLMResponse, Message
from linklore.queue.broker import InMemoryBroker
from linklore.storage.memory_repository import InMemoryRepository

BASE_TIME = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)

Reply = str | Exception | Callable[[str], str]


def make_response(content: str) -> LLMResponse:
    return LLMResponse(
        content=content,
        input_tokens=100,
        output_tokens=50,
        model="claude-sonnet-4-20250514",
        provider="anthropic",
        latency_ms=5,
    )


class ScriptedRouter:
    """Stand-in for AIRouter: replies per task, records every call."""

    def __init__(self, replies: dict[str, Reply] | None = None) -> None:
        self.replies: dict[str, Reply] = dict(replies or {})
        self.calls: list[dict[str, Any]] = []

    def calls_for(self, task: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["task"] == task]

    async def complete(
        self,
        task: str,
        prompt: str,
        estimated_cost_cents: int,
        user_id: str | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        self.calls.append({
            "task": task,
            "prompt": prompt,
            "estimated_cost_cents": estimated_cost_cents,
            "user_id": user_id,
        })
        reply = self.replies.get(task, "{}")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(prompt)
        return make_response(reply)


class ScriptedClient(BaseLLMClient):
    """BaseLLMClient returning a fixed text (or raising)."""

    def __init__(self, content: str | Exception = "{}") -> None:
        self.content = content
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        self.calls.append({
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        if isinstance(self.content, Exception):
            raise self.content
        return make_response(self.content)

    @property
    def provider_name(self) -> str:
        return "scripted"


# === FIXTURES: Configuration and storage ===


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any .env file."""
    return Settings(
        _env_file=None,
        broker_backend="memory",
        repository_backend="memory",
        embedding_provider="none",
        worker_poll_interval_s=0.01,
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def router() -> ScriptedRouter:
    return ScriptedRouter()


# === HELPERS: Seeding ===


def summary_json(title: str = "On tides", claims: list[str] | None = None) -> str:
    return json.dumps({
        "title": title,
        "overview": "An essay about tides.",
        "structure": {"sections": ["intro"], "arguments": ["a1"], "logic": "linear"},
        "claims": claims if claims is not None else ["The moon drives tides."],
        "keywords": ["tides"],
    })


def evaluation_json(scores: dict[str, Any] | None = None, verdict: str = "solid") -> str:
    scores = scores or {
        "structure": 7, "logic": 7, "viewpoint": 7, "evidence": 7, "citation": 5,
    }
    return json.dumps({
        "scores": scores,
        "reasoning": {d: f"{d} reasoning" for d in scores},
        "verdict": verdict,
    })


def good_scores(**overrides: float) -> dict[str, DimensionScore]:
    values = {"structure": 7.0, "logic": 7.0, "viewpoint": 7.0, "evidence": 7.0, "citation": 5.0}
    values.update(overrides)
    return {d: DimensionScore(score=v) for d, v in values.items()}


async def seed_document(
    repository: InMemoryRepository,
    doc_id: str,
    topic_id: str = "t1",
    author_id: str = "alice",
    parent_id: str | None = None,
    text: str | None = "Some extracted text.",
    stages: dict[str, str] | None = None,
    minutes: int = 0,
    **fields: Any,
) -> Document:
    if await repository.get_topic(topic_id) is None:
        await repository.save_topic(Topic(id=topic_id, title="Topic"))
    doc = Document(
        id=doc_id,
        topic_id=topic_id,
        author_id=author_id,
        parent_id=parent_id,
        extracted_text=text,
        processing_status=ProcessingStatus(stages=stages or {}),
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **fields,
    )
    await repository.save_document(doc)
    return doc


async def seed_analyzed(
    repository: InMemoryRepository,
    doc_id: str,
    claims: list[str] | None = None,
    scores: dict[str, DimensionScore] | None = None,
    **doc_fields: Any,
) -> Document:
    """A document with text, summary and evaluation all completed."""
    doc = await seed_document(
        repository,
        doc_id,
        stages={"extract": "completed", "summarize": "completed", "evaluate": "completed"},
        **doc_fields,
    )
    await repository.save_summary(Summary(
        document_id=doc_id,
        title=f"Title {doc_id}",
        overview=f"Overview of {doc_id}",
        claims=claims if claims is not None else [f"claim of {doc_id}"],
    ))
    await repository.save_evaluation(Evaluation(
        document_id=doc_id,
        discipline="default",
        scores=scores or good_scores(),
    ))
    return doc
