# tests/unit/queue/test_unit_job_queue.py — v1
"""Tests for queue/jobs.py and queue/adapter.py — broker path, fallback path, priorities."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from linklore.queue import jobs
from linklore.queue.adapter import BrokerAdapter
from linklore.queue.broker import BrokerUnavailableError, InMemoryBroker
from linklore.queue.circuit_breaker import CircuitBreaker
from linklore.queue.fallback import FallbackExecutor
from linklore.queue.handlers import JobHandlerRegistry, UnknownJobError
from linklore.queue.jobs import JobQueue
from linklore.queue.models import FALLBACK_JOB_ID, JobOptions

from tests.conftest import seed_document


class DownBroker(InMemoryBroker):
    """Broker whose enqueue always fails, counting attempts."""

    def __init__(self) -> None:
        super().__init__()
        self.enqueue_calls = 0

    async def enqueue(self, name: str, data: dict[str, Any], options: JobOptions | None = None):
        self.enqueue_calls += 1
        raise BrokerUnavailableError("connection refused")


def _registry() -> tuple[JobHandlerRegistry, dict[str, AsyncMock]]:
    registry = JobHandlerRegistry()
    mocks = {name: AsyncMock(name=name) for name in jobs.ALL_JOBS}
    for name, mock in mocks.items():
        registry.register(name, mock)
    return registry, mocks


def _queue(broker, repository, settings, breaker=None):
    registry, mocks = _registry()
    breaker = breaker or CircuitBreaker()
    adapter = BrokerAdapter(broker, breaker) if broker is not None else None
    pool = FallbackExecutor(workers=2)
    queue = JobQueue(adapter, pool, registry, repository, settings)
    return queue, pool, mocks, breaker


class TestHandlerRegistry:
    def test_unknown_job_raises(self):
        with pytest.raises(UnknownJobError, match="Unknown job: nope"):
            JobHandlerRegistry().get("nope")

    def test_register_and_names(self):
        registry, _ = _registry()
        assert "extract" in registry
        assert registry.names == sorted(jobs.ALL_JOBS)


class TestBrokerPath:
    @pytest.mark.asyncio
    async def test_handle_carries_broker_id(self, repository, settings):
        broker = InMemoryBroker()
        queue, pool, mocks, _ = _queue(broker, repository, settings)

        handle = await queue.enqueue_extract("d1")

        assert handle.id != FALLBACK_JOB_ID
        assert handle.name == "extract"
        assert handle.data == {"document_id": "d1"}
        stored = await broker.get_job(handle.id)
        assert stored.options.priority == jobs.EXTRACT_PRIORITY
        assert stored.options.attempts == 1
        mocks["extract"].assert_not_awaited()
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_root_document_outranks_reply(self, repository, settings):
        await seed_document(repository, "root")
        await seed_document(repository, "reply", parent_id="root")
        broker = InMemoryBroker()
        queue, pool, _, _ = _queue(broker, repository, settings)

        root = await queue.enqueue_summarize("root")
        reply = await queue.enqueue_evaluate("reply")

        root_job = await broker.get_job(root.id)
        reply_job = await broker.get_job(reply.id)
        assert root_job.options.priority == jobs.ROOT_DOCUMENT_PRIORITY
        assert reply_job.options.priority == jobs.REPLY_DOCUMENT_PRIORITY
        assert root_job.options.attempts == settings.ai_retry_attempts
        assert root_job.options.backoff.delay_ms == settings.ai_retry_backoff_delay_ms
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_analysis_and_chat_priorities(self, repository, settings):
        broker = InMemoryBroker()
        queue, pool, _, _ = _queue(broker, repository, settings)

        handles = [
            await queue.enqueue_analyze_disagreements("t1", "d1"),
            await queue.enqueue_user_pair_analysis("t1", "alice"),
            await queue.enqueue_track_consensus("t1", "d1"),
            await queue.enqueue_moderation("m1", "r1"),
            await queue.enqueue_chat_analysis("r1"),
        ]
        priorities = [(await broker.get_job(h.id)).options.priority for h in handles]
        assert priorities == [
            jobs.ANALYSIS_PRIORITY,
            jobs.USER_PAIR_PRIORITY,
            jobs.ANALYSIS_PRIORITY,
            jobs.CHAT_PRIORITY,
            jobs.CHAT_PRIORITY,
        ]
        assert handles[1].data == {"topic_id": "t1", "user_id1": "alice", "user_id2": None}
        assert handles[3].data == {"message_id": "m1", "room_id": "r1"}
        await pool.shutdown()

    def test_priority_ladder(self):
        assert (
            jobs.ROOT_DOCUMENT_PRIORITY
            > jobs.REPLY_DOCUMENT_PRIORITY
            > jobs.ANALYSIS_PRIORITY
            > jobs.USER_PAIR_PRIORITY
            > jobs.CHAT_PRIORITY
            >= jobs.EXTRACT_PRIORITY
        )


class TestFallbackPath:
    @pytest.mark.asyncio
    async def test_broker_failure_returns_sentinel_and_runs_once(self, repository, settings):
        broker = DownBroker()
        queue, pool, mocks, breaker = _queue(broker, repository, settings)

        handle = await queue.enqueue_extract("d1")
        await pool.drain()

        assert handle.id == FALLBACK_JOB_ID
        assert handle.is_fallback
        assert handle.name == "extract"
        assert handle.data == {"document_id": "d1"}
        mocks["extract"].assert_awaited_once_with({"document_id": "d1"})
        assert breaker.is_open
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_open_breaker_skips_broker(self, repository, settings):
        broker = DownBroker()
        queue, pool, mocks, _ = _queue(broker, repository, settings)

        await queue.enqueue_extract("d1")
        await queue.enqueue_extract("d2")
        await queue.enqueue_chat_analysis("r1")
        await pool.drain()

        assert broker.enqueue_calls == 1
        assert mocks["extract"].await_count == 2
        mocks["chatAnalysis"].assert_awaited_once_with({"room_id": "r1"})
        assert queue.broker_available is False
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_no_adapter_means_fallback(self, repository, settings):
        queue, pool, mocks, _ = _queue(None, repository, settings)

        handle = await queue.enqueue_moderation("m1", "r1")
        await pool.drain()

        assert handle.id == FALLBACK_JOB_ID
        mocks["moderate"].assert_awaited_once_with({"message_id": "m1", "room_id": "r1"})
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_reset_restores_broker_path(self, repository, settings):
        broker = InMemoryBroker()
        breaker = CircuitBreaker()
        queue, pool, mocks, _ = _queue(broker, repository, settings, breaker)

        breaker.record_failure("earlier outage")
        assert (await queue.enqueue_extract("d1")).id == FALLBACK_JOB_ID

        breaker.reset()
        handle = await queue.enqueue_extract("d2")
        await pool.drain()

        assert handle.id != FALLBACK_JOB_ID
        assert await broker.get_job(handle.id) is not None
        assert mocks["extract"].await_count == 1
        await pool.shutdown()
