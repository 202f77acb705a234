# tests/unit/queue/test_unit_worker.py — v1
"""Tests for queue/worker.py — reserve, dispatch, complete/fail bookkeeping."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from linklore.queue.broker import InMemoryBroker
from linklore.queue.handlers import JobHandlerRegistry
from linklore.queue.models import Backoff, JobOptions
from linklore.queue.worker import JobWorker


def _worker(broker: InMemoryBroker, **handlers: Any) -> JobWorker:
    registry = JobHandlerRegistry()
    for name, fn in handlers.items():
        registry.register(name, fn)
    return JobWorker(broker, registry, concurrency=2, poll_interval_s=0.01)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_empty_queue(self, broker):
        worker = _worker(broker)
        assert await worker.run_once() is False
        assert worker.stats.processed == 0

    @pytest.mark.asyncio
    async def test_success_completes_job(self, broker):
        seen: list[dict[str, Any]] = []

        async def extract(data: dict[str, Any]) -> None:
            seen.append(data)

        worker = _worker(broker, extract=extract)
        job = await broker.enqueue("extract", {"document_id": "d1"})

        assert await worker.run_once() is True
        assert seen == [{"document_id": "d1"}]
        stored = await broker.get_job(job.id)
        assert stored.status == "completed"
        assert worker.stats.succeeded == 1

    @pytest.mark.asyncio
    async def test_failure_with_attempts_left_is_retried(self, broker):
        async def summarize(data: dict[str, Any]) -> None:
            raise RuntimeError("model timeout")

        worker = _worker(broker, summarize=summarize)
        options = JobOptions(attempts=3, backoff=Backoff(type="fixed", delay_ms=1000))
        job = await broker.enqueue("summarize", {"document_id": "d1"}, options)

        await worker.run_once()

        stored = await broker.get_job(job.id)
        assert stored.status == "delayed"
        assert stored.failed_reason == "model timeout"
        assert worker.stats.retrying == 1

    @pytest.mark.asyncio
    async def test_failure_without_attempts_left_fails(self, broker):
        async def extract(data: dict[str, Any]) -> None:
            raise ValueError("unsupported format")

        worker = _worker(broker, extract=extract)
        job = await broker.enqueue("extract", {"document_id": "d1"})

        await worker.run_once()

        stored = await broker.get_job(job.id)
        assert stored.status == "failed"
        assert worker.stats.failed == 1

    @pytest.mark.asyncio
    async def test_unknown_job_fails(self, broker):
        worker = _worker(broker)
        job = await broker.enqueue("mystery", {})

        assert await worker.run_once() is True

        stored = await broker.get_job(job.id)
        assert stored.status == "failed"
        assert "Unknown job: mystery" in stored.failed_reason

    @pytest.mark.asyncio
    async def test_higher_priority_runs_first(self, broker):
        order: list[str] = []

        async def record(data: dict[str, Any]) -> None:
            order.append(data["document_id"])

        worker = _worker(broker, summarize=record)
        await broker.enqueue("summarize", {"document_id": "reply"}, JobOptions(priority=10))
        await broker.enqueue("summarize", {"document_id": "root"}, JobOptions(priority=20))

        await worker.run_once()
        await worker.run_once()

        assert order == ["root", "reply"]


class TestRunForever:
    @pytest.mark.asyncio
    async def test_processes_until_stopped(self, broker):
        done = asyncio.Event()
        seen: list[str] = []

        async def chat(data: dict[str, Any]) -> None:
            seen.append(data["room_id"])
            if len(seen) == 3:
                done.set()

        worker = _worker(broker, chatAnalysis=chat)
        for room in ("r1", "r2", "r3"):
            await broker.enqueue("chatAnalysis", {"room_id": room})

        runner = asyncio.create_task(worker.run_forever())
        await asyncio.wait_for(done.wait(), timeout=2)
        worker.stop()
        stats = await asyncio.wait_for(runner, timeout=2)

        assert sorted(seen) == ["r1", "r2", "r3"]
        assert stats.succeeded == 3
        assert stats.as_dict()["processed"] == 3
