# tests/unit/queue/test_unit_fallback.py — v1
"""Tests for queue/fallback.py — bounded pool, at-most-once, drain."""

from __future__ import annotations

import asyncio

import pytest

from linklore.queue.fallback import FallbackExecutor, FallbackShutdownError


class TestFallbackExecutor:
    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            FallbackExecutor(workers=0)

    @pytest.mark.asyncio
    async def test_runs_submitted_work_once(self):
        pool = FallbackExecutor(workers=2)
        seen: list[dict] = []

        async def job(payload):
            seen.append(payload)

        await pool.run_async(job, {"document_id": "d1"}, name="extract")
        await pool.drain()
        assert seen == [{"document_id": "d1"}]
        assert pool.stats.submitted == 1
        assert pool.stats.succeeded == 1
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        pool = FallbackExecutor(workers=2, queue_size=10)
        active = 0
        peak = 0
        release = asyncio.Event()

        async def job(payload):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await release.wait()
            active -= 1

        for i in range(5):
            await pool.submit("summarize", job, {"i": i})
        await asyncio.sleep(0.05)
        assert peak == 2
        release.set()
        await pool.drain()
        assert pool.stats.succeeded == 5
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised_or_retried(self):
        pool = FallbackExecutor(workers=1)
        calls = 0

        async def job(payload):
            nonlocal calls
            calls += 1
            raise RuntimeError("model down")

        await pool.run_async(job, {}, name="evaluate")
        await pool.drain()
        assert calls == 1
        assert pool.stats.failed == 1
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_nested_submit_does_not_deadlock(self):
        pool = FallbackExecutor(workers=1, queue_size=1)
        done: list[str] = []

        async def leaf(payload):
            done.append(payload["name"])

        async def parent(payload):
            await pool.submit("child", leaf, {"name": "b"})
            await pool.submit("child", leaf, {"name": "c"})
            done.append("a")

        await pool.submit("parent", parent, {})
        await asyncio.wait_for(pool.drain(), timeout=2)
        assert sorted(done) == ["a", "b", "c"]
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_drains_pending_work(self):
        pool = FallbackExecutor(workers=1)
        done: list[int] = []

        async def job(payload):
            await asyncio.sleep(0.01)
            done.append(payload["i"])

        for i in range(3):
            await pool.submit("job", job, {"i": i})
        assert await pool.shutdown(timeout=2) is True
        assert done == [0, 1, 2]
        assert pool.running is False

    @pytest.mark.asyncio
    async def test_shutdown_times_out(self):
        pool = FallbackExecutor(workers=1)

        async def stuck(payload):
            await asyncio.sleep(10)

        await pool.submit("stuck", stuck, {})
        await asyncio.sleep(0)
        assert await pool.shutdown(timeout=0.05) is False

    @pytest.mark.asyncio
    async def test_submit_after_shutdown_raises(self):
        pool = FallbackExecutor(workers=1)
        await pool.shutdown()

        async def job(payload):
            pass

        with pytest.raises(FallbackShutdownError):
            await pool.submit("late", job, {})

    @pytest.mark.asyncio
    async def test_payload_is_copied(self):
        pool = FallbackExecutor(workers=1)
        seen: list[dict] = []

        async def job(payload):
            seen.append(payload)

        payload = {"document_id": "d1"}
        await pool.submit("extract", job, payload)
        payload["document_id"] = "changed"
        await pool.drain()
        assert seen == [{"document_id": "d1"}]
        await pool.shutdown()
