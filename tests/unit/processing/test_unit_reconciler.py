# tests/unit/processing/test_unit_reconciler.py — v1
"""Tests for processing/reconciler.py — re-deriving stalled document chains."""

from __future__ import annotations

from datetime import timedelta

import pytest

from linklore.core.models import Summary
from linklore.processing.reconciler import Reconciler
from linklore.processing.status import StatusStore
from linklore.queue.adapter import BrokerAdapter
from linklore.queue.circuit_breaker import CircuitBreaker
from linklore.queue.fallback import FallbackExecutor
from linklore.queue.handlers import JobHandlerRegistry
from linklore.queue.jobs import JobQueue

from tests.conftest import BASE_TIME, seed_analyzed, seed_document


@pytest.fixture
def reconciler(repository, settings, broker) -> Reconciler:
    queue = JobQueue(
        BrokerAdapter(broker, CircuitBreaker()),
        FallbackExecutor(workers=1),
        JobHandlerRegistry(),
        repository,
        settings,
    )
    return Reconciler(repository, StatusStore(repository), queue)


class TestPlanDocument:
    @pytest.mark.asyncio
    async def test_missing_text_enqueues_extract(self, repository, reconciler):
        doc = await seed_document(repository, "d1", text=None)
        action = await reconciler.plan_document(doc)
        assert (action.stage, action.kind) == ("extract", "enqueue")

    @pytest.mark.asyncio
    async def test_text_without_summary_enqueues_summarize(self, repository, reconciler):
        doc = await seed_document(repository, "d1", stages={"extract": "completed"})
        action = await reconciler.plan_document(doc)
        assert (action.stage, action.kind) == ("summarize", "enqueue")

    @pytest.mark.asyncio
    async def test_summary_with_stale_status_is_repaired(self, repository, reconciler):
        doc = await seed_document(repository, "d1", stages={"summarize": "processing"})
        await repository.save_summary(Summary(document_id="d1", title="T", overview="O"))
        action = await reconciler.plan_document(doc)
        assert (action.stage, action.kind) == ("summarize", "repair")

    @pytest.mark.asyncio
    async def test_processing_stage_is_skipped(self, repository, reconciler):
        doc = await seed_document(repository, "d1", stages={"summarize": "processing"})
        action = await reconciler.plan_document(doc)
        assert (action.kind, action.reason) == ("skip", "processing")

    @pytest.mark.asyncio
    async def test_processing_stage_resubmitted_once_stalled(self, repository, reconciler):
        doc = await seed_document(repository, "d1", stages={"extract": "completed"})
        doc.processing_status.stages["summarize"] = "processing"
        doc.processing_status.last_processed_at = BASE_TIME

        fresh = Reconciler(
            repository, reconciler._status, reconciler._jobs,
            stalled_after_s=600, clock=lambda: BASE_TIME + timedelta(minutes=5),
        )
        stale = Reconciler(
            repository, reconciler._status, reconciler._jobs,
            stalled_after_s=600, clock=lambda: BASE_TIME + timedelta(minutes=11),
        )

        assert (await fresh.plan_document(doc)).kind == "skip"
        action = await stale.plan_document(doc)
        assert (action.stage, action.kind, action.reason) == (
            "summarize", "enqueue", "stalled in processing"
        )

    @pytest.mark.asyncio
    async def test_failed_stage_needs_include_failed(self, repository, reconciler):
        doc = await seed_document(repository, "d1", text=None, stages={"extract": "failed"})
        assert (await reconciler.plan_document(doc)).kind == "skip"
        action = await reconciler.plan_document(doc, include_failed=True)
        assert action.kind == "enqueue"

    @pytest.mark.asyncio
    async def test_finished_document_needs_nothing(self, repository, reconciler):
        doc = await seed_analyzed(repository, "d1")
        assert await reconciler.plan_document(doc) is None


class TestRun:
    @pytest.mark.asyncio
    async def test_sweep_enqueues_and_repairs(self, repository, reconciler, broker):
        await seed_document(repository, "d1", text=None, minutes=0)
        await seed_document(repository, "d2", stages={"summarize": "failed"}, minutes=1)
        await repository.save_summary(Summary(document_id="d2", title="T", overview="O"))
        await seed_analyzed(repository, "d3", minutes=2)

        report = await reconciler.run()

        assert report.scanned == 3
        assert [(a.document_id, a.stage) for a in report.enqueued] == [("d1", "extract")]
        assert [(a.document_id, a.stage) for a in report.repaired] == [("d2", "summarize")]
        job = await broker.get_job(report.enqueued[0].job_id)
        assert job.name == "extract"
        d2 = await repository.get_document("d2")
        assert d2.processing_status.is_completed("summarize")

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, repository, reconciler, broker):
        await seed_document(repository, "d1", text=None)

        report = await reconciler.run(dry_run=True)

        assert len(report.enqueued) == 1
        assert report.enqueued[0].job_id is None
        assert (await broker.counts())["waiting"] == 0

    @pytest.mark.asyncio
    async def test_limit_bounds_actions(self, repository, reconciler):
        for i in range(5):
            await seed_document(repository, f"d{i}", text=None, minutes=i)

        report = await reconciler.run(limit=2)

        assert [a.document_id for a in report.enqueued] == ["d0", "d1"]
