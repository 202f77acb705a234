# tests/unit/processing/test_unit_status.py — v1
"""Tests for processing/status.py — stage map writes, dependency resolution, self-heal."""

from __future__ import annotations

import asyncio
import gc

import pytest

from linklore.core.models import Evaluation, Summary
from linklore.processing.status import (
    STAGE_DEPENDENCIES,
    DependenciesNotReadyError,
    StatusStore,
)

from tests.conftest import good_scores, seed_document


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_sets_stage_and_timestamp(self, repository):
        await seed_document(repository, "d1")
        store = StatusStore(repository)

        await store.update_status("d1", "extract", "processing")

        status = await store.get_processing_status("d1")
        assert status.stages == {"extract": "processing"}
        assert status.last_processed_at is not None

    @pytest.mark.asyncio
    async def test_failure_records_error_and_completion_clears_it(self, repository):
        await seed_document(repository, "d1")
        store = StatusStore(repository)

        await store.update_status("d1", "summarize", "failed", error="model timeout")
        status = await store.get_processing_status("d1")
        assert status.stages["summarize"] == "failed"
        assert status.errors == {"summarize": "model timeout"}

        await store.update_status("d1", "summarize", "completed")
        status = await store.get_processing_status("d1")
        assert status.stages["summarize"] == "completed"
        assert status.errors == {}

    @pytest.mark.asyncio
    async def test_other_stages_are_preserved(self, repository):
        await seed_document(repository, "d1", stages={"extract": "completed"})
        store = StatusStore(repository)

        await store.update_status("d1", "summarize", "processing")

        status = await store.get_processing_status("d1")
        assert status.stages == {"extract": "completed", "summarize": "processing"}

    @pytest.mark.asyncio
    async def test_unknown_document_is_ignored(self, repository):
        store = StatusStore(repository)
        await store.update_status("ghost", "extract", "completed")
        assert await store.get_processing_status("ghost") is None

    @pytest.mark.asyncio
    async def test_concurrent_writes_serialize_and_release_locks(self, repository):
        await seed_document(repository, "d1")
        store = StatusStore(repository)

        await asyncio.gather(
            store.update_status("d1", "extract", "completed"),
            store.update_status("d1", "summarize", "processing"),
            store.update_status("d1", "evaluate", "pending"),
        )
        gc.collect()

        status = await store.get_processing_status("d1")
        assert status.stages == {
            "extract": "completed",
            "summarize": "processing",
            "evaluate": "pending",
        }
        assert len(store._locks) == 0


class TestDependencies:
    def test_dependency_table(self):
        assert STAGE_DEPENDENCIES["extract"] == ()
        assert STAGE_DEPENDENCIES["summarize"] == ("extract",)
        assert STAGE_DEPENDENCIES["evaluate"] == ("summarize",)
        assert STAGE_DEPENDENCIES["analyzeDisagreements"] == ("evaluate",)
        assert STAGE_DEPENDENCIES["trackConsensus"] == ("evaluate",)

    @pytest.mark.asyncio
    async def test_evaluate_on_fresh_document_reports_whole_chain(self, repository):
        await seed_document(repository, "d1", text=None)
        store = StatusStore(repository)

        check = await store.check_dependencies("d1", "evaluate")

        assert check.ready is False
        assert check.missing == ["summarize", "extract"]
        assert check.healed == []

    @pytest.mark.asyncio
    async def test_require_raises_with_missing_list(self, repository):
        await seed_document(repository, "d1", text=None)
        store = StatusStore(repository)

        with pytest.raises(DependenciesNotReadyError) as exc_info:
            await store.require_dependencies("d1", "evaluate")

        assert exc_info.value.missing == ["summarize", "extract"]
        assert "summarize" in str(exc_info.value)
        # Nothing was written.
        assert (await store.get_processing_status("d1")).stages == {}

    @pytest.mark.asyncio
    async def test_extract_text_heals_pending_status(self, repository):
        await seed_document(repository, "d1", stages={"extract": "pending"})
        store = StatusStore(repository)

        check = await store.check_dependencies("d1", "summarize")

        assert check.ready is True
        assert check.healed == ["extract"]
        status = await store.get_processing_status("d1")
        assert status.stages["extract"] == "completed"

    @pytest.mark.asyncio
    async def test_summary_row_heals_failed_summarize(self, repository):
        await seed_document(
            repository, "d1", stages={"extract": "completed", "summarize": "failed"}
        )
        await repository.save_summary(Summary(document_id="d1", title="T", overview="O"))
        store = StatusStore(repository)

        check = await store.check_dependencies("d1", "evaluate")

        assert check.ready is True
        assert check.healed == ["summarize"]
        assert (await store.get_processing_status("d1")).is_completed("summarize")

    @pytest.mark.asyncio
    async def test_evaluation_row_heals_for_analysis(self, repository):
        await seed_document(repository, "d1")
        await repository.save_evaluation(
            Evaluation(document_id="d1", discipline="default", scores=good_scores())
        )
        store = StatusStore(repository)

        check = await store.check_dependencies("d1", "trackConsensus")

        assert check.ready is True
        assert check.healed == ["evaluate"]

    @pytest.mark.asyncio
    async def test_completed_dependency_is_not_rechecked(self, repository):
        await seed_document(repository, "d1", text=None, stages={"extract": "completed"})
        store = StatusStore(repository)

        check = await store.check_dependencies("d1", "summarize")

        assert check.ready is True
        assert check.healed == []

    @pytest.mark.asyncio
    async def test_missing_document(self, repository):
        store = StatusStore(repository)
        check = await store.check_dependencies("ghost", "summarize")
        assert check.ready is False
        assert check.missing == ["summarize"]
