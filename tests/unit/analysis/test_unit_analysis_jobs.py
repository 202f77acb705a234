# tests/unit/analysis/test_unit_analysis_jobs.py — v1
"""Tests for analysis/jobs.py — payload binding and stage status tracking."""

from __future__ import annotations

import pytest

from linklore.analysis.jobs import CONSENSUS_STAGE, DISAGREEMENTS_STAGE, AnalysisJobs
from linklore.core.models import TopicConsensusSnapshot
from linklore.processing.status import StatusStore

from tests.conftest import seed_analyzed


class FakeDisagreements:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def analyze_disagreements(self, topic_id, new_document_id=None):
        self.calls.append((topic_id, new_document_id))
        if self.error is not None:
            raise self.error
        return []


class FakePairConsensus:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    async def process_user_pair_analysis(self, topic_id, user_id1=None, user_id2=None):
        self.calls.append((topic_id, user_id1, user_id2))
        return []


class FakeAggregator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, bool]] = []

    async def update_topic_consensus_snapshot(self, topic_id, only_if_changed=False):
        self.calls.append((topic_id, only_if_changed))
        if self.error is not None:
            raise self.error
        return TopicConsensusSnapshot(topic_id=topic_id)


def _jobs(repository, disagreements=None, aggregator=None, pairs=None) -> AnalysisJobs:
    return AnalysisJobs(
        StatusStore(repository),
        disagreements or FakeDisagreements(),
        pairs or FakePairConsensus(),
        aggregator or FakeAggregator(),
    )


async def _stage(repository, doc_id: str, stage: str) -> str:
    doc = await repository.get_document(doc_id)
    return doc.processing_status.state_of(stage)


class TestAnalyzeDisagreements:
    @pytest.mark.asyncio
    async def test_status_completed(self, repository):
        await seed_analyzed(repository, "d1")
        disagreements = FakeDisagreements()
        await _jobs(repository, disagreements=disagreements).analyze_disagreements(
            {"topic_id": "t1", "new_document_id": "d1"}
        )
        assert disagreements.calls == [("t1", "d1")]
        assert await _stage(repository, "d1", DISAGREEMENTS_STAGE) == "completed"

    @pytest.mark.asyncio
    async def test_status_failed_and_reraised(self, repository):
        await seed_analyzed(repository, "d1")
        jobs = _jobs(repository, disagreements=FakeDisagreements(RuntimeError("model down")))
        with pytest.raises(RuntimeError, match="model down"):
            await jobs.analyze_disagreements({"topic_id": "t1", "new_document_id": "d1"})

        doc = await repository.get_document("d1")
        assert doc.processing_status.state_of(DISAGREEMENTS_STAGE) == "failed"
        assert doc.processing_status.errors[DISAGREEMENTS_STAGE] == "model down"

    @pytest.mark.asyncio
    async def test_full_topic_run_tracks_nothing(self, repository):
        await seed_analyzed(repository, "d1")
        disagreements = FakeDisagreements()
        await _jobs(repository, disagreements=disagreements).analyze_disagreements(
            {"topic_id": "t1", "new_document_id": None}
        )
        assert disagreements.calls == [("t1", None)]
        assert await _stage(repository, "d1", DISAGREEMENTS_STAGE) == "pending"


class TestUserPairAnalysis:
    @pytest.mark.asyncio
    async def test_payload_forwarded(self, repository):
        pairs = FakePairConsensus()
        await _jobs(repository, pairs=pairs).user_pair_analysis(
            {"topic_id": "t1", "user_id1": "alice", "user_id2": None}
        )
        assert pairs.calls == [("t1", "alice", None)]

    @pytest.mark.asyncio
    async def test_optional_users(self, repository):
        pairs = FakePairConsensus()
        await _jobs(repository, pairs=pairs).user_pair_analysis({"topic_id": "t1"})
        assert pairs.calls == [("t1", None, None)]


class TestTrackConsensus:
    @pytest.mark.asyncio
    async def test_snapshot_and_status(self, repository):
        await seed_analyzed(repository, "d1")
        aggregator = FakeAggregator()
        snapshot = await _jobs(repository, aggregator=aggregator).track_consensus(
            {"topic_id": "t1", "document_id": "d1"}
        )
        assert snapshot.topic_id == "t1"
        assert aggregator.calls == [("t1", True)]
        assert await _stage(repository, "d1", CONSENSUS_STAGE) == "completed"

    @pytest.mark.asyncio
    async def test_failure_recorded(self, repository):
        await seed_analyzed(repository, "d1")
        jobs = _jobs(repository, aggregator=FakeAggregator(ValueError("bad records")))
        with pytest.raises(ValueError):
            await jobs.track_consensus({"topic_id": "t1", "document_id": "d1"})
        assert await _stage(repository, "d1", CONSENSUS_STAGE) == "failed"
