# src/analysis/jobs.py — v1
"""Job handlers for the cross-document analyses.

Each handler takes the job payload. When the payload names a document
(``new_document_id`` for disagreements, ``document_id`` for consensus
tracking) that document's analysis stage status is moved through
processing -> completed, or failed with the error before re-raising.

The topic snapshot is written by userPairAnalysis after it updates the
pair records. trackConsensus only writes one when pair records changed
since the latest snapshot, so the two jobs of one quorum event add a
single trend point whatever order they run in.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

from linklore.core.models import Disagreement, TopicConsensusSnapshot, UserPairConsensus
from linklore.logging.context import set_stage_context

if TYPE_CHECKING:
    from linklore.analysis.disagreements import DisagreementAnalyzer
    from linklore.analysis.pair_consensus import PairConsensusAnalyzer
    from linklore.analysis.topic_consensus import TopicConsensusAggregator
    from linklore.processing.status import StatusStore

logger = logging.getLogger(__name__)

DISAGREEMENTS_STAGE = "analyzeDisagreements"
CONSENSUS_STAGE = "trackConsensus"


class AnalysisJobs:
    """Binds the analyzers to job payloads."""

    def __init__(
        self,
        status_store: StatusStore,
        disagreements: DisagreementAnalyzer,
        pair_consensus: PairConsensusAnalyzer,
        aggregator: TopicConsensusAggregator,
    ) -> None:
        self._status = status_store
        self._disagreements = disagreements
        self._pair_consensus = pair_consensus
        self._aggregator = aggregator

    @asynccontextmanager
    async def _tracked(self, stage: str, document_id: str | None) -> AsyncIterator[None]:
        if not document_id:
            yield
            return
        set_stage_context(stage, document_id)
        await self._status.update_status(document_id, stage, "processing")
        try:
            yield
        except Exception as exc:
            await self._status.update_status(document_id, stage, "failed", str(exc))
            raise
        await self._status.update_status(document_id, stage, "completed")

    async def analyze_disagreements(self, payload: dict[str, Any]) -> list[Disagreement]:
        topic_id = payload["topic_id"]
        document_id = payload.get("new_document_id")
        async with self._tracked(DISAGREEMENTS_STAGE, document_id):
            found = await self._disagreements.analyze_disagreements(topic_id, document_id)
        logger.info("Topic %s: disagreement analysis returned %d", topic_id, len(found))
        return found

    async def user_pair_analysis(self, payload: dict[str, Any]) -> list[UserPairConsensus]:
        return await self._pair_consensus.process_user_pair_analysis(
            payload["topic_id"], payload.get("user_id1"), payload.get("user_id2")
        )

    async def track_consensus(self, payload: dict[str, Any]) -> TopicConsensusSnapshot:
        topic_id = payload["topic_id"]
        async with self._tracked(CONSENSUS_STAGE, payload.get("document_id")):
            snapshot = await self._aggregator.update_topic_consensus_snapshot(
                topic_id, only_if_changed=True
            )
        return snapshot
