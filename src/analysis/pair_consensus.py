# src/analysis/pair_consensus.py — v1
"""Consensus between two users of a topic.

Only documents that pass the quality gate contribute claims. The model
lists shared positions and conflicts; semantic similarity then weights
them:

    score = consensus / (consensus + disagreements) * 0.7 + avg_sim * 0.3

with avg_sim the mean similarity of the consensus points (0.5 when there
are none). Too little evidence, or no points at all, gives 0.5 / 0.5.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from linklore.analysis.user_pairs import (
    UserPair,
    identify_user_pairs,
    normalize_pair,
    pair_documents,
)
from linklore.core.models import (
    ConsensusPoint,
    Document,
    PairDisagreementPoint,
    Summary,
    UserPairConsensus,
)
from linklore.pipeline.agents.pair_consensus_analyst import (
    PairConsensusAnalystAgent,
    PairConsensusInput,
    PairConsensusReply,
)
from linklore.processing.quality import evaluation_quality
from linklore.processing.rubrics import QualityThresholds

if TYPE_CHECKING:
    from linklore.analysis.topic_consensus import TopicConsensusAggregator
    from linklore.core.similarity import SemanticSimilarity
    from linklore.llm.router import AIRouter
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5
DEFAULT_CONSENSUS_SIMILARITY = 0.8
DEFAULT_DISAGREEMENT_SIMILARITY = 0.2
MIN_DOCUMENTS = 2


@dataclass
class PairConsensusResult:
    consensus_points: list[ConsensusPoint] = field(default_factory=list)
    disagreement_points: list[PairDisagreementPoint] = field(default_factory=list)
    consensus_score: float = NEUTRAL_SCORE
    divergence_score: float = NEUTRAL_SCORE


def pair_consensus_score(consensus_similarities: list[float], disagreement_count: int) -> float:
    total = len(consensus_similarities) + disagreement_count
    if total == 0:
        return NEUTRAL_SCORE
    base = len(consensus_similarities) / total
    avg_similarity = (
        sum(consensus_similarities) / len(consensus_similarities)
        if consensus_similarities
        else NEUTRAL_SCORE
    )
    return base * 0.7 + avg_similarity * 0.3


def _joined_claims(summary: Summary | None) -> str:
    return " ".join(summary.claims) if summary is not None else ""


class PairConsensusAnalyzer:
    """Computes and stores UserPairConsensus records."""

    def __init__(
        self,
        repository: BaseRepository,
        router: AIRouter,
        similarity: SemanticSimilarity,
        aggregator: TopicConsensusAggregator,
        thresholds: QualityThresholds | None = None,
        agent: PairConsensusAnalystAgent | None = None,
    ) -> None:
        self._repository = repository
        self._router = router
        self._similarity = similarity
        self._aggregator = aggregator
        self._thresholds = thresholds or QualityThresholds()
        self._agent = agent or PairConsensusAnalystAgent()

    async def _quality_documents(self, docs: list[Document]) -> list[Document]:
        kept: list[Document] = []
        for doc in docs:
            evaluation = await self._repository.get_latest_evaluation(doc.id)
            if evaluation is not None and evaluation_quality(evaluation, self._thresholds).is_sufficient:
                kept.append(doc)
        return kept

    async def calculate_user_pair_consensus(
        self, topic_id: str, user_id1: str, user_id2: str
    ) -> PairConsensusResult:
        user_id1, user_id2 = normalize_pair(user_id1, user_id2)
        docs = await self._repository.list_topic_documents(topic_id)
        relevant = pair_documents(docs, user_id1, user_id2)
        if len(relevant) < MIN_DOCUMENTS:
            logger.info("Pair %s/%s: %d documents, not enough", user_id1, user_id2, len(relevant))
            return PairConsensusResult()

        quality = await self._quality_documents(relevant)
        if len(quality) < MIN_DOCUMENTS:
            logger.info("Pair %s/%s: %d quality documents, not enough", user_id1, user_id2, len(quality))
            return PairConsensusResult()

        summaries = {d.id: await self._repository.get_latest_summary(d.id) for d in quality}
        claims: dict[str, list[tuple[str, str]]] = {user_id1: [], user_id2: []}
        for doc in quality:
            summary = summaries[doc.id]
            if summary is not None:
                claims[doc.author_id].extend((doc.id, c) for c in summary.claims)
        if not claims[user_id1] or not claims[user_id2]:
            logger.info("Pair %s/%s: claims missing on one side", user_id1, user_id2)
            return PairConsensusResult()

        reply = await self._ask_model(user_id1, user_id2, claims)

        consensus_points: list[ConsensusPoint] = []
        for item in reply.consensus:
            similarity = DEFAULT_CONSENSUS_SIMILARITY
            if len(item.doc_ids) >= 2:
                text1 = _joined_claims(summaries.get(item.doc_ids[0]))
                text2 = _joined_claims(summaries.get(item.doc_ids[1]))
                if text1 and text2:
                    similarity = await self._similarity.similarity(text1, text2)
            consensus_points.append(
                ConsensusPoint(
                    text=item.text,
                    support_count=item.support_count,
                    doc_ids=item.doc_ids,
                    similarity=similarity,
                )
            )

        disagreement_points: list[PairDisagreementPoint] = []
        for item in reply.disagreements:
            similarity = DEFAULT_DISAGREEMENT_SIMILARITY
            if item.claim1 and item.claim2:
                similarity = await self._similarity.similarity(item.claim1, item.claim2)
            disagreement_points.append(
                PairDisagreementPoint(
                    claim1=item.claim1,
                    claim2=item.claim2,
                    doc1_id=item.doc1_id,
                    doc2_id=item.doc2_id,
                    description=item.description,
                    similarity=similarity,
                )
            )

        score = pair_consensus_score(
            [p.similarity for p in consensus_points], len(disagreement_points)
        )
        return PairConsensusResult(
            consensus_points=consensus_points,
            disagreement_points=disagreement_points,
            consensus_score=score,
            divergence_score=1 - score,
        )

    async def _ask_model(
        self, user_id1: str, user_id2: str, claims: dict[str, list[tuple[str, str]]]
    ) -> PairConsensusReply:
        try:
            output = await self._agent.execute(
                PairConsensusInput(
                    user_id1=user_id1,
                    user_id2=user_id2,
                    user1_claims=claims[user_id1],
                    user2_claims=claims[user_id2],
                ),
                self._router,
            )
        except Exception as exc:
            logger.error("Pair consensus model call failed for %s/%s: %s", user_id1, user_id2, exc)
            return PairConsensusReply()
        return PairConsensusReply.model_validate(output.data)

    async def save_user_pair_consensus(
        self, topic_id: str, pair: UserPair, result: PairConsensusResult
    ) -> UserPairConsensus:
        user_id1, user_id2 = normalize_pair(pair.user_id1, pair.user_id2)
        record = UserPairConsensus(
            topic_id=topic_id,
            user_id1=user_id1,
            user_id2=user_id2,
            consensus_score=result.consensus_score,
            divergence_score=result.divergence_score,
            consensus_points=result.consensus_points,
            disagreement_points=result.disagreement_points,
            doc_ids=pair.doc_ids,
            discussion_paths=pair.discussion_paths,
        )
        await self._repository.upsert_user_pair_consensus(record)
        return record

    async def analyze_pair(self, topic_id: str, pair: UserPair) -> UserPairConsensus:
        result = await self.calculate_user_pair_consensus(topic_id, pair.user_id1, pair.user_id2)
        record = await self.save_user_pair_consensus(topic_id, pair, result)
        logger.info(
            "Pair %s/%s in topic %s: consensus=%.3f",
            record.user_id1, record.user_id2, topic_id, record.consensus_score,
        )
        return record

    async def process_user_pair_analysis(
        self,
        topic_id: str,
        user_id1: str | None = None,
        user_id2: str | None = None,
    ) -> list[UserPairConsensus]:
        """Analyze pairs of a topic, then refresh the topic snapshot.

        Both users given: that pair only. One user given: the pairs that
        include them, or every pair when they have none. No user: every pair.
        """
        pairs = await identify_user_pairs(self._repository, topic_id)
        if user_id1 and user_id2:
            key = normalize_pair(user_id1, user_id2)
            selected = [p for p in pairs if (p.user_id1, p.user_id2) == key]
            if not selected:
                logger.warning("No reply relation between %s and %s in topic %s", *key, topic_id)
        else:
            focus = user_id1 or user_id2
            selected = [p for p in pairs if focus and p.involves(focus)] or pairs

        records: list[UserPairConsensus] = []
        for pair in selected:
            try:
                records.append(await self.analyze_pair(topic_id, pair))
            except Exception:
                logger.exception(
                    "Pair %s/%s analysis failed (non-fatal)", pair.user_id1, pair.user_id2
                )

        await self._aggregator.update_topic_consensus_snapshot(topic_id)
        return records
