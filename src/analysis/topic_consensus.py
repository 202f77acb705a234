# src/analysis/topic_consensus.py — v1
"""Topic consensus aggregator: fold every user-pair record into a snapshot.

Always recomputed wholesale from the current pair records. Each pair is
weighted by how much discussion backs it:

    weight = docs * (1 + avg_depth * 0.1) * (1 + rounds * 0.2)

where rounds is the number of reply edges and avg_depth their mean depth
(1 when no edges are recorded).
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from linklore.core.models import TopicConsensusSnapshot, UserPairConsensus

if TYPE_CHECKING:
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5
TREND_THRESHOLD = 0.05
MIN_PAIRS_FOR_KEY_POINT = 2
TOP_POINTS = 10


@dataclass
class TopicConsensus:
    consensus_score: float
    divergence_score: float
    pair_count: int


def pair_weight(record: UserPairConsensus) -> float:
    rounds = len(record.discussion_paths)
    avg_depth = (
        sum(p.depth for p in record.discussion_paths) / rounds if rounds else 1.0
    )
    return len(record.doc_ids) * (1 + avg_depth * 0.1) * (1 + rounds * 0.2)


def calculate_topic_consensus(records: list[UserPairConsensus]) -> TopicConsensus:
    """Weighted mean of the pair scores; neutral when nothing carries weight."""
    total_weight = 0.0
    weighted = 0.0
    for record in records:
        weight = pair_weight(record)
        weighted += record.consensus_score * weight
        total_weight += weight
    score = weighted / total_weight if total_weight > 0 else NEUTRAL_SCORE
    return TopicConsensus(
        consensus_score=score, divergence_score=1 - score, pair_count=len(records)
    )


def key_points(records: list[UserPairConsensus]) -> list[str]:
    """Consensus texts shared by at least two pairs, most shared first."""
    counts: Counter[str] = Counter()
    first_text: dict[str, str] = {}
    for record in records:
        for point in record.consensus_points:
            key = point.text.strip()
            if not key:
                continue
            counts[key] += 1
            first_text.setdefault(key, point.text)
    return [
        first_text[key]
        for key, count in counts.most_common()
        if count >= MIN_PAIRS_FOR_KEY_POINT
    ][:TOP_POINTS]


def key_disagreements(records: list[UserPairConsensus]) -> list[str]:
    """Most frequent disagreements, described by their description when present."""
    counts: Counter[str] = Counter()
    text: dict[str, str] = {}
    for record in records:
        for point in record.disagreement_points:
            key = f"{point.claim1} vs {point.claim2}".strip()
            counts[key] += 1
            text.setdefault(key, point.description or key)
    return [text[key] for key, _ in counts.most_common(TOP_POINTS)]


def trend_against(
    previous: TopicConsensusSnapshot | None, current_score: float
) -> Literal["converging", "diverging", "stable"]:
    if previous is None:
        return "stable"
    diff = current_score - previous.consensus_score
    if diff > TREND_THRESHOLD:
        return "converging"
    if diff < -TREND_THRESHOLD:
        return "diverging"
    return "stable"


class TopicConsensusAggregator:
    """Writes topic snapshots from the current pair records."""

    def __init__(self, repository: BaseRepository, history_limit: int = 50) -> None:
        self._repository = repository
        self._history_limit = history_limit

    async def update_topic_consensus_snapshot(
        self, topic_id: str, only_if_changed: bool = False
    ) -> TopicConsensusSnapshot:
        """Append a snapshot folded from the current pair records.

        With ``only_if_changed`` the latest snapshot is returned as is when
        it was folded from the same pair records (same count, same newest
        write), so a topic gets one trend point per change of its pairs.
        """
        records = await self._repository.list_user_pair_consensus(topic_id)
        latest = await self._repository.list_consensus_snapshots(topic_id, limit=1)
        newest = max((r.updated_at for r in records), default=None)
        if (
            only_if_changed
            and latest
            and latest[0].pair_count == len(records)
            and latest[0].records_updated_at == newest
        ):
            logger.info("Topic %s: pair records unchanged since last snapshot", topic_id)
            return latest[0]

        result = calculate_topic_consensus(records)

        snapshot = TopicConsensusSnapshot(
            topic_id=topic_id,
            consensus_score=result.consensus_score,
            divergence_score=result.divergence_score,
            trend=trend_against(latest[0] if latest else None, result.consensus_score),
            key_points=key_points(records),
            disagreements=key_disagreements(records),
            pair_count=result.pair_count,
            records_updated_at=newest,
        )
        await self._repository.add_consensus_snapshot(snapshot, keep=self._history_limit)
        logger.info(
            "Topic %s snapshot: consensus=%.3f trend=%s pairs=%d",
            topic_id, snapshot.consensus_score, snapshot.trend, snapshot.pair_count,
        )
        return snapshot
