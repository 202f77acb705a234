# src/chat/chat_consensus.py — v1
"""Consensus and divergence analysis of a two-person chat room.

Discussion messages are the USER and AI_ADOPTED ones. Every cross-sender
pair whose semantic similarity exceeds 0.7 is a consensus point; a pair
where the later message references the earlier one and similarity is
below 0.3 is a disagreement point. Scores normalize the summed
confidence (severity) by the number of possible pairs:

    consensus  = min(1, sum(confidence) / (pairs * 0.7))
    divergence = min(1, sum(severity)   / (pairs * 0.3))

Rooms that are not DUO, or have fewer than two discussion messages, get
the neutral defaults. ``process_chat_analysis`` stores the result with an
upsert keyed by room, leaving the moderation warning counters untouched.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Iterable

from pydantic import BaseModel, Field

from linklore.core.errors import RoomNotFoundError
from linklore.core.models import (
    ChatAnalysis,
    ChatConsensusPoint,
    ChatDisagreementPoint,
    ChatMessage,
    ChatRoom,
    TrendPoint,
    utcnow,
)

if TYPE_CHECKING:
    from datetime import datetime

    from linklore.core.similarity import SemanticSimilarity
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

DISCUSSION_TYPES = ("USER", "AI_ADOPTED")
CONSENSUS_SIMILARITY = 0.7
DISAGREEMENT_SIMILARITY = 0.3
OPPOSITE_SIMILARITY = 0.1
CONTENT_PREVIEW = 200
NEUTRAL_SCORE = 0.5


class ChatAnalysisResult(BaseModel):
    """Computed analysis fields of a room (counters excluded)."""

    consensus_points: list[ChatConsensusPoint] = Field(default_factory=list)
    consensus_score: float = NEUTRAL_SCORE
    consensus_trend: list[TrendPoint] = Field(default_factory=list)
    disagreement_points: list[ChatDisagreementPoint] = Field(default_factory=list)
    divergence_score: float = NEUTRAL_SCORE
    divergence_trend: list[TrendPoint] = Field(default_factory=list)
    average_depth: float = 0.0
    max_depth: int = 0
    total_references: int = 0
    ai_adoption_rate: float = 0.0
    creator_message_count: int = 0
    participant_message_count: int = 0
    creator_ai_adoption_count: int = 0
    participant_ai_adoption_count: int = 0
    creator_ai_suggestion_count: int = 0
    participant_ai_suggestion_count: int = 0


def normalized_score(total: float, message_count: int, threshold: float) -> float:
    max_pairs = message_count * (message_count - 1) / 2
    if max_pairs <= 0:
        return NEUTRAL_SCORE
    return min(1.0, total / (max_pairs * threshold))


def reference_depth(messages: list[ChatMessage]) -> tuple[float, int, int]:
    """(average_depth, max_depth, total_references) from direct references."""
    total_references = 0
    total_depth = 0
    max_depth = 0
    for message in messages:
        depth = len(message.reference_ids)
        if not depth:
            continue
        total_references += depth
        total_depth += depth
        max_depth = max(max_depth, depth)
    average = total_depth / total_references if total_references else 0.0
    return average, max_depth, total_references


def hour_bucket(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:00:00Z")


def trend(points: Iterable[tuple[datetime, float]]) -> list[TrendPoint]:
    """Hourly buckets with the mean score and point count, oldest first."""
    groups: dict[str, list[float]] = defaultdict(list)
    for moment, score in points:
        groups[hour_bucket(moment)].append(score)
    return [
        TrendPoint(timestamp=key, score=sum(scores) / len(scores), count=len(scores))
        for key, scores in sorted(groups.items())
    ]


def participation(
    room: ChatRoom, discussion: list[ChatMessage], suggestions: list[ChatMessage]
) -> dict[str, Any]:
    counts = {
        "creator_message_count": 0,
        "participant_message_count": 0,
        "creator_ai_adoption_count": 0,
        "participant_ai_adoption_count": 0,
        "creator_ai_suggestion_count": 0,
        "participant_ai_suggestion_count": 0,
    }
    for message in [*discussion, *suggestions]:
        if message.sender_id == room.creator_id:
            role = "creator"
        elif message.sender_id == room.participant_id:
            role = "participant"
        else:
            continue
        if message.content_type == "AI_SUGGESTION":
            counts[f"{role}_ai_suggestion_count"] += 1
            continue
        counts[f"{role}_message_count"] += 1
        if message.content_type == "AI_ADOPTED":
            counts[f"{role}_ai_adoption_count"] += 1
    return counts


class ChatConsensusAnalyzer:
    """Analyzes rooms and stores the room-keyed ChatAnalysis record."""

    def __init__(self, repository: BaseRepository, similarity: SemanticSimilarity) -> None:
        self._repository = repository
        self._similarity = similarity

    async def analyze_chat_consensus(self, room_id: str) -> ChatAnalysisResult:
        room = await self._repository.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        if room.type != "DUO":
            return ChatAnalysisResult()

        discussion = await self._repository.list_room_messages(room_id, DISCUSSION_TYPES)
        if len(discussion) < 2:
            return ChatAnalysisResult()
        suggestions = await self._repository.list_room_messages(room_id, ("AI_SUGGESTION",))

        consensus: list[ChatConsensusPoint] = []
        disagreements: list[ChatDisagreementPoint] = []
        for i, first in enumerate(discussion):
            for second in discussion[i + 1 :]:
                if first.sender_id == second.sender_id:
                    continue
                sim = await self._similarity.similarity(first.content, second.content)
                if sim > CONSENSUS_SIMILARITY:
                    consensus.append(
                        ChatConsensusPoint(
                            message_id=first.id,
                            content=first.content[:CONTENT_PREVIEW],
                            confidence=sim,
                            created_at=first.created_at,
                            participants=[first.sender_id, second.sender_id],
                        )
                    )
                if first.id in second.reference_ids and sim < DISAGREEMENT_SIMILARITY:
                    disagreements.append(
                        ChatDisagreementPoint(
                            message_id1=first.id,
                            message_id2=second.id,
                            type="OPPOSITE" if sim < OPPOSITE_SIMILARITY else "DIFFERENT_VIEW",
                            severity=1.0 - sim,
                            reason=f"Views differ widely (similarity: {sim * 100:.1f}%)",
                            created_at=second.created_at,
                        )
                    )

        average_depth, max_depth, total_references = reference_depth(discussion)
        adopted = sum(1 for m in discussion if m.content_type == "AI_ADOPTED")

        result = ChatAnalysisResult(
            consensus_points=consensus,
            consensus_score=normalized_score(
                sum(p.confidence for p in consensus), len(discussion), CONSENSUS_SIMILARITY
            ),
            consensus_trend=trend((p.created_at, p.confidence) for p in consensus),
            disagreement_points=disagreements,
            divergence_score=normalized_score(
                sum(p.severity for p in disagreements), len(discussion), DISAGREEMENT_SIMILARITY
            ),
            divergence_trend=trend((p.created_at, p.severity) for p in disagreements),
            average_depth=average_depth,
            max_depth=max_depth,
            total_references=total_references,
            ai_adoption_rate=adopted / len(suggestions) if suggestions else 0.0,
            **participation(room, discussion, suggestions),
        )
        logger.info(
            "Room %s: %d consensus / %d disagreement points over %d messages",
            room_id, len(consensus), len(disagreements), len(discussion),
        )
        return result

    async def process_chat_analysis(self, room_id: str) -> ChatAnalysis:
        result = await self.analyze_chat_consensus(room_id)
        return await self._repository.upsert_chat_analysis(
            room_id, **result.model_dump(), last_analyzed_at=utcnow()
        )
