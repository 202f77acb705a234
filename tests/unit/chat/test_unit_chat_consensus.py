# tests/unit/chat/test_unit_chat_consensus.py — v1
"""Tests for chat/chat_consensus.py — points, normalized scores, participation, upsert."""

from __future__ import annotations

from datetime import timedelta

import pytest

from linklore.chat.chat_consensus import (
    ChatConsensusAnalyzer,
    normalized_score,
    reference_depth,
    trend,
)
from linklore.core.errors import RoomNotFoundError
from linklore.core.models import ChatMessage, ChatRoom

from tests.conftest import BASE_TIME


class PairSimilarity:
    """Similarity looked up by the unordered pair of texts; 0.5 otherwise."""

    def __init__(self, scores: dict[frozenset[str], float]) -> None:
        self.scores = scores

    async def similarity(self, text1: str, text2: str) -> float:
        return self.scores.get(frozenset((text1, text2)), 0.5)


MOON = "Tides come from the moon"
AGREE = "Yes, the moon causes the tides"
WIND = "No, wind is what drives them"

SCORES = {
    frozenset((MOON, AGREE)): 0.9,
    frozenset((MOON, WIND)): 0.05,
}


def _message(msg_id: str, sender: str, content: str, seq: int, **fields) -> ChatMessage:
    return ChatMessage(
        id=msg_id,
        room_id="room1",
        sender_id=sender,
        content=content,
        sequence=seq,
        created_at=BASE_TIME + timedelta(minutes=seq),
        **fields,
    )


async def _seed(repository, room_type: str = "DUO") -> None:
    await repository.save_room(
        ChatRoom(id="room1", type=room_type, creator_id="alice", participant_id="bob")
    )
    for message in (
        _message("m1", "alice", MOON, 1),
        _message("m2", "bob", AGREE, 2, reference_ids=["m1"]),
        _message("m3", "bob", WIND, 3, reference_ids=["m1"], content_type="AI_ADOPTED"),
        _message("m4", "alice", "Maybe look at both?", 4, content_type="AI_SUGGESTION"),
    ):
        await repository.save_message(message)


def _analyzer(repository) -> ChatConsensusAnalyzer:
    return ChatConsensusAnalyzer(repository, PairSimilarity(SCORES))


class TestHelpers:
    def test_normalized_score(self):
        assert normalized_score(0.9, 3, 0.7) == pytest.approx(0.9 / 2.1)

    def test_normalized_score_capped(self):
        assert normalized_score(5.0, 3, 0.3) == 1.0

    def test_normalized_score_single_message(self):
        assert normalized_score(1.0, 1, 0.7) == 0.5

    def test_reference_depth(self):
        messages = [
            _message("a", "x", "", 1),
            _message("b", "y", "", 2, reference_ids=["a"]),
            _message("c", "x", "", 3, reference_ids=["a", "b"]),
        ]
        average, maximum, total = reference_depth(messages)
        assert (average, maximum, total) == (1.0, 2, 3)

    def test_trend_buckets_by_hour(self):
        points = [
            (BASE_TIME, 0.8),
            (BASE_TIME + timedelta(minutes=30), 0.6),
            (BASE_TIME + timedelta(hours=2), 1.0),
        ]
        result = trend(points)
        assert [(p.timestamp, p.count) for p in result] == [
            ("2026-03-01T09:00:00Z", 2),
            ("2026-03-01T11:00:00Z", 1),
        ]
        assert result[0].score == pytest.approx(0.7)


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_consensus_point(self, repository):
        await _seed(repository)
        result = await _analyzer(repository).analyze_chat_consensus("room1")

        assert len(result.consensus_points) == 1
        point = result.consensus_points[0]
        assert point.message_id == "m1"
        assert point.confidence == 0.9
        assert point.participants == ["alice", "bob"]
        assert result.consensus_score == pytest.approx(0.9 / (3 * 0.7))

    @pytest.mark.asyncio
    async def test_disagreement_needs_reference(self, repository):
        await _seed(repository)
        result = await _analyzer(repository).analyze_chat_consensus("room1")

        assert len(result.disagreement_points) == 1
        point = result.disagreement_points[0]
        assert (point.message_id1, point.message_id2) == ("m1", "m3")
        assert point.type == "OPPOSITE"
        assert point.severity == pytest.approx(0.95)
        assert result.divergence_score == 1.0

    @pytest.mark.asyncio
    async def test_depth_and_adoption(self, repository):
        await _seed(repository)
        result = await _analyzer(repository).analyze_chat_consensus("room1")
        assert result.total_references == 2
        assert result.max_depth == 1
        assert result.average_depth == 1.0
        assert result.ai_adoption_rate == 1.0

    @pytest.mark.asyncio
    async def test_participation_counts(self, repository):
        await _seed(repository)
        result = await _analyzer(repository).analyze_chat_consensus("room1")
        assert result.creator_message_count == 1
        assert result.participant_message_count == 2
        assert result.participant_ai_adoption_count == 1
        assert result.creator_ai_suggestion_count == 1
        assert result.participant_ai_suggestion_count == 0

    @pytest.mark.asyncio
    async def test_trends(self, repository):
        await _seed(repository)
        result = await _analyzer(repository).analyze_chat_consensus("room1")
        assert [(p.timestamp, p.count) for p in result.consensus_trend] == [
            ("2026-03-01T09:00:00Z", 1),
        ]
        assert result.divergence_trend[0].score == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_deleted_messages_ignored(self, repository):
        await _seed(repository)
        m3 = await repository.get_message("m3")
        m3.deleted = True
        await repository.save_message(m3)
        result = await _analyzer(repository).analyze_chat_consensus("room1")
        assert result.disagreement_points == []

    @pytest.mark.asyncio
    async def test_solo_room_neutral(self, repository):
        await _seed(repository, room_type="SOLO")
        result = await _analyzer(repository).analyze_chat_consensus("room1")
        assert result.consensus_score == 0.5
        assert result.divergence_score == 0.5
        assert result.consensus_points == []

    @pytest.mark.asyncio
    async def test_too_few_messages_neutral(self, repository):
        await repository.save_room(ChatRoom(id="room1", creator_id="alice", participant_id="bob"))
        await repository.save_message(_message("m1", "alice", MOON, 1))
        result = await _analyzer(repository).analyze_chat_consensus("room1")
        assert result.consensus_score == 0.5
        assert result.creator_message_count == 0

    @pytest.mark.asyncio
    async def test_missing_room(self, repository):
        with pytest.raises(RoomNotFoundError):
            await _analyzer(repository).analyze_chat_consensus("nope")


class TestProcessChatAnalysis:
    @pytest.mark.asyncio
    async def test_upsert_keeps_counters(self, repository):
        await _seed(repository)
        await repository.upsert_chat_analysis("room1", total_warnings=3, blocked_messages=1)

        stored = await _analyzer(repository).process_chat_analysis("room1")
        assert stored.total_warnings == 3
        assert stored.blocked_messages == 1
        assert stored.consensus_score == pytest.approx(0.9 / 2.1)
        assert stored.last_analyzed_at is not None

    @pytest.mark.asyncio
    async def test_rerun_overwrites(self, repository):
        await _seed(repository)
        analyzer = _analyzer(repository)
        await analyzer.process_chat_analysis("room1")
        await analyzer.process_chat_analysis("room1")
        stored = await repository.get_chat_analysis("room1")
        assert len(stored.consensus_points) == 1
