# tests/unit/chat/test_unit_moderation.py — v1
"""Tests for chat/moderation.py — verdicts, SAFE fallback, room warning counters."""

from __future__ import annotations

import asyncio
import json

import pytest

from linklore.chat.moderation import (
    CONTEXT_MESSAGES,
    ChatModerator,
    context_line,
    counter_increments,
)
from linklore.core.errors import MessageNotFoundError, RoomNotFoundError
from linklore.core.models import ChatMessage, ChatRoom, ModerationResult
from linklore.pipeline.agents.moderator import FAILED_NOTE

from tests.conftest import ScriptedRouter

ROOM = ChatRoom(id="room1", type="DUO", creator_id="alice", participant_id="bob")


def verdict_json(status: str = "WARNING", score: float = 0.6, **details) -> str:
    return json.dumps({"status": status, "score": score, "note": "needs care", "details": details})


async def _seed_room(repository, messages: int = 2) -> None:
    await repository.save_room(ROOM)
    for i in range(1, messages + 1):
        await repository.save_message(ChatMessage(
            id=f"m{i}",
            room_id=ROOM.id,
            sender_id="alice" if i % 2 else "bob",
            content=f"message {i}",
            sequence=i,
        ))


class TestHelpers:
    def test_context_line(self):
        message = ChatMessage(
            id="m1", room_id="r", sender_id="bob", content="hi", content_type="AI_SUGGESTION",
        )
        assert context_line(message) == "[AI suggestion][bob]: hi"

    @pytest.mark.parametrize(
        "status, sender, expected",
        [
            ("SAFE", "alice", {}),
            ("WARNING", "alice", {"total_warnings": 1, "creator_warnings": 1}),
            ("WARNING", "bob", {"total_warnings": 1, "participant_warnings": 1}),
            ("WARNING", "mallory", {"total_warnings": 1}),
            ("BLOCKED", "bob", {"blocked_messages": 1}),
        ],
    )
    def test_counter_increments(self, status, sender, expected):
        assert counter_increments(ModerationResult(status=status), sender, ROOM) == expected


class TestModerateMessage:
    @pytest.mark.asyncio
    async def test_verdict_written_to_message(self, repository):
        await _seed_room(repository)
        router = ScriptedRouter({"moderate": verdict_json(topicDrift="Off topic")})
        result = await ChatModerator(repository, router).moderate_message("m2", "room1")

        assert result.status == "WARNING"
        assert result.details.topic_drift == "Off topic"
        stored = await repository.get_message("m2")
        assert stored.moderation_status == "WARNING"
        assert stored.moderation_note == "needs care"
        assert stored.moderation_score == 0.6
        assert stored.moderation_details["topic_drift"] == "Off topic"

    @pytest.mark.asyncio
    async def test_score_clamped(self, repository):
        await _seed_room(repository)
        router = ScriptedRouter({"moderate": verdict_json(score=3.5)})
        result = await ChatModerator(repository, router).moderate_message("m1", "room1")
        assert result.score == 1.0

    @pytest.mark.asyncio
    async def test_router_failure_is_safe(self, repository):
        await _seed_room(repository)
        router = ScriptedRouter({"moderate": RuntimeError("provider down")})
        result = await ChatModerator(repository, router).moderate_message("m1", "room1")
        assert result.status == "SAFE"
        assert result.score == 0.0
        assert result.note == FAILED_NOTE
        assert (await repository.get_message("m1")).moderation_status == "SAFE"

    @pytest.mark.asyncio
    async def test_unusable_reply_is_safe(self, repository):
        await _seed_room(repository)
        router = ScriptedRouter({"moderate": "I cannot judge this."})
        result = await ChatModerator(repository, router).moderate_message("m1", "room1")
        assert result.status == "SAFE"
        assert result.score == 0.0

    @pytest.mark.asyncio
    async def test_ai_only_checks_dropped_for_user_message(self, repository):
        await _seed_room(repository)
        router = ScriptedRouter({"moderate": verdict_json(aiFactualError="made up")})
        result = await ChatModerator(repository, router).moderate_message("m1", "room1")
        assert result.details.ai_factual_error is None

    @pytest.mark.asyncio
    async def test_ai_only_checks_kept_for_ai_message(self, repository):
        await _seed_room(repository)
        await repository.save_message(ChatMessage(
            id="ai1", room_id="room1", sender_id="bob", content="suggested", sequence=9,
            content_type="AI_ADOPTED",
        ))
        router = ScriptedRouter({"moderate": verdict_json(aiFactualError="made up")})
        result = await ChatModerator(repository, router).moderate_message("ai1", "room1")
        assert result.details.ai_factual_error == "made up"

    @pytest.mark.asyncio
    async def test_context_limited_to_recent_messages(self, repository):
        await _seed_room(repository, messages=CONTEXT_MESSAGES + 5)
        router = ScriptedRouter({"moderate": verdict_json(status="SAFE", score=0.0)})
        await ChatModerator(repository, router).moderate_message("m1", "room1")
        prompt = router.calls_for("moderate")[0]["prompt"]
        assert f"message {CONTEXT_MESSAGES + 5}" in prompt
        assert "]: message 5\n" not in prompt

    @pytest.mark.asyncio
    async def test_sender_is_charged(self, repository):
        await _seed_room(repository)
        router = ScriptedRouter({"moderate": verdict_json()})
        await ChatModerator(repository, router).moderate_message("m2", "room1")
        assert router.calls_for("moderate")[0]["user_id"] == "bob"

    @pytest.mark.asyncio
    async def test_missing_message(self, repository):
        await _seed_room(repository)
        with pytest.raises(MessageNotFoundError):
            await ChatModerator(repository, ScriptedRouter()).moderate_message("nope", "room1")

    @pytest.mark.asyncio
    async def test_missing_room(self, repository):
        await _seed_room(repository)
        with pytest.raises(RoomNotFoundError):
            await ChatModerator(repository, ScriptedRouter()).moderate_message("m1", "nope")


class TestRoomCounters:
    @pytest.mark.asyncio
    async def test_warning_counted_for_sender_role(self, repository):
        await _seed_room(repository)
        moderator = ChatModerator(repository, ScriptedRouter({"moderate": verdict_json()}))
        await moderator.moderate_message("m1", "room1")
        await moderator.moderate_message("m2", "room1")

        analysis = await repository.get_chat_analysis("room1")
        assert analysis.total_warnings == 2
        assert analysis.creator_warnings == 1
        assert analysis.participant_warnings == 1
        assert analysis.last_analyzed_at is None

    @pytest.mark.asyncio
    async def test_blocked_counted(self, repository):
        await _seed_room(repository)
        moderator = ChatModerator(repository, ScriptedRouter({"moderate": verdict_json("BLOCKED", 0.9)}))
        await moderator.moderate_message("m1", "room1")
        analysis = await repository.get_chat_analysis("room1")
        assert analysis.blocked_messages == 1
        assert analysis.total_warnings == 0

    @pytest.mark.asyncio
    async def test_analysis_fields_preserved(self, repository):
        await _seed_room(repository)
        await repository.upsert_chat_analysis("room1", consensus_score=0.9, total_warnings=4)
        moderator = ChatModerator(repository, ScriptedRouter({"moderate": verdict_json()}))
        await moderator.moderate_message("m1", "room1")
        analysis = await repository.get_chat_analysis("room1")
        assert analysis.consensus_score == 0.9
        assert analysis.total_warnings == 5

    @pytest.mark.asyncio
    async def test_concurrent_warnings_all_counted(self, repository):
        await _seed_room(repository, messages=6)
        moderator = ChatModerator(repository, ScriptedRouter({"moderate": verdict_json()}))
        await asyncio.gather(*(moderator.moderate_message(f"m{i}", "room1") for i in range(1, 7)))
        analysis = await repository.get_chat_analysis("room1")
        assert analysis.total_warnings == 6
        assert analysis.creator_warnings == 3
        assert analysis.participant_warnings == 3
