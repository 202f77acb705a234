# src/chat/moderation.py — v1
"""Per-message moderation of two-person discussions.

The moderator sees the last discussion messages of the room and the
consensus points already recorded for it. Any failure to obtain or decode
a verdict yields SAFE with score 0, so moderation never blocks a message
by accident. The verdict is written onto the message, then the room's
warning counters are bumped through the room-keyed analysis upsert.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from linklore.core.errors import MessageNotFoundError, RoomNotFoundError
from linklore.core.locks import KeyedLocks
from linklore.core.models import ChatMessage, ChatRoom, ModerationResult
from linklore.pipeline.agents.moderator import (
    ModerationReply,
    ModeratorAgent,
    ModeratorInput,
    failed_reply,
    to_result,
)

if TYPE_CHECKING:
    from linklore.llm.router import AIRouter
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

CONTEXT_MESSAGES = 30
DISCUSSION_TYPES = ("USER", "AI_SUGGESTION", "AI_ADOPTED")
AI_TYPES = ("AI_SUGGESTION", "AI_ADOPTED")

_LABELS = {"USER": "[user]", "AI_SUGGESTION": "[AI suggestion]", "AI_ADOPTED": "[AI adopted]"}


def context_line(message: ChatMessage) -> str:
    return f"{_LABELS.get(message.content_type, '[user]')}[{message.sender_id}]: {message.content}"


def counter_increments(
    result: ModerationResult, sender_id: str, room: ChatRoom
) -> dict[str, int]:
    """Counter deltas for one verdict; empty for SAFE."""
    deltas: dict[str, int] = {}
    if result.status == "WARNING":
        deltas["total_warnings"] = 1
        if sender_id == room.creator_id:
            deltas["creator_warnings"] = 1
        elif sender_id == room.participant_id:
            deltas["participant_warnings"] = 1
    elif result.status == "BLOCKED":
        deltas["blocked_messages"] = 1
    return deltas


class ChatModerator:
    """Moderates messages and maintains the room warning counters."""

    def __init__(
        self,
        repository: BaseRepository,
        router: AIRouter,
        agent: ModeratorAgent | None = None,
    ) -> None:
        self._repository = repository
        self._router = router
        self._agent = agent or ModeratorAgent()
        self._room_locks = KeyedLocks()

    async def moderate_message(self, message_id: str, room_id: str) -> ModerationResult:
        message = await self._repository.get_message(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        room = await self._repository.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)

        history = await self._repository.list_room_messages(room_id, DISCUSSION_TYPES)
        analysis = await self._repository.get_chat_analysis(room_id)
        locked = [p.model_dump(mode="json") for p in analysis.consensus_points] if analysis else []

        is_ai = message.content_type in AI_TYPES
        inp = ModeratorInput(
            creator=room.creator_id,
            participant=room.participant_id,
            context=[context_line(m) for m in history[-CONTEXT_MESSAGES:]],
            locked_consensus=locked,
            sender=message.sender_id,
            content=message.content,
            is_ai_generated=is_ai,
        )
        result = await self._verdict(inp, message.sender_id)

        message.moderation_status = result.status
        message.moderation_note = result.note
        message.moderation_score = result.score
        message.moderation_details = result.details.model_dump(exclude_none=True)
        await self._repository.save_message(message)

        await self._update_room_counters(room, result, message.sender_id)
        logger.info(
            "Moderated message %s: status=%s score=%.2f", message_id, result.status, result.score
        )
        return result

    async def _verdict(self, inp: ModeratorInput, sender_id: str) -> ModerationResult:
        try:
            output = await self._agent.execute(inp, self._router, user_id=sender_id)
            reply = ModerationReply.model_validate(output.data)
        except Exception as exc:
            logger.error("Moderation call failed, defaulting to SAFE: %s", exc)
            reply = failed_reply()
        return to_result(reply, inp.is_ai_generated)

    async def _update_room_counters(
        self, room: ChatRoom, result: ModerationResult, sender_id: str
    ) -> None:
        deltas = counter_increments(result, sender_id, room)
        try:
            async with self._room_locks.lock(room.id):
                current = await self._repository.get_chat_analysis(room.id)
                fields: dict[str, Any] = {
                    name: (getattr(current, name) if current else 0) + delta
                    for name, delta in deltas.items()
                }
                await self._repository.upsert_chat_analysis(room.id, **fields)
        except Exception:
            logger.exception("Failed to update warning counters for room %s (non-fatal)", room.id)
