# src/storage/memory_repository.py — v1
"""In-memory repository.

Returns deep copies so callers cannot mutate stored rows in place, which
keeps read-modify-write behavior the same as a real database.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from linklore.core.models import (
    ChatAnalysis,
    ChatMessage,
    ChatRoom,
    Disagreement,
    Document,
    Evaluation,
    ProcessingStatus,
    Summary,
    Topic,
    TopicConsensusSnapshot,
    UserPairConsensus,
    utcnow,
)
from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


def pair_key(topic_id: str, user_id1: str, user_id2: str) -> str:
    """Order-independent key for a user pair inside a topic."""
    u1, u2 = sorted((user_id1, user_id2))
    return f"{topic_id}:{u1}:{u2}"


class RepositoryState(BaseModel):
    """Everything the repository holds; also the JSON file layout."""

    documents: dict[str, Document] = Field(default_factory=dict)
    topics: dict[str, Topic] = Field(default_factory=dict)
    summaries: dict[str, list[Summary]] = Field(default_factory=dict)
    evaluations: dict[str, list[Evaluation]] = Field(default_factory=dict)
    disagreements: dict[str, Disagreement] = Field(default_factory=dict)
    user_pairs: dict[str, UserPairConsensus] = Field(default_factory=dict)
    snapshots: dict[str, list[TopicConsensusSnapshot]] = Field(default_factory=dict)
    rooms: dict[str, ChatRoom] = Field(default_factory=dict)
    messages: dict[str, ChatMessage] = Field(default_factory=dict)
    chat_analyses: dict[str, ChatAnalysis] = Field(default_factory=dict)


class InMemoryRepository(BaseRepository):
    """Dict-backed repository."""

    def __init__(self, state: RepositoryState | None = None) -> None:
        self._state = state or RepositoryState()

    def _changed(self) -> None:
        """Hook called after every mutation (no-op in memory)."""

    # --- Documents ---

    async def get_document(self, document_id: str) -> Document | None:
        doc = self._state.documents.get(document_id)
        return doc.model_copy(deep=True) if doc else None

    async def save_document(self, document: Document) -> None:
        self._state.documents[document.id] = document.model_copy(deep=True)
        self._changed()

    async def list_documents(self) -> list[Document]:
        docs = sorted(self._state.documents.values(), key=lambda d: d.created_at)
        return [d.model_copy(deep=True) for d in docs]

    async def list_topic_documents(self, topic_id: str) -> list[Document]:
        return [d for d in await self.list_documents() if d.topic_id == topic_id]

    async def set_extracted_text(self, document_id: str, text: str) -> None:
        doc = self._state.documents.get(document_id)
        if doc is None:
            raise KeyError(document_id)
        doc.extracted_text = text
        self._changed()

    async def save_processing_status(
        self, document_id: str, status: ProcessingStatus
    ) -> None:
        doc = self._state.documents.get(document_id)
        if doc is None:
            raise KeyError(document_id)
        doc.processing_status = status.model_copy(deep=True)
        self._changed()

    # --- Topics ---

    async def get_topic(self, topic_id: str) -> Topic | None:
        topic = self._state.topics.get(topic_id)
        return topic.model_copy(deep=True) if topic else None

    async def save_topic(self, topic: Topic) -> None:
        self._state.topics[topic.id] = topic.model_copy(deep=True)
        self._changed()

    async def update_topic(self, topic_id: str, **fields: Any) -> None:
        topic = self._state.topics.get(topic_id)
        if topic is None:
            raise KeyError(topic_id)
        self._state.topics[topic_id] = topic.model_copy(update=fields)
        self._changed()

    # --- Artifacts ---

    async def save_summary(self, summary: Summary) -> None:
        self._state.summaries.setdefault(summary.document_id, []).append(
            summary.model_copy(deep=True)
        )
        self._changed()

    async def get_latest_summary(self, document_id: str) -> Summary | None:
        rows = self._state.summaries.get(document_id)
        return rows[-1].model_copy(deep=True) if rows else None

    async def save_evaluation(self, evaluation: Evaluation) -> None:
        self._state.evaluations.setdefault(evaluation.document_id, []).append(
            evaluation.model_copy(deep=True)
        )
        self._changed()

    async def get_latest_evaluation(self, document_id: str) -> Evaluation | None:
        rows = self._state.evaluations.get(document_id)
        return rows[-1].model_copy(deep=True) if rows else None

    # --- Cross-document analysis ---

    async def list_disagreements(self, topic_id: str) -> list[Disagreement]:
        return [
            d.model_copy(deep=True)
            for d in self._state.disagreements.values()
            if d.topic_id == topic_id
        ]

    async def save_disagreement(self, disagreement: Disagreement) -> None:
        self._state.disagreements[disagreement.id] = disagreement.model_copy(deep=True)
        self._changed()

    async def upsert_user_pair_consensus(self, record: UserPairConsensus) -> None:
        key = pair_key(record.topic_id, record.user_id1, record.user_id2)
        self._state.user_pairs[key] = record.model_copy(
            deep=True, update={"updated_at": utcnow()}
        )
        self._changed()

    async def get_user_pair_consensus(
        self, topic_id: str, user_id1: str, user_id2: str
    ) -> UserPairConsensus | None:
        record = self._state.user_pairs.get(pair_key(topic_id, user_id1, user_id2))
        return record.model_copy(deep=True) if record else None

    async def list_user_pair_consensus(self, topic_id: str) -> list[UserPairConsensus]:
        return [
            r.model_copy(deep=True)
            for r in self._state.user_pairs.values()
            if r.topic_id == topic_id
        ]

    async def add_consensus_snapshot(
        self, snapshot: TopicConsensusSnapshot, keep: int
    ) -> None:
        history = self._state.snapshots.setdefault(snapshot.topic_id, [])
        history.append(snapshot.model_copy(deep=True))
        history.sort(key=lambda s: s.snapshot_at)
        if keep > 0 and len(history) > keep:
            dropped = len(history) - keep
            del history[:dropped]
            logger.debug(
                "Dropped %d old snapshots for topic %s", dropped, snapshot.topic_id
            )
        self._changed()

    async def list_consensus_snapshots(
        self, topic_id: str, limit: int | None = None
    ) -> list[TopicConsensusSnapshot]:
        history = list(reversed(self._state.snapshots.get(topic_id, [])))
        if limit is not None:
            history = history[:limit]
        return [s.model_copy(deep=True) for s in history]

    # --- Chat ---

    async def get_room(self, room_id: str) -> ChatRoom | None:
        room = self._state.rooms.get(room_id)
        return room.model_copy(deep=True) if room else None

    async def save_room(self, room: ChatRoom) -> None:
        self._state.rooms[room.id] = room.model_copy(deep=True)
        self._changed()

    async def get_message(self, message_id: str) -> ChatMessage | None:
        message = self._state.messages.get(message_id)
        return message.model_copy(deep=True) if message else None

    async def save_message(self, message: ChatMessage) -> None:
        self._state.messages[message.id] = message.model_copy(deep=True)
        self._changed()

    async def list_room_messages(
        self,
        room_id: str,
        content_types: tuple[str, ...] | None = None,
        limit: int | None = None,
    ) -> list[ChatMessage]:
        messages = [
            m
            for m in self._state.messages.values()
            if m.room_id == room_id
            and not m.deleted
            and (content_types is None or m.content_type in content_types)
        ]
        messages.sort(key=lambda m: m.sequence)
        if limit is not None:
            messages = messages[:limit]
        return [m.model_copy(deep=True) for m in messages]

    async def get_chat_analysis(self, room_id: str) -> ChatAnalysis | None:
        analysis = self._state.chat_analyses.get(room_id)
        return analysis.model_copy(deep=True) if analysis else None

    async def upsert_chat_analysis(self, room_id: str, **fields: Any) -> ChatAnalysis:
        existing = self._state.chat_analyses.get(room_id)
        if existing is None:
            record = ChatAnalysis(room_id=room_id, **fields)
        else:
            record = ChatAnalysis.model_validate(
                {**existing.model_dump(), **fields, "room_id": room_id}
            )
        self._state.chat_analyses[room_id] = record
        self._changed()
        return record.model_copy(deep=True)
