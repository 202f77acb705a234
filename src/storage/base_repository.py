# src/storage/base_repository.py — v1
"""Abstract persistence interface for documents, artifacts and analyses.

Every pipeline component talks to storage through this interface only.
Implementations: memory_repository (tests, single process) and
json_repository (file-backed, default for the CLI).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

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
)


class BaseRepository(ABC):
    """Unified interface for persistence backends."""

    # --- Documents ---

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Fetch a document by id."""

    @abstractmethod
    async def save_document(self, document: Document) -> None:
        """Insert or replace a document."""

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """All documents, oldest first."""

    @abstractmethod
    async def list_topic_documents(self, topic_id: str) -> list[Document]:
        """Documents of one topic, oldest first."""

    @abstractmethod
    async def set_extracted_text(self, document_id: str, text: str) -> None:
        """Persist normalized text for a document."""

    @abstractmethod
    async def save_processing_status(
        self, document_id: str, status: ProcessingStatus
    ) -> None:
        """Replace a document's stage status map."""

    # --- Topics ---

    @abstractmethod
    async def get_topic(self, topic_id: str) -> Topic | None:
        """Fetch a topic by id."""

    @abstractmethod
    async def save_topic(self, topic: Topic) -> None:
        """Insert or replace a topic."""

    @abstractmethod
    async def update_topic(self, topic_id: str, **fields: Any) -> None:
        """Set the given fields on a topic."""

    # --- Artifacts ---

    @abstractmethod
    async def save_summary(self, summary: Summary) -> None:
        """Append a summary row (latest wins on read)."""

    @abstractmethod
    async def get_latest_summary(self, document_id: str) -> Summary | None:
        """Most recent summary for a document."""

    @abstractmethod
    async def save_evaluation(self, evaluation: Evaluation) -> None:
        """Append an evaluation row (latest wins on read)."""

    @abstractmethod
    async def get_latest_evaluation(self, document_id: str) -> Evaluation | None:
        """Most recent evaluation for a document."""

    # --- Cross-document analysis ---

    @abstractmethod
    async def list_disagreements(self, topic_id: str) -> list[Disagreement]:
        """Disagreements recorded for a topic."""

    @abstractmethod
    async def save_disagreement(self, disagreement: Disagreement) -> None:
        """Insert a disagreement (keyed by its id)."""

    @abstractmethod
    async def upsert_user_pair_consensus(self, record: UserPairConsensus) -> None:
        """Insert or replace the record keyed by (topic, user1, user2)."""

    @abstractmethod
    async def get_user_pair_consensus(
        self, topic_id: str, user_id1: str, user_id2: str
    ) -> UserPairConsensus | None:
        """Fetch one pair record; user order is irrelevant."""

    @abstractmethod
    async def list_user_pair_consensus(self, topic_id: str) -> list[UserPairConsensus]:
        """All pair records of a topic."""

    @abstractmethod
    async def add_consensus_snapshot(
        self, snapshot: TopicConsensusSnapshot, keep: int
    ) -> None:
        """Append a snapshot, dropping the oldest beyond `keep`."""

    @abstractmethod
    async def list_consensus_snapshots(
        self, topic_id: str, limit: int | None = None
    ) -> list[TopicConsensusSnapshot]:
        """Snapshots of a topic, newest first."""

    # --- Chat ---

    @abstractmethod
    async def get_room(self, room_id: str) -> ChatRoom | None:
        """Fetch a chat room by id."""

    @abstractmethod
    async def save_room(self, room: ChatRoom) -> None:
        """Insert or replace a chat room."""

    @abstractmethod
    async def get_message(self, message_id: str) -> ChatMessage | None:
        """Fetch a chat message by id."""

    @abstractmethod
    async def save_message(self, message: ChatMessage) -> None:
        """Insert or replace a chat message."""

    @abstractmethod
    async def list_room_messages(
        self,
        room_id: str,
        content_types: tuple[str, ...] | None = None,
        limit: int | None = None,
    ) -> list[ChatMessage]:
        """Non-deleted messages of a room in sequence order."""

    @abstractmethod
    async def get_chat_analysis(self, room_id: str) -> ChatAnalysis | None:
        """Fetch the analysis record of a room."""

    @abstractmethod
    async def upsert_chat_analysis(self, room_id: str, **fields: Any) -> ChatAnalysis:
        """Create or update the room's analysis record with `fields`."""
