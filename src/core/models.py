# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
Broker-level job types live in queue/models.py.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

Stage = Literal[
    "extract", "summarize", "evaluate", "analyzeDisagreements", "trackConsensus"
]
StageState = Literal["pending", "processing", "completed", "failed"]

ALL_STAGES: tuple[str, ...] = (
    "extract",
    "summarize",
    "evaluate",
    "analyzeDisagreements",
    "trackConsensus",
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# === PROCESSING STATUS ===


class ProcessingStatus(BaseModel):
    """Per-document stage map plus per-stage error text."""

    stages: dict[str, StageState] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    last_processed_at: datetime | None = None

    def state_of(self, stage: str) -> StageState:
        """Recorded state for a stage; unknown stages read as pending."""
        return self.stages.get(stage, "pending")

    def is_completed(self, stage: str) -> bool:
        return self.state_of(stage) == "completed"


# === DOCUMENTS & TOPICS ===


class Topic(BaseModel):
    """Groups one root document and its replies."""

    id: str
    title: str = ""
    subtitle: str | None = None
    discipline: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Document(BaseModel):
    """Uploaded document; mutated only by stage workers."""

    id: str
    topic_id: str
    author_id: str
    parent_id: str | None = None
    file_key: str = ""
    mime_type: str = ""
    filename: str = ""
    extracted_text: str | None = None
    processing_status: ProcessingStatus = Field(default_factory=ProcessingStatus)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class SummaryStructure(BaseModel):
    """Outline of a document's argument."""

    sections: list[str] = Field(default_factory=list)
    arguments: list[str] = Field(default_factory=list)
    logic: str = "pending"


class Summary(BaseModel):
    """Structured summary of one document. Latest row wins."""

    document_id: str
    title: str
    overview: str
    structure: SummaryStructure = Field(default_factory=SummaryStructure)
    claims: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    counterpoints: list[str] = Field(default_factory=list)
    degraded: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class DimensionScore(BaseModel):
    """Score for one rubric dimension with the model's reasoning."""

    score: float = Field(ge=0.0, le=10.0)
    reasoning: str = ""


class Evaluation(BaseModel):
    """Rubric evaluation of one document. Latest row wins."""

    document_id: str
    discipline: str
    rubric_version: str = "v1.0"
    scores: dict[str, DimensionScore] = Field(default_factory=dict)
    verdict: str = "evaluation complete"
    degraded: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    def score_values(self) -> dict[str, float]:
        """Dimension -> numeric score."""
        return {name: dim.score for name, dim in self.scores.items()}


# === CROSS-DOCUMENT ANALYSIS ===


class Disagreement(BaseModel):
    """AI-detected disagreement between two documents of one topic."""

    id: str
    topic_id: str
    title: str
    description: str = ""
    claim1: str = ""
    claim2: str = ""
    doc1_id: str
    doc2_id: str
    severity: Literal["low", "medium", "high"] = "medium"
    confidence: float = 0.5
    branch_path: list[str] = Field(default_factory=list)
    ai_generated: bool = True
    verified: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class DiscussionPath(BaseModel):
    """Direct reply edge between the two users of a pair."""

    path: list[str]
    depth: int
    direction: Literal["user1->user2", "user2->user1"]


class ConsensusPoint(BaseModel):
    """Point both users of a pair agree on."""

    text: str
    support_count: int = 1
    doc_ids: list[str] = Field(default_factory=list)
    similarity: float = 0.8


class PairDisagreementPoint(BaseModel):
    """Point the two users of a pair disagree on."""

    claim1: str = ""
    claim2: str = ""
    doc1_id: str = ""
    doc2_id: str = ""
    description: str = ""
    similarity: float = 0.2


class UserPairConsensus(BaseModel):
    """Consensus metrics for one (topic, user1, user2); user_id1 < user_id2."""

    topic_id: str
    user_id1: str
    user_id2: str
    consensus_score: float = 0.5
    divergence_score: float = 0.5
    consensus_points: list[ConsensusPoint] = Field(default_factory=list)
    disagreement_points: list[PairDisagreementPoint] = Field(default_factory=list)
    doc_ids: list[str] = Field(default_factory=list)
    discussion_paths: list[DiscussionPath] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)


class TopicConsensusSnapshot(BaseModel):
    """Topic-wide fold of all user-pair records at one point in time."""

    topic_id: str
    snapshot_at: datetime = Field(default_factory=utcnow)
    consensus_score: float = 0.5
    divergence_score: float = 0.5
    trend: Literal["converging", "diverging", "stable"] = "stable"
    key_points: list[str] = Field(default_factory=list)
    disagreements: list[str] = Field(default_factory=list)
    pair_count: int = 0
    records_updated_at: datetime | None = None  # newest pair record folded in


# === CHAT ===

ContentType = Literal["USER", "AI_SUGGESTION", "AI_ADOPTED"]
ModerationStatus = Literal["SAFE", "WARNING", "BLOCKED"]


class ChatRoom(BaseModel):
    """Discussion room. Only DUO rooms are analyzed."""

    id: str
    type: Literal["DUO", "SOLO"] = "DUO"
    creator_id: str
    participant_id: str | None = None


class ChatMessage(BaseModel):
    """One chat message with optional references to earlier messages."""

    id: str
    room_id: str
    sender_id: str
    content: str
    content_type: ContentType = "USER"
    sequence: int = 0
    reference_ids: list[str] = Field(default_factory=list)
    deleted: bool = False
    moderation_status: ModerationStatus | None = None
    moderation_note: str | None = None
    moderation_score: float | None = None
    moderation_details: dict[str, object] | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ModerationDetails(BaseModel):
    """Itemized findings of the moderation model."""

    topic_drift: str | None = None
    premise_error: str | None = None
    premise_unclear: str | None = None
    fact_speculation_confusion: str | None = None
    logical_fallacies: list[str] = Field(default_factory=list)
    reasoning_chain_break: str | None = None
    emotional_expression: str | None = None
    emotional_escalation: str | None = None
    disrespectful_content: str | None = None
    disagreement_type: str | None = None
    consensus_conflict: str | None = None
    ai_factual_error: str | None = None
    ai_value_judgment: str | None = None
    suggestions: list[str] = Field(default_factory=list)


class ModerationResult(BaseModel):
    """Outcome of moderating one message."""

    status: ModerationStatus = "SAFE"
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    note: str = ""
    details: ModerationDetails = Field(default_factory=ModerationDetails)


class ChatConsensusPoint(BaseModel):
    message_id: str
    content: str
    confidence: float
    created_at: datetime
    participants: list[str] = Field(default_factory=list)


class ChatDisagreementPoint(BaseModel):
    message_id1: str
    message_id2: str
    type: Literal["OPPOSITE", "DIFFERENT_VIEW", "CONTRADICTION"]
    severity: float
    reason: str
    created_at: datetime


class TrendPoint(BaseModel):
    timestamp: str
    score: float
    count: int


class ChatAnalysis(BaseModel):
    """Room-keyed analysis record, written by idempotent upsert."""

    room_id: str
    consensus_points: list[ChatConsensusPoint] = Field(default_factory=list)
    consensus_score: float = 0.5
    consensus_trend: list[TrendPoint] = Field(default_factory=list)
    disagreement_points: list[ChatDisagreementPoint] = Field(default_factory=list)
    divergence_score: float = 0.5
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
    total_warnings: int = 0
    blocked_messages: int = 0
    creator_warnings: int = 0
    participant_warnings: int = 0
    last_analyzed_at: datetime | None = None
