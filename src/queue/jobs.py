# src/queue/jobs.py — v1
"""Enqueue surface: one method per stage or analysis job.

Each method returns a JobHandle immediately. While the broker adapter
accepts work the handle carries the broker's id; otherwise the registered
handler for the job name is submitted once to the fallback pool and the
handle id is FALLBACK_JOB_ID. Callers must not rely on either id being
queryable later.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from linklore.queue.broker import BrokerUnavailableError
from linklore.queue.models import (
    FALLBACK_JOB_ID,
    Backoff,
    JobHandle,
    JobOptions,
    Retention,
    RetentionPolicy,
)

if TYPE_CHECKING:
    from linklore.config.settings import Settings
    from linklore.queue.adapter import BrokerAdapter
    from linklore.queue.fallback import FallbackExecutor
    from linklore.queue.handlers import JobHandlerRegistry
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

# === JOB NAMES ===

EXTRACT = "extract"
SUMMARIZE = "summarize"
EVALUATE = "evaluate"
ANALYZE_DISAGREEMENTS = "analyzeDisagreements"
USER_PAIR_ANALYSIS = "userPairAnalysis"
TRACK_CONSENSUS = "trackConsensus"
MODERATE = "moderate"
CHAT_ANALYSIS = "chatAnalysis"

ALL_JOBS: tuple[str, ...] = (
    EXTRACT,
    SUMMARIZE,
    EVALUATE,
    ANALYZE_DISAGREEMENTS,
    USER_PAIR_ANALYSIS,
    TRACK_CONSENSUS,
    MODERATE,
    CHAT_ANALYSIS,
)

# === PRIORITIES (higher number is served first) ===

ROOT_DOCUMENT_PRIORITY = 20
REPLY_DOCUMENT_PRIORITY = 10
ANALYSIS_PRIORITY = 5
USER_PAIR_PRIORITY = 3
CHAT_PRIORITY = 2
EXTRACT_PRIORITY = 1

# === RETENTION ===

DOCUMENT_RETENTION = Retention(
    on_complete=RetentionPolicy(count=50),
    on_fail=RetentionPolicy(count=50),
)
CHAT_RETENTION = Retention(
    on_complete=RetentionPolicy(age_s=3600, count=1000),
    on_fail=RetentionPolicy(age_s=24 * 3600),
)


def extract_options() -> JobOptions:
    return JobOptions(priority=EXTRACT_PRIORITY, attempts=1, retention=DOCUMENT_RETENTION)


def ai_stage_options(is_root: bool, attempts: int, backoff_delay_ms: int) -> JobOptions:
    """Summarize/evaluate: retried with exponential backoff, roots first."""
    return JobOptions(
        priority=ROOT_DOCUMENT_PRIORITY if is_root else REPLY_DOCUMENT_PRIORITY,
        attempts=attempts,
        backoff=Backoff(type="exponential", delay_ms=backoff_delay_ms),
        retention=DOCUMENT_RETENTION,
    )


def analysis_options(priority: int) -> JobOptions:
    return JobOptions(priority=priority, attempts=1, retention=DOCUMENT_RETENTION)


def chat_options() -> JobOptions:
    return JobOptions(
        priority=CHAT_PRIORITY,
        attempts=2,
        backoff=Backoff(type="exponential", delay_ms=2000),
        retention=CHAT_RETENTION,
    )


class JobQueue:
    """Broker-first enqueue with in-process fallback.

    Args:
        adapter: Circuit-guarded broker adapter; None forces fallback mode.
        fallback: Pool that runs handlers when the broker is unavailable.
        handlers: Registry resolving job names to handlers.
        repository: Used to pick root vs reply priority.
        settings: Retry attempts and backoff for AI stages.
    """

    def __init__(
        self,
        adapter: BrokerAdapter | None,
        fallback: FallbackExecutor,
        handlers: JobHandlerRegistry,
        repository: BaseRepository,
        settings: Settings,
    ) -> None:
        self._adapter = adapter
        self._fallback = fallback
        self._handlers = handlers
        self._repository = repository
        self._settings = settings

    @property
    def broker_available(self) -> bool:
        return self._adapter is not None and self._adapter.available

    async def dispatch(
        self, name: str, data: dict[str, Any], options: JobOptions
    ) -> JobHandle:
        """Send one job to the broker, or run its handler once in fallback."""
        if self._adapter is not None and self._adapter.available:
            try:
                return await self._adapter.enqueue(name, data, options)
            except BrokerUnavailableError as exc:
                logger.warning(
                    "Failed to enqueue %s (%s), using in-process fallback", name, exc
                )
        else:
            logger.debug("Broker unavailable, running %s in-process", name)

        handler = self._handlers.get(name)
        await self._fallback.run_async(handler, data, name=name)
        return JobHandle(id=FALLBACK_JOB_ID, name=name, data=data)

    async def _ai_stage_options(self, document_id: str) -> JobOptions:
        doc = await self._repository.get_document(document_id)
        is_root = doc.is_root if doc is not None else False
        return ai_stage_options(
            is_root,
            self._settings.ai_retry_attempts,
            self._settings.ai_retry_backoff_delay_ms,
        )

    # --- Document chain ---

    async def enqueue_extract(self, document_id: str) -> JobHandle:
        return await self.dispatch(EXTRACT, {"document_id": document_id}, extract_options())

    async def enqueue_summarize(self, document_id: str) -> JobHandle:
        options = await self._ai_stage_options(document_id)
        return await self.dispatch(SUMMARIZE, {"document_id": document_id}, options)

    async def enqueue_evaluate(self, document_id: str) -> JobHandle:
        options = await self._ai_stage_options(document_id)
        return await self.dispatch(EVALUATE, {"document_id": document_id}, options)

    # --- Cross-document analyses ---

    async def enqueue_analyze_disagreements(
        self, topic_id: str, new_document_id: str | None = None
    ) -> JobHandle:
        data = {"topic_id": topic_id, "new_document_id": new_document_id}
        return await self.dispatch(
            ANALYZE_DISAGREEMENTS, data, analysis_options(ANALYSIS_PRIORITY)
        )

    async def enqueue_user_pair_analysis(
        self,
        topic_id: str,
        user_id1: str | None = None,
        user_id2: str | None = None,
    ) -> JobHandle:
        data = {"topic_id": topic_id, "user_id1": user_id1, "user_id2": user_id2}
        return await self.dispatch(
            USER_PAIR_ANALYSIS, data, analysis_options(USER_PAIR_PRIORITY)
        )

    async def enqueue_track_consensus(
        self, topic_id: str, document_id: str | None = None
    ) -> JobHandle:
        data = {"topic_id": topic_id, "document_id": document_id}
        return await self.dispatch(
            TRACK_CONSENSUS, data, analysis_options(ANALYSIS_PRIORITY)
        )

    # --- Chat ---

    async def enqueue_moderation(self, message_id: str, room_id: str) -> JobHandle:
        data = {"message_id": message_id, "room_id": room_id}
        return await self.dispatch(MODERATE, data, chat_options())

    async def enqueue_chat_analysis(self, room_id: str) -> JobHandle:
        return await self.dispatch(CHAT_ANALYSIS, {"room_id": room_id}, chat_options())
