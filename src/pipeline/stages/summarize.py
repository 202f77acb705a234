# src/pipeline/stages/summarize.py — v1
"""Summarize stage: structured summary, subtitle backfill, enqueue evaluate."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from linklore.core.models import Document, Summary
from linklore.pipeline.agents.summarizer import SummarizerAgent, SummarizerInput, SummaryPayload
from linklore.pipeline.stages.base_stage import BaseStage

if TYPE_CHECKING:
    from linklore.config.settings import Settings
    from linklore.llm.router import AIRouter
    from linklore.processing.status import StatusStore
    from linklore.queue.jobs import JobQueue
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SummarizeStage(BaseStage):
    def __init__(
        self,
        repository: BaseRepository,
        status_store: StatusStore,
        job_queue: JobQueue,
        router: AIRouter,
        settings: Settings,
        agent: SummarizerAgent | None = None,
    ) -> None:
        super().__init__(repository, status_store, job_queue)
        self._router = router
        self._text_limit = settings.ai_summarize_text_limit
        self._agent = agent or SummarizerAgent()

    @property
    def name(self) -> str:
        return "summarize"

    async def _process(self, doc: Document) -> None:
        if not doc.extracted_text:
            raise ValueError(f"Document {doc.id} has no extracted text")

        text = doc.extracted_text
        if len(text) > self._text_limit:
            logger.info("Text truncated from %d to %d characters", len(text), self._text_limit)
        output = await self._agent.execute(
            SummarizerInput(text=text[: self._text_limit]), self._router, user_id=doc.author_id
        )
        payload = SummaryPayload.model_validate(output.data)

        await self._repository.save_summary(
            Summary(
                document_id=doc.id,
                title=payload.title,
                overview=payload.overview,
                structure=payload.structure,
                claims=payload.claims,
                keywords=payload.keywords,
                counterpoints=[],
                degraded=output.is_degraded,
            )
        )
        await self._backfill_subtitle(doc, payload.title)

    async def _backfill_subtitle(self, doc: Document, title: str) -> None:
        try:
            topic = await self._repository.get_topic(doc.topic_id)
            if topic is not None and not topic.subtitle:
                await self._repository.update_topic(doc.topic_id, subtitle=title)
                logger.info("Topic %s subtitle set from summary: %s", doc.topic_id, title)
        except Exception:
            logger.warning(
                "Subtitle backfill for topic %s failed (non-fatal)", doc.topic_id, exc_info=True
            )

    async def _on_completed(self, doc: Document) -> None:
        try:
            handle = await self._jobs.enqueue_evaluate(doc.id)
            logger.info("Evaluate job %s enqueued for document %s", handle.id, doc.id)
        except Exception:
            logger.exception("Failed to enqueue evaluate for document %s", doc.id)
