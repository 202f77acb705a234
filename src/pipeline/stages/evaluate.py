# src/pipeline/stages/evaluate.py — v1
"""Evaluate stage: rubric scores, citation clamp, cross-document quorum.

Once a topic has at least `analysis_quorum` evaluated documents, every
further evaluation fires the three cross-document analyses. Each trigger
is attempted and logged on its own; none can fail the stage.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from linklore.core.models import Document, Evaluation
from linklore.pipeline.agents.evaluator import (
    COMPLETE_VERDICT,
    EvaluationReply,
    EvaluatorAgent,
    EvaluatorInput,
    apply_citation_clamp,
    normalize_scores,
)
from linklore.pipeline.stages.base_stage import BaseStage
from linklore.processing.citations import has_citations
from linklore.processing.rubrics import DEFAULT_DISCIPLINE, RUBRIC_VERSION, get_rubric

if TYPE_CHECKING:
    from linklore.config.settings import Settings
    from linklore.llm.router import AIRouter
    from linklore.processing.status import StatusStore
    from linklore.queue.jobs import JobQueue
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EvaluateStage(BaseStage):
    def __init__(
        self,
        repository: BaseRepository,
        status_store: StatusStore,
        job_queue: JobQueue,
        router: AIRouter,
        settings: Settings,
        agent: EvaluatorAgent | None = None,
    ) -> None:
        super().__init__(repository, status_store, job_queue)
        self._router = router
        self._text_limit = settings.ai_evaluate_text_limit
        self._quorum = settings.analysis_quorum
        self._agent = agent or EvaluatorAgent()

    @property
    def name(self) -> str:
        return "evaluate"

    async def _process(self, doc: Document) -> None:
        if not doc.extracted_text:
            raise ValueError(f"Document {doc.id} has no extracted text")

        topic = await self._repository.get_topic(doc.topic_id)
        rubric = get_rubric(topic.discipline if topic is not None else None)
        summary = await self._repository.get_latest_summary(doc.id)

        text = doc.extracted_text
        cited = has_citations(text)
        if len(text) > self._text_limit:
            logger.info("Text truncated from %d to %d characters", len(text), self._text_limit)

        output = await self._agent.execute(
            EvaluatorInput(
                text=text[: self._text_limit],
                rubric=rubric,
                has_citations=cited,
                summary_overview=summary.overview if summary is not None else None,
                text_limit=self._text_limit,
            ),
            self._router,
            user_id=doc.author_id,
        )
        reply = EvaluationReply.model_validate(output.data)
        scores = normalize_scores(reply, rubric)
        apply_citation_clamp(scores, cited)

        await self._repository.save_evaluation(
            Evaluation(
                document_id=doc.id,
                discipline=rubric.discipline,
                rubric_version=RUBRIC_VERSION,
                scores=scores,
                verdict=reply.verdict or COMPLETE_VERDICT,
                degraded=output.is_degraded,
            )
        )

        if (
            topic is not None
            and topic.discipline
            and topic.discipline != rubric.discipline
            and rubric.discipline != DEFAULT_DISCIPLINE
        ):
            # Aliases such as "哲学" are stored under the canonical rubric name.
            await self._repository.update_topic(doc.topic_id, discipline=rubric.discipline)

    async def _on_completed(self, doc: Document) -> None:
        try:
            evaluated = await self.count_evaluated(doc.topic_id)
        except Exception:
            logger.exception("Quorum check for topic %s failed (non-fatal)", doc.topic_id)
            return
        if evaluated < self._quorum:
            logger.info(
                "Topic %s has %d evaluated documents, quorum is %d",
                doc.topic_id, evaluated, self._quorum,
            )
            return
        await self.trigger_cross_document_analyses(doc)

    async def count_evaluated(self, topic_id: str) -> int:
        docs = await self._repository.list_topic_documents(topic_id)
        return sum(1 for d in docs if d.processing_status.is_completed("evaluate"))

    async def trigger_cross_document_analyses(self, doc: Document) -> None:
        topic_id = doc.topic_id
        try:
            await self._jobs.enqueue_analyze_disagreements(topic_id, doc.id)
        except Exception:
            logger.exception("Failed to enqueue disagreement analysis for topic %s", topic_id)

        try:
            # One job per quorum event; it narrows to the author's pairs itself.
            await self._jobs.enqueue_user_pair_analysis(topic_id, doc.author_id)
        except Exception:
            logger.exception("Failed to enqueue user pair analysis for topic %s", topic_id)

        try:
            await self._jobs.enqueue_track_consensus(topic_id, doc.id)
        except Exception:
            logger.exception("Failed to enqueue consensus tracking for topic %s", topic_id)
