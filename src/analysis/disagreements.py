# src/analysis/disagreements.py — v1
"""Disagreement analyzer over the documents of one topic.

Incremental mode (a new document id is given) compares only that document
with the others; full mode compares every pair. Only documents whose
latest evaluation passes the quality gate take part, and a pair needs a
summary with claims on both sides.

Results are deduplicated by an md5 id over ``doc1-doc2-title`` and only
unseen ids are written. Per (topic, document) key, a finished run is
reused for the debounce window and a concurrent run is awaited rather
than repeated.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import TYPE_CHECKING, Callable

from linklore.analysis.doc_tree import ancestor_path, index_documents, merged_branch_path
from linklore.core.models import Disagreement, Document, Summary
from linklore.pipeline.agents.disagreement_analyst import (
    DisagreementAnalystAgent,
    DisagreementInput,
    DisagreementReply,
    DocumentDigest,
)
from linklore.processing.quality import evaluation_quality
from linklore.processing.rubrics import QualityThresholds

if TYPE_CHECKING:
    from linklore.llm.router import AIRouter
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Viewpoint disagreement"
_SEVERITIES = ("low", "medium", "high")


def disagreement_id(doc1_id: str, doc2_id: str, title: str) -> str:
    return hashlib.md5(f"{doc1_id}-{doc2_id}-{title}".encode("utf-8")).hexdigest()


def cache_key(topic_id: str, new_document_id: str | None) -> str:
    return f"topic:{topic_id}:{new_document_id or 'all'}"


class DisagreementAnalyzer:
    """Finds, deduplicates and stores disagreements of a topic.

    Args:
        repository: Persistence backend.
        router: AI router for the pairwise comparisons.
        thresholds: Quality gate for participating documents.
        batch_size: Pairs compared concurrently per batch.
        debounce_s: How long a finished run is reused for the same key.
        text_limit: Character cap for the material sent per pair.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        repository: BaseRepository,
        router: AIRouter,
        thresholds: QualityThresholds | None = None,
        batch_size: int = 10,
        debounce_s: float = 300.0,
        text_limit: int = 15_000,
        agent: DisagreementAnalystAgent | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._router = router
        self._thresholds = thresholds or QualityThresholds()
        self._batch_size = max(1, batch_size)
        self._debounce_s = debounce_s
        self._text_limit = text_limit
        self._agent = agent or DisagreementAnalystAgent()
        self._clock = clock
        self._cache: dict[str, tuple[float, list[Disagreement]]] = {}
        self._in_flight: dict[str, asyncio.Task[list[Disagreement]]] = {}

    async def analyze_disagreements(
        self, topic_id: str, new_document_id: str | None = None
    ) -> list[Disagreement]:
        key = cache_key(topic_id, new_document_id)
        self._evict_expired()
        cached = self._cache.get(key)
        if cached is not None:
            logger.info("Reusing disagreement analysis for %s", key)
            return cached[1]

        running = self._in_flight.get(key)
        if running is not None:
            logger.info("Disagreement analysis already running for %s, waiting", key)
            return await running

        task = asyncio.ensure_future(self._perform(topic_id, new_document_id))
        self._in_flight[key] = task
        try:
            result = await task
            self._cache[key] = (self._clock(), result)
            return result
        finally:
            self._in_flight.pop(key, None)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (at, _) in self._cache.items() if now - at >= self._debounce_s]
        for key in expired:
            del self._cache[key]

    async def _perform(
        self, topic_id: str, new_document_id: str | None
    ) -> list[Disagreement]:
        docs = await self._repository.list_topic_documents(topic_id)
        quality = [d for d in docs if await self._passes_quality(d)]
        logger.info(
            "Topic %s: %d documents, %d pass the quality gate", topic_id, len(docs), len(quality)
        )
        if len(quality) < 2:
            return []

        pairs: list[tuple[Document, Document]] = []
        if new_document_id:
            new_doc = next((d for d in quality if d.id == new_document_id), None)
            if new_doc is None:
                logger.info("Document %s missing or below the quality gate", new_document_id)
                return []
            pairs = [(new_doc, d) for d in quality if d.id != new_document_id]
        else:
            pairs = [
                (quality[i], quality[j])
                for i in range(len(quality))
                for j in range(i + 1, len(quality))
            ]

        by_id = index_documents(docs)
        found: list[Disagreement] = []
        for start in range(0, len(pairs), self._batch_size):
            batch = pairs[start : start + self._batch_size]
            results = await asyncio.gather(
                *(self._analyze_pair(topic_id, a, b, by_id) for a, b in batch)
            )
            found.extend(r for r in results if r is not None)

        unique: dict[str, Disagreement] = {}
        for d in found:
            unique.setdefault(d.id, d)
        await self._save_new(topic_id, list(unique.values()))
        return list(unique.values())

    async def _passes_quality(self, doc: Document) -> bool:
        evaluation = await self._repository.get_latest_evaluation(doc.id)
        return evaluation is not None and evaluation_quality(evaluation, self._thresholds).is_sufficient

    async def _analyze_pair(
        self,
        topic_id: str,
        doc1: Document,
        doc2: Document,
        by_id: dict[str, Document],
    ) -> Disagreement | None:
        summary1 = await self._repository.get_latest_summary(doc1.id)
        summary2 = await self._repository.get_latest_summary(doc2.id)
        if summary1 is None or summary2 is None or not summary1.claims or not summary2.claims:
            return None

        try:
            output = await self._agent.execute(
                DisagreementInput(
                    doc1=_digest(doc1, summary1),
                    doc2=_digest(doc2, summary2),
                    text_limit=self._text_limit,
                ),
                self._router,
                user_id=doc1.author_id,
            )
        except Exception as exc:
            logger.error("Pair (%s, %s) analysis failed: %s", doc1.id, doc2.id, exc)
            return None

        reply = DisagreementReply.model_validate(output.data)
        if not reply.disagreements:
            return None

        first = reply.disagreements[0]
        title = first.title or DEFAULT_TITLE
        severity = first.severity if first.severity in _SEVERITIES else "medium"
        confidence = min(1.0, max(0.0, first.confidence)) if first.confidence else 0.5
        return Disagreement(
            id=disagreement_id(doc1.id, doc2.id, title),
            topic_id=topic_id,
            title=title,
            description=first.description or "",
            claim1=first.claim1 or "",
            claim2=first.claim2 or "",
            doc1_id=doc1.id,
            doc2_id=doc2.id,
            severity=severity,
            confidence=confidence,
            branch_path=merged_branch_path(
                ancestor_path(doc1.id, by_id), ancestor_path(doc2.id, by_id)
            ),
        )

    async def _save_new(self, topic_id: str, disagreements: list[Disagreement]) -> None:
        existing = {d.id for d in await self._repository.list_disagreements(topic_id)}
        saved = 0
        for d in disagreements:
            if d.id in existing:
                continue
            await self._repository.save_disagreement(d)
            saved += 1
        logger.info(
            "Topic %s: %d disagreements found, %d new", topic_id, len(disagreements), saved
        )


def _digest(doc: Document, summary: Summary) -> DocumentDigest:
    return DocumentDigest(
        document_id=doc.id,
        title=summary.title,
        overview=summary.overview,
        claims=summary.claims,
    )
