# src/pipeline/stages/extract.py — v1
"""Extract stage: stored bytes -> normalized text, then enqueue summarize."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from linklore.core.models import Document
from linklore.extraction.base_extractor import ConversionError
from linklore.extraction.extractor_factory import create_extractor
from linklore.extraction.normalize import infer_title, is_placeholder_title, normalize_text
from linklore.pipeline.stages.base_stage import BaseStage

if TYPE_CHECKING:
    from linklore.processing.status import StatusStore
    from linklore.queue.jobs import JobQueue
    from linklore.storage.base_object_store import BaseObjectStore
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ExtractStage(BaseStage):
    """Convert an uploaded file to plain text.

    UnsupportedFormatError from the converter registry is terminal: the
    extract job is enqueued with a single attempt.
    """

    def __init__(
        self,
        repository: BaseRepository,
        status_store: StatusStore,
        job_queue: JobQueue,
        object_store: BaseObjectStore,
    ) -> None:
        super().__init__(repository, status_store, job_queue)
        self._objects = object_store

    @property
    def name(self) -> str:
        return "extract"

    async def _process(self, doc: Document) -> None:
        data = await self._objects.get(doc.file_key)
        logger.debug("Loaded %d bytes for %s", len(data), doc.file_key)

        extractor = create_extractor(doc.filename or doc.file_key, doc.mime_type)
        text = normalize_text(await extractor.extract(data))
        if not text:
            raise ConversionError(f"No text could be extracted from {doc.file_key}")
        await self._backfill_title(doc, text)
        await self._repository.set_extracted_text(doc.id, text)
        logger.info("Extracted %d characters from document %s", len(text), doc.id)

    async def _backfill_title(self, doc: Document, text: str) -> None:
        title = infer_title(text)
        if not title:
            return
        try:
            topic = await self._repository.get_topic(doc.topic_id)
            if topic is not None and is_placeholder_title(topic.title):
                await self._repository.update_topic(doc.topic_id, title=title)
                logger.info("Topic %s title set from text: %s", doc.topic_id, title)
        except Exception:
            logger.warning("Title backfill for topic %s failed (non-fatal)", doc.topic_id, exc_info=True)

    async def _on_completed(self, doc: Document) -> None:
        try:
            handle = await self._jobs.enqueue_summarize(doc.id)
            logger.info("Summarize job %s enqueued for document %s", handle.id, doc.id)
        except Exception:
            logger.exception("Failed to enqueue summarize for document %s", doc.id)
