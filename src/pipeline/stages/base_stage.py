# src/pipeline/stages/base_stage.py — v1
"""Common lifecycle of a per-document stage worker.

pending -> processing -> completed | failed, with no internal retry:

1. Dependencies are checked before anything is written; an unmet
   dependency raises DependenciesNotReadyError and leaves status alone.
2. The stage is marked processing and its body runs.
3. Any error marks the stage failed with the message and is re-raised so
   the broker can apply its retry policy.
4. On success the stage is marked completed, then follow-up work runs.
   Follow-up failures are logged and never fail the stage.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from linklore.core.errors import DocumentNotFoundError
from linklore.core.models import Document
from linklore.logging.context import set_stage_context
from linklore.processing.status import STAGE_DEPENDENCIES

if TYPE_CHECKING:
    from linklore.processing.status import StatusStore
    from linklore.queue.jobs import JobQueue
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BaseStage(ABC):
    """Shared run/handle logic for extract, summarize and evaluate."""

    def __init__(
        self,
        repository: BaseRepository,
        status_store: StatusStore,
        job_queue: JobQueue,
    ) -> None:
        self._repository = repository
        self._status = status_store
        self._jobs = job_queue

    @property
    @abstractmethod
    def name(self) -> str:
        """Stage name as recorded in the status map."""

    @abstractmethod
    async def _process(self, doc: Document) -> None:
        """Stage body. Raise to fail the stage."""

    async def _on_completed(self, doc: Document) -> None:
        """Follow-up work after the stage is marked completed."""

    async def handle(self, payload: dict[str, Any]) -> None:
        """Job handler entry point."""
        await self.run(payload["document_id"])

    async def run(self, document_id: str) -> None:
        set_stage_context(self.name, document_id)
        if STAGE_DEPENDENCIES.get(self.name):
            await self._status.require_dependencies(document_id, self.name)

        await self._status.update_status(document_id, self.name, "processing")
        try:
            doc = await self._repository.get_document(document_id)
            if doc is None:
                raise DocumentNotFoundError(document_id)
            await self._process(doc)
        except Exception as exc:
            await self._mark_failed(document_id, exc)
            raise

        await self._status.update_status(document_id, self.name, "completed")
        logger.info("Stage %s completed for document %s", self.name, document_id)
        await self._on_completed(doc)

    async def _mark_failed(self, document_id: str, exc: Exception) -> None:
        logger.error("Stage %s failed for document %s: %s", self.name, document_id, exc)
        try:
            await self._status.update_status(
                document_id, self.name, "failed", error=str(exc) or type(exc).__name__
            )
        except Exception:
            logger.exception(
                "Could not record %s failure for document %s", self.name, document_id
            )
