# src/processing/status.py — v1
"""Per-document stage status store and dependency resolver.

The stage map on each document is the only authoritative record of where
the document is in the pipeline. Writes are read-modify-write; each stage
enqueues the next only after finishing, so one stage is active per
document at a time. A per-document lock (dropped once idle) additionally serializes
writes issued from the same process.

Self-heal: when a dependency is not recorded as completed but its artifact
exists (text, summary row, evaluation row), it counts as completed and the
stored status is repaired.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from linklore.core.locks import KeyedLocks
from linklore.core.models import ProcessingStatus, StageState, utcnow
from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

STAGE_DEPENDENCIES: dict[str, tuple[str, ...]] = {
    "extract": (),
    "summarize": ("extract",),
    "evaluate": ("summarize",),
    "analyzeDisagreements": ("evaluate",),
    "trackConsensus": ("evaluate",),
}


@dataclass
class DependencyCheck:
    """Result of a dependency check."""

    ready: bool
    missing: list[str] = field(default_factory=list)
    healed: list[str] = field(default_factory=list)


class DependenciesNotReadyError(Exception):
    """A stage was invoked before its prerequisites resolved."""

    def __init__(self, document_id: str, stage: str, missing: list[str]) -> None:
        self.document_id = document_id
        self.stage = stage
        self.missing = list(missing)
        super().__init__(
            f"Dependencies not ready for {stage} on document {document_id}: "
            f"{', '.join(self.missing)}"
        )


class StatusStore:
    """Reads and writes document stage status through the repository."""

    def __init__(self, repository: BaseRepository) -> None:
        self._repository = repository
        self._locks = KeyedLocks()

    async def update_status(
        self,
        document_id: str,
        stage: str,
        status: StageState,
        error: str | None = None,
    ) -> None:
        """Set one stage's state.

        An error message is recorded for the stage when given; a completed
        state without error clears any earlier message. The processed time
        is always stamped. Unknown documents are logged and ignored.
        """
        async with self._locks.lock(document_id):
            doc = await self._repository.get_document(document_id)
            if doc is None:
                logger.warning(
                    "Cannot set %s=%s: document %s not found", stage, status, document_id
                )
                return

            current = doc.processing_status
            stages = {**current.stages, stage: status}
            errors = dict(current.errors)
            if error:
                errors[stage] = error
            elif status == "completed":
                errors.pop(stage, None)

            await self._repository.save_processing_status(
                document_id,
                ProcessingStatus(stages=stages, errors=errors, last_processed_at=utcnow()),
            )
        logger.debug("Document %s: %s -> %s", document_id, stage, status)

    async def get_processing_status(self, document_id: str) -> ProcessingStatus | None:
        """Stage map of a document, or None when it does not exist."""
        doc = await self._repository.get_document(document_id)
        return doc.processing_status if doc is not None else None

    async def check_dependencies(self, document_id: str, stage: str) -> DependencyCheck:
        """Check whether `stage` may run on a document.

        A dependency that is neither completed nor healable is reported
        missing together with its own unresolved prerequisites, so evaluate
        on a fresh document reports both summarize and extract.
        """
        doc = await self._repository.get_document(document_id)
        if doc is None:
            logger.warning("Dependency check: document %s not found", document_id)
            return DependencyCheck(ready=False, missing=[stage])

        status = doc.processing_status
        missing: list[str] = []
        healed: list[str] = []
        pending = list(STAGE_DEPENDENCIES.get(stage, ()))
        seen: set[str] = set()

        while pending:
            dep = pending.pop(0)
            if dep in seen:
                continue
            seen.add(dep)

            if status.is_completed(dep):
                continue
            if await self._artifact_exists(document_id, dep, doc.extracted_text):
                logger.info(
                    "Document %s: %s recorded as '%s' but its output exists, "
                    "treating as completed",
                    document_id, dep, status.state_of(dep),
                )
                healed.append(dep)
                await self._repair(document_id, dep)
                continue

            missing.append(dep)
            pending.extend(STAGE_DEPENDENCIES.get(dep, ()))

        if missing:
            logger.warning(
                "Document %s not ready for %s, missing: %s",
                document_id, stage, ", ".join(missing),
            )
        return DependencyCheck(ready=not missing, missing=missing, healed=healed)

    async def require_dependencies(self, document_id: str, stage: str) -> None:
        """Raise DependenciesNotReadyError unless `stage` may run."""
        check = await self.check_dependencies(document_id, stage)
        if not check.ready:
            raise DependenciesNotReadyError(document_id, stage, check.missing)

    async def _artifact_exists(
        self, document_id: str, stage: str, extracted_text: str | None
    ) -> bool:
        if stage == "extract":
            return bool(extracted_text)
        if stage == "summarize":
            return await self._repository.get_latest_summary(document_id) is not None
        if stage == "evaluate":
            return await self._repository.get_latest_evaluation(document_id) is not None
        return False

    async def _repair(self, document_id: str, stage: str) -> None:
        try:
            await self.update_status(document_id, stage, "completed")
        except Exception:
            logger.exception(
                "Failed to repair %s status for document %s (non-fatal)", stage, document_id
            )
