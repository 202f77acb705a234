# src/processing/reconciler.py — v1
"""Reconciliation sweep for stalled document chains.

Under fallback mode a crash between "stage completed" and "next stage
enqueued" loses the rest of the chain. The sweep re-derives the missing
work from status plus artifacts:

- no extracted text                      -> extract
- text but no summary                    -> summarize
- summary but no evaluation              -> evaluate
- artifact present, status not completed -> status repaired, nothing enqueued

Stages recorded as processing are left alone until their last status write
is older than ``stalled_after_s`` (a worker crashed mid-stage); then they
are resubmitted. Stages recorded as failed are only resubmitted with
``include_failed``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Literal

from pydantic import BaseModel, Field

from linklore.core.models import Document, ProcessingStatus, utcnow

if TYPE_CHECKING:
    from linklore.processing.status import StatusStore
    from linklore.queue.jobs import JobQueue
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

ActionKind = Literal["enqueue", "repair", "skip"]


class ReconcileAction(BaseModel):
    document_id: str
    stage: str
    kind: ActionKind
    job_id: str | None = None
    reason: str = ""


class ReconcileReport(BaseModel):
    """What one sweep did."""

    scanned: int = 0
    actions: list[ReconcileAction] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def enqueued(self) -> list[ReconcileAction]:
        return [a for a in self.actions if a.kind == "enqueue"]

    @property
    def repaired(self) -> list[ReconcileAction]:
        return [a for a in self.actions if a.kind == "repair"]


class Reconciler:
    """Finds stalled documents and resubmits the next stage."""

    def __init__(
        self,
        repository: BaseRepository,
        status_store: StatusStore,
        job_queue: JobQueue,
        stalled_after_s: float = 1800.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._status = status_store
        self._jobs = job_queue
        self._stalled_after = timedelta(seconds=stalled_after_s)
        self._clock = clock

    async def plan_document(
        self, doc: Document, include_failed: bool = False
    ) -> ReconcileAction | None:
        """Decide the single action needed for one document, if any."""
        status = doc.processing_status

        if not doc.extracted_text:
            return self._gate(doc.id, "extract", status, include_failed)

        summary = await self._repository.get_latest_summary(doc.id)
        if summary is None:
            return self._gate(doc.id, "summarize", status, include_failed)
        if not status.is_completed("summarize"):
            return ReconcileAction(
                document_id=doc.id, stage="summarize", kind="repair",
                reason="summary exists",
            )

        evaluation = await self._repository.get_latest_evaluation(doc.id)
        if evaluation is None:
            return self._gate(doc.id, "evaluate", status, include_failed)
        if not status.is_completed("evaluate"):
            return ReconcileAction(
                document_id=doc.id, stage="evaluate", kind="repair",
                reason="evaluation exists",
            )
        return None

    def _is_stalled(self, status: ProcessingStatus) -> bool:
        stamped = status.last_processed_at
        return stamped is not None and self._clock() - stamped >= self._stalled_after

    def _gate(
        self, document_id: str, stage: str, status: ProcessingStatus, include_failed: bool
    ) -> ReconcileAction:
        state = status.state_of(stage)
        if state == "processing" and self._is_stalled(status):
            return ReconcileAction(
                document_id=document_id, stage=stage, kind="enqueue",
                reason="stalled in processing",
            )
        if state == "processing":
            return ReconcileAction(
                document_id=document_id, stage=stage, kind="skip", reason="processing"
            )
        if state == "failed" and not include_failed:
            return ReconcileAction(
                document_id=document_id, stage=stage, kind="skip", reason="failed"
            )
        return ReconcileAction(
            document_id=document_id, stage=stage, kind="enqueue", reason=f"status {state}"
        )

    async def run(
        self,
        limit: int = 20,
        include_failed: bool = False,
        dry_run: bool = False,
    ) -> ReconcileReport:
        """Sweep documents oldest first, acting on at most `limit` of them."""
        report = ReconcileReport()
        for doc in await self._repository.list_documents():
            if len(report.enqueued) + len(report.repaired) >= limit:
                break
            report.scanned += 1
            action = await self.plan_document(doc, include_failed=include_failed)
            if action is None:
                continue
            if action.kind != "skip" and not dry_run:
                try:
                    await self._apply(action)
                except Exception as exc:
                    logger.exception(
                        "Reconcile %s for document %s failed (non-fatal)",
                        action.stage, doc.id,
                    )
                    report.errors[doc.id] = str(exc)
                    continue
            report.actions.append(action)

        logger.info(
            "Reconcile sweep: scanned=%d enqueued=%d repaired=%d errors=%d",
            report.scanned, len(report.enqueued), len(report.repaired), len(report.errors),
        )
        return report

    async def _apply(self, action: ReconcileAction) -> None:
        if action.kind == "repair":
            await self._status.update_status(action.document_id, action.stage, "completed")
            return
        if action.stage == "extract":
            handle = await self._jobs.enqueue_extract(action.document_id)
        elif action.stage == "summarize":
            handle = await self._jobs.enqueue_summarize(action.document_id)
        else:
            handle = await self._jobs.enqueue_evaluate(action.document_id)
        action.job_id = handle.id
        logger.info(
            "Re-enqueued %s for document %s (job %s)",
            action.stage, action.document_id, handle.id,
        )
