# src/logging/context.py — v1
"""Contextual logging support: attach job_id, document_id, stage to log records.

Context is set per job execution, so concurrent jobs on the same event
loop each see their own values.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_document_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document_id", default=None
)
_topic_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "topic_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    job_id: str | None = None
    document_id: str | None = None
    topic_id: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        job_id=_job_id.get(),
        document_id=_document_id.get(),
        topic_id=_topic_id.get(),
        stage=_stage.get(),
    )


def set_job_context(job_id: str | None, stage: str, payload: dict[str, Any] | None = None) -> None:
    """Set job-level context (called once per job execution)."""
    payload = payload or {}
    _job_id.set(job_id)
    _stage.set(stage)
    _document_id.set(payload.get("document_id") or payload.get("new_document_id"))
    _topic_id.set(payload.get("topic_id"))


def set_stage_context(stage: str, document_id: str | None = None) -> None:
    """Set stage-level context (called per stage execution)."""
    _stage.set(stage)
    if document_id is not None:
        _document_id.set(document_id)


def clear_context() -> None:
    """Reset all context variables."""
    _job_id.set(None)
    _document_id.set(None)
    _topic_id.set(None)
    _stage.set(None)
