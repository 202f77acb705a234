# src/queue/models.py — v1
"""Job broker types: options, retention, handles and stored jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from linklore.core.models import utcnow

# Handle id returned when a job ran through the in-process fallback pool.
FALLBACK_JOB_ID = "async"

JobStatus = Literal["waiting", "delayed", "active", "completed", "failed"]


class Backoff(BaseModel):
    """Delay between broker attempts of one job."""

    type: Literal["exponential", "fixed"] = "exponential"
    delay_ms: int = 2000

    def delay_for(self, attempts_made: int) -> float:
        """Seconds to wait before the next attempt (attempts_made >= 1)."""
        if self.type == "fixed":
            return self.delay_ms / 1000
        return self.delay_ms * (2 ** max(0, attempts_made - 1)) / 1000


class RetentionPolicy(BaseModel):
    """How long finished jobs stay queryable in the broker.

    ``age_s`` bounds age, ``count`` bounds how many are kept; None means
    unbounded on that axis.
    """

    age_s: int | None = None
    count: int | None = None


class Retention(BaseModel):
    """Retention of completed and failed jobs."""

    on_complete: RetentionPolicy = Field(default_factory=RetentionPolicy)
    on_fail: RetentionPolicy = Field(default_factory=RetentionPolicy)


class JobOptions(BaseModel):
    """Enqueue options. A higher priority number is served first."""

    priority: int = 0
    attempts: int = Field(default=1, ge=1)
    backoff: Backoff | None = None
    retention: Retention = Field(default_factory=Retention)


class JobHandle(BaseModel):
    """What enqueue returns to callers: {id, name, data}.

    The id is broker-assigned, or ``FALLBACK_JOB_ID`` when the job was
    handed to the fallback pool. It is not queryable in that case.
    """

    id: str
    name: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_fallback(self) -> bool:
        return self.id == FALLBACK_JOB_ID


class Job(BaseModel):
    """Broker-side job record."""

    id: str
    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    options: JobOptions = Field(default_factory=JobOptions)
    seq: int = 0
    status: JobStatus = "waiting"
    attempts_made: int = 0
    failed_reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None
    finished_at: datetime | None = None

    def to_handle(self) -> JobHandle:
        return JobHandle(id=self.id, name=self.name, data=self.data)
