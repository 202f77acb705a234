# src/queue/broker.py — v1
"""Job broker interface, shared scheduling rules and the in-memory broker.

Brokers keep three kinds of state: a waiting set ordered by (priority
desc, enqueue order), a delayed set of retry-scheduled jobs keyed by due
time, and completed/failed lists trimmed by each job's retention policy.

Any transport or connectivity problem surfaces as BrokerUnavailableError;
the adapter in queue/adapter.py turns that into fallback mode.
"""

from __future__ import annotations

import heapq
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Literal

from linklore.core.models import utcnow
from linklore.queue.models import Job, JobOptions, RetentionPolicy

logger = logging.getLogger(__name__)

FailOutcome = Literal["retrying", "failed"]

# Waiting-set score: lower pops first. Priority dominates, then sequence.
_PRIORITY_STRIDE = 10**13


class BrokerUnavailableError(Exception):
    """The broker could not be reached or refused the operation."""


def wait_score(priority: int, seq: int) -> float:
    """Sort key for the waiting set (higher priority, then older, first)."""
    return float(-priority * _PRIORITY_STRIDE + seq)


def retry_delay_s(job: Job) -> float | None:
    """Seconds until the next attempt, or None when attempts are used up.

    Must be called after ``attempts_made`` was incremented for the attempt
    that just failed.
    """
    if job.attempts_made >= job.options.attempts:
        return None
    if job.options.backoff is None:
        return 0.0
    return job.options.backoff.delay_for(job.attempts_made)


class BaseBroker(ABC):
    """Abstract job broker."""

    @abstractmethod
    async def enqueue(
        self, name: str, data: dict[str, Any], options: JobOptions | None = None
    ) -> Job:
        """Store a new waiting job and return it with its assigned id."""

    @abstractmethod
    async def reserve(self) -> Job | None:
        """Promote due delayed jobs, then pop the next waiting job as active."""

    @abstractmethod
    async def complete(self, job: Job) -> None:
        """Mark an active job completed and apply completed retention."""

    @abstractmethod
    async def fail(self, job: Job, error: str) -> FailOutcome:
        """Record a failed attempt; reschedule with backoff or mark failed."""

    @abstractmethod
    async def get_job(self, job_id: str) -> Job | None:
        """Fetch a job record still retained by the broker."""

    @abstractmethod
    async def counts(self) -> dict[str, int]:
        """Number of jobs per status."""

    async def close(self) -> None:
        """Release connections (no-op by default)."""


class InMemoryBroker(BaseBroker):
    """Single-process broker with the same ordering and retry rules as Redis.

    Args:
        clock: Returns the current time in seconds; injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._jobs: dict[str, Job] = {}
        self._waiting: list[tuple[float, str]] = []
        self._delayed: dict[str, float] = {}
        self._finished: dict[str, list[tuple[float, str]]] = {
            "completed": [],
            "failed": [],
        }
        self._seq = 0

    async def enqueue(
        self, name: str, data: dict[str, Any], options: JobOptions | None = None
    ) -> Job:
        self._seq += 1
        job = Job(
            id=str(self._seq),
            name=name,
            data=dict(data),
            options=options or JobOptions(),
            seq=self._seq,
        )
        self._jobs[job.id] = job
        heapq.heappush(self._waiting, (wait_score(job.options.priority, job.seq), job.id))
        logger.debug("Enqueued job %s (%s, priority %d)", job.id, name, job.options.priority)
        return job.model_copy(deep=True)

    async def reserve(self) -> Job | None:
        self._promote_delayed()
        while self._waiting:
            _, job_id = heapq.heappop(self._waiting)
            job = self._jobs.get(job_id)
            if job is None or job.status != "waiting":
                continue
            job.status = "active"
            job.processed_at = utcnow()
            return job.model_copy(deep=True)
        return None

    async def complete(self, job: Job) -> None:
        stored = self._jobs.get(job.id)
        if stored is None:
            return
        stored.status = "completed"
        stored.attempts_made += 1
        stored.finished_at = utcnow()
        self._retain(stored, "completed", stored.options.retention.on_complete)

    async def fail(self, job: Job, error: str) -> FailOutcome:
        stored = self._jobs.get(job.id)
        if stored is None:
            return "failed"
        stored.attempts_made += 1
        stored.failed_reason = error
        delay = retry_delay_s(stored)
        if delay is not None:
            stored.status = "delayed"
            self._delayed[stored.id] = self._clock() + delay
            return "retrying"
        stored.status = "failed"
        stored.finished_at = utcnow()
        self._retain(stored, "failed", stored.options.retention.on_fail)
        return "failed"

    async def get_job(self, job_id: str) -> Job | None:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def counts(self) -> dict[str, int]:
        result = {"waiting": 0, "delayed": 0, "active": 0, "completed": 0, "failed": 0}
        for job in self._jobs.values():
            result[job.status] += 1
        return result

    def _promote_delayed(self) -> None:
        now = self._clock()
        for job_id, due in list(self._delayed.items()):
            if due > now:
                continue
            del self._delayed[job_id]
            job = self._jobs.get(job_id)
            if job is None:
                continue
            job.status = "waiting"
            heapq.heappush(self._waiting, (wait_score(job.options.priority, job.seq), job.id))

    def _retain(self, job: Job, status: str, policy: RetentionPolicy) -> None:
        now = self._clock()
        finished = self._finished[status]
        finished.append((now, job.id))
        if policy.age_s is not None:
            cutoff = now - policy.age_s
            expired = [jid for ts, jid in finished if ts < cutoff]
            finished[:] = [(ts, jid) for ts, jid in finished if ts >= cutoff]
            for jid in expired:
                self._jobs.pop(jid, None)
        if policy.count is not None and len(finished) > policy.count:
            overflow = len(finished) - policy.count
            for _, jid in finished[:overflow]:
                self._jobs.pop(jid, None)
            del finished[:overflow]
