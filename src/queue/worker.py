# src/queue/worker.py — v1
"""Broker worker: reserve jobs, dispatch them by name, record the outcome.

Handlers raise on failure. The worker catches the error and reports it to
the broker, which reschedules with backoff while attempts remain.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from linklore.logging.context import clear_context, set_job_context
from linklore.queue.broker import BaseBroker, BrokerUnavailableError
from linklore.queue.handlers import JobHandlerRegistry

logger = logging.getLogger(__name__)


@dataclass
class WorkerRunStats:
    processed: int = 0
    succeeded: int = 0
    retrying: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "retrying": self.retrying,
            "failed": self.failed,
        }


class JobWorker:
    """Runs `concurrency` cooperative reserve/dispatch loops.

    Args:
        broker: Broker to reserve jobs from.
        handlers: Job name -> handler registry.
        concurrency: Number of loops in run_forever.
        poll_interval_s: Sleep between polls when the queue is empty.
    """

    def __init__(
        self,
        broker: BaseBroker,
        handlers: JobHandlerRegistry,
        concurrency: int = 3,
        poll_interval_s: float = 1.0,
    ) -> None:
        self._broker = broker
        self._handlers = handlers
        self._concurrency = max(1, concurrency)
        self._poll_interval_s = poll_interval_s
        self._stop = asyncio.Event()
        self.stats = WorkerRunStats()

    async def run_once(self) -> bool:
        """Process at most one job. Returns False when nothing was waiting."""
        job = await self._broker.reserve()
        if job is None:
            return False

        self.stats.processed += 1
        set_job_context(job.id, job.name, job.data)
        try:
            logger.info("Processing job %s (%s)", job.id, job.name)
            try:
                handler = self._handlers.get(job.name)
                await handler(job.data)
            except Exception as exc:
                outcome = await self._broker.fail(job, str(exc))
                if outcome == "retrying":
                    self.stats.retrying += 1
                    logger.warning(
                        "Job %s (%s) failed, will retry: %s", job.id, job.name, exc
                    )
                else:
                    self.stats.failed += 1
                    logger.error(
                        "Job %s (%s) failed permanently: %s",
                        job.id, job.name, exc, exc_info=True,
                    )
                return True

            await self._broker.complete(job)
            self.stats.succeeded += 1
            logger.info("Job %s (%s) completed", job.id, job.name)
            return True
        finally:
            clear_context()

    async def run_forever(self) -> WorkerRunStats:
        """Run until stop() is called; returns aggregate stats."""
        self._stop.clear()
        logger.info(
            "Worker started with concurrency %d (handlers: %s)",
            self._concurrency, ", ".join(self._handlers.names),
        )
        loops = [
            asyncio.create_task(self._loop(i), name=f"linklore-worker-{i}")
            for i in range(self._concurrency)
        ]
        try:
            await asyncio.gather(*loops)
        finally:
            for task in loops:
                task.cancel()
            await asyncio.gather(*loops, return_exceptions=True)
        logger.info("Worker stopped: %s", self.stats.as_dict())
        return self.stats

    def stop(self) -> None:
        self._stop.set()

    async def _loop(self, index: int) -> None:
        while not self._stop.is_set():
            try:
                processed = await self.run_once()
            except BrokerUnavailableError as exc:
                logger.warning("Worker loop %d cannot reach broker: %s", index, exc)
                processed = False
            if processed:
                continue
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._poll_interval_s)
            except asyncio.TimeoutError:
                pass
