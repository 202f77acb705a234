# src/queue/fallback.py — v1
"""In-process fallback executor used while the broker is unavailable.

A fixed pool of asyncio worker tasks consumes a bounded asyncio.Queue.
Work submitted here runs at most once: failures are logged and dropped,
never retried and never reported to the submitter.

A process crash between one stage completing and the next stage running
loses that chain; processing/reconciler.py re-derives the missing work.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from linklore.logging.context import clear_context, set_job_context

logger = logging.getLogger(__name__)

StageFn = Callable[[dict[str, Any]], Awaitable[Any]]

# Set inside pool workers so nested submits never wait on their own queue.
_inside_pool: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "linklore_inside_fallback_pool", default=False
)


@dataclass
class _WorkItem:
    name: str
    fn: StageFn
    payload: dict[str, Any]


@dataclass
class FallbackStats:
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0


class FallbackShutdownError(RuntimeError):
    """Work was submitted after shutdown started."""


class FallbackExecutor:
    """Bounded worker pool over an in-process channel.

    Args:
        workers: Number of concurrent worker tasks.
        queue_size: Channel capacity; submit waits for a slot when full.
        shutdown_timeout_s: Default time allowed for draining on shutdown.
    """

    def __init__(
        self,
        workers: int = 3,
        queue_size: int = 100,
        shutdown_timeout_s: float = 30.0,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._worker_count = workers
        self._queue_size = queue_size
        self._shutdown_timeout_s = shutdown_timeout_s
        self._queue: asyncio.Queue[_WorkItem] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._spillover: set[asyncio.Task[None]] = set()
        self._closed = False
        self.stats = FallbackStats()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Spawn the worker tasks. Requires a running event loop."""
        if self._workers:
            return
        if self._closed:
            raise FallbackShutdownError("Fallback executor is shut down")
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._workers = [
            asyncio.create_task(self._work(i), name=f"linklore-fallback-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Fallback pool started with %d workers", self._worker_count)

    async def submit(self, name: str, fn: StageFn, payload: dict[str, Any]) -> None:
        """Queue work, starting the pool on first use.

        Waits for a free slot when the channel is full. Called from inside a
        pool worker, it never waits: a full channel hands the put to a
        helper task instead, so workers cannot deadlock on their own queue.
        """
        if self._closed:
            raise FallbackShutdownError("Fallback executor is shut down")
        self.start()
        assert self._queue is not None
        item = _WorkItem(name=name, fn=fn, payload=dict(payload))
        self.stats.submitted += 1
        if not _inside_pool.get():
            await self._queue.put(item)
            return
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            task = asyncio.create_task(self._queue.put(item))
            self._spillover.add(task)
            task.add_done_callback(self._spillover.discard)

    async def run_async(
        self, stage_fn: StageFn, payload: dict[str, Any], name: str | None = None
    ) -> None:
        """Schedule ``stage_fn(payload)`` best-effort and return immediately."""
        await self.submit(name or getattr(stage_fn, "__name__", "job"), stage_fn, payload)

    async def drain(self) -> None:
        """Wait until every queued item has been processed."""
        if self._queue is None:
            return
        while True:
            await self._queue.join()
            if not self._spillover:
                return
            await asyncio.gather(*self._spillover, return_exceptions=True)

    async def shutdown(self, timeout: float | None = None) -> bool:
        """Stop accepting work, drain up to `timeout`, then stop the workers.

        Returns:
            True when all queued work finished before the timeout.
        """
        self._closed = True
        if not self._workers:
            return True
        limit = self._shutdown_timeout_s if timeout is None else timeout
        drained = True
        try:
            await asyncio.wait_for(self.drain(), timeout=limit)
        except asyncio.TimeoutError:
            drained = False
            logger.warning(
                "Fallback pool shutdown timed out after %.1fs with %d items pending",
                limit, self.pending,
            )
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(
            "Fallback pool stopped (ok=%d, failed=%d)",
            self.stats.succeeded, self.stats.failed,
        )
        return drained

    async def _work(self, index: int) -> None:
        assert self._queue is not None
        _inside_pool.set(True)
        while True:
            item = await self._queue.get()
            set_job_context(None, item.name, item.payload)
            try:
                await item.fn(item.payload)
                self.stats.succeeded += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                self.stats.failed += 1
                logger.exception(
                    "Fallback job '%s' failed (not retried): %s", item.name, item.payload
                )
            finally:
                clear_context()
                self._queue.task_done()
