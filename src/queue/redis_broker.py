# src/queue/redis_broker.py — v1
"""Redis-backed job broker (redis.asyncio).

Requires 'redis' package: pip install redis.

Key layout under the queue namespace ``ns``:
    ns:id          INCR counter for job ids
    ns:job:<id>    job record (JSON)
    ns:wait        ZSET, score = wait_score(priority, seq)
    ns:delayed     ZSET, score = due time in ms
    ns:active      SET of reserved job ids
    ns:completed   ZSET, score = finish time in ms
    ns:failed      ZSET, score = finish time in ms

The client is created and pinged on first use, not in the constructor.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

from linklore.core.models import utcnow
from linklore.queue.broker import (
    BaseBroker,
    BrokerUnavailableError,
    FailOutcome,
    retry_delay_s,
    wait_score,
)
from linklore.queue.models import Job, JobOptions, RetentionPolicy

logger = logging.getLogger(__name__)

R = TypeVar("R")


class RedisBroker(BaseBroker):
    """Redis job broker with lazy connection."""

    def __init__(
        self,
        redis_url: str,
        namespace: str = "linklore-ai",
        connect_timeout_s: float = 2.0,
        client: Any | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis_url = redis_url
        self._ns = namespace
        self._connect_timeout_s = connect_timeout_s
        self._client = client
        self._connected = False
        self._clock = clock

    def _key(self, suffix: str) -> str:
        return f"{self._ns}:{suffix}"

    def _job_key(self, job_id: str) -> str:
        return f"{self._ns}:job:{job_id}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _connection(self) -> Any:
        if self._client is None:
            try:
                import redis.asyncio as aioredis
            except ImportError as e:
                raise ImportError(
                    "redis package required: pip install redis"
                ) from e
            self._client = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=self._connect_timeout_s,
            )
        if not self._connected:
            try:
                await asyncio.wait_for(self._client.ping(), timeout=self._connect_timeout_s)
            except Exception as exc:
                raise BrokerUnavailableError(
                    f"Cannot reach broker at {self._redis_url}: {exc}"
                ) from exc
            self._connected = True
            logger.info("Connected to job broker (queue '%s')", self._ns)
        return self._client

    async def _run(self, op: str, fn: Callable[[Any], Awaitable[R]]) -> R:
        client = await self._connection()
        try:
            return await fn(client)
        except BrokerUnavailableError:
            raise
        except Exception as exc:
            raise BrokerUnavailableError(f"Broker {op} failed: {exc}") from exc

    async def _load(self, client: Any, job_id: str) -> Job | None:
        raw = await client.get(self._job_key(job_id))
        if raw is None:
            return None
        return Job.model_validate_json(raw)

    async def enqueue(
        self, name: str, data: dict[str, Any], options: JobOptions | None = None
    ) -> Job:
        async def _enqueue(client: Any) -> Job:
            seq = int(await client.incr(self._key("id")))
            job = Job(
                id=str(seq),
                name=name,
                data=dict(data),
                options=options or JobOptions(),
                seq=seq,
            )
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self._job_key(job.id), job.model_dump_json())
                pipe.zadd(self._key("wait"), {job.id: wait_score(job.options.priority, seq)})
                await pipe.execute()
            return job

        job = await self._run("enqueue", _enqueue)
        logger.debug("Enqueued job %s (%s, priority %d)", job.id, name, job.options.priority)
        return job

    async def reserve(self) -> Job | None:
        async def _reserve(client: Any) -> Job | None:
            await self._promote_delayed(client)
            popped = await client.zpopmin(self._key("wait"), 1)
            if not popped:
                return None
            job_id = popped[0][0]
            job = await self._load(client, job_id)
            if job is None:
                logger.warning("Job %s vanished before it could be reserved", job_id)
                return None
            job.status = "active"
            job.processed_at = utcnow()
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self._job_key(job.id), job.model_dump_json())
                pipe.sadd(self._key("active"), job.id)
                await pipe.execute()
            return job

        return await self._run("reserve", _reserve)

    async def complete(self, job: Job) -> None:
        async def _complete(client: Any) -> None:
            stored = await self._load(client, job.id) or job
            stored.status = "completed"
            stored.attempts_made += 1
            stored.finished_at = utcnow()
            await self._finish(client, stored, "completed", stored.options.retention.on_complete)

        await self._run("complete", _complete)

    async def fail(self, job: Job, error: str) -> FailOutcome:
        async def _fail(client: Any) -> FailOutcome:
            stored = await self._load(client, job.id) or job
            stored.attempts_made += 1
            stored.failed_reason = error
            delay = retry_delay_s(stored)
            if delay is not None:
                stored.status = "delayed"
                due_ms = self._now_ms() + int(delay * 1000)
                async with client.pipeline(transaction=True) as pipe:
                    pipe.set(self._job_key(stored.id), stored.model_dump_json())
                    pipe.srem(self._key("active"), stored.id)
                    pipe.zadd(self._key("delayed"), {stored.id: due_ms})
                    await pipe.execute()
                return "retrying"
            stored.status = "failed"
            stored.finished_at = utcnow()
            await self._finish(client, stored, "failed", stored.options.retention.on_fail)
            return "failed"

        return await self._run("fail", _fail)

    async def get_job(self, job_id: str) -> Job | None:
        return await self._run("get_job", lambda client: self._load(client, job_id))

    async def counts(self) -> dict[str, int]:
        async def _counts(client: Any) -> dict[str, int]:
            return {
                "waiting": int(await client.zcard(self._key("wait"))),
                "delayed": int(await client.zcard(self._key("delayed"))),
                "active": int(await client.scard(self._key("active"))),
                "completed": int(await client.zcard(self._key("completed"))),
                "failed": int(await client.zcard(self._key("failed"))),
            }

        return await self._run("counts", _counts)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._connected = False

    async def _promote_delayed(self, client: Any) -> None:
        due = await client.zrangebyscore(self._key("delayed"), "-inf", self._now_ms())
        for job_id in due:
            # Only the worker whose ZREM succeeds re-queues the job.
            if not await client.zrem(self._key("delayed"), job_id):
                continue
            job = await self._load(client, job_id)
            if job is None:
                continue
            job.status = "waiting"
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self._job_key(job.id), job.model_dump_json())
                pipe.zadd(self._key("wait"), {job.id: wait_score(job.options.priority, job.seq)})
                await pipe.execute()

    async def _finish(
        self, client: Any, job: Job, status: str, policy: RetentionPolicy
    ) -> None:
        key = self._key(status)
        now_ms = self._now_ms()
        async with client.pipeline(transaction=True) as pipe:
            pipe.set(self._job_key(job.id), job.model_dump_json())
            pipe.srem(self._key("active"), job.id)
            pipe.zadd(key, {job.id: now_ms})
            await pipe.execute()

        removed: list[str] = []
        if policy.age_s is not None:
            cutoff = f"({now_ms - policy.age_s * 1000}"
            removed.extend(await client.zrangebyscore(key, "-inf", cutoff))
            await client.zremrangebyscore(key, "-inf", cutoff)
        if policy.count is not None:
            overflow = int(await client.zcard(key)) - policy.count
            if overflow > 0:
                removed.extend(await client.zrange(key, 0, overflow - 1))
                await client.zremrangebyrank(key, 0, overflow - 1)
        if removed:
            await client.delete(*(self._job_key(job_id) for job_id in removed))
