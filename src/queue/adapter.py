# src/queue/adapter.py — v1
"""Broker adapter: enqueue through the broker while the circuit is closed.

The first BrokerUnavailableError from the broker opens the injected
breaker. From then on every enqueue raises immediately without touching
the broker, until someone calls ``breaker.reset()``.
"""

from __future__ import annotations

import logging
from typing import Any

from linklore.queue.broker import BaseBroker, BrokerUnavailableError
from linklore.queue.circuit_breaker import CircuitBreaker
from linklore.queue.models import JobHandle, JobOptions

logger = logging.getLogger(__name__)


class BrokerAdapter:
    """Circuit-guarded enqueue over a BaseBroker."""

    def __init__(self, broker: BaseBroker, breaker: CircuitBreaker) -> None:
        self._broker = broker
        self._breaker = breaker

    @property
    def broker(self) -> BaseBroker:
        return self._broker

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def available(self) -> bool:
        return self._breaker.allow()

    async def enqueue(
        self, name: str, data: dict[str, Any], options: JobOptions
    ) -> JobHandle:
        """Enqueue a job and return its handle.

        Raises:
            BrokerUnavailableError: Circuit open, or the broker call failed.
        """
        if not self._breaker.allow():
            raise BrokerUnavailableError(
                f"Circuit '{self._breaker.name}' is open: {self._breaker.last_failure}"
            )
        try:
            job = await self._broker.enqueue(name, data, options)
        except BrokerUnavailableError as exc:
            self._breaker.record_failure(exc)
            raise
        return job.to_handle()
