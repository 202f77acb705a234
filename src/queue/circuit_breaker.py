# src/queue/circuit_breaker.py — v1
"""Two-state circuit breaker guarding the job broker.

The first connection or enqueue failure opens the breaker. An open breaker
never probes the broker again on its own; only ``reset()`` closes it. One
breaker instance is shared by everything that enqueues in a process, so
after a failure every caller goes straight to the fallback pool.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal

from linklore.core.models import utcnow

logger = logging.getLogger(__name__)

CircuitState = Literal["closed", "open"]


class CircuitBreaker:
    """Sticky closed/open switch with an explicit reset hook."""

    def __init__(self, name: str = "broker") -> None:
        self._name = name
        self._state: CircuitState = "closed"
        self._opened_at: datetime | None = None
        self._last_failure: str | None = None
        self._trip_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == "open"

    @property
    def opened_at(self) -> datetime | None:
        return self._opened_at

    @property
    def last_failure(self) -> str | None:
        return self._last_failure

    @property
    def trip_count(self) -> int:
        """How many times the breaker went from closed to open."""
        return self._trip_count

    def allow(self) -> bool:
        """Whether a broker call may be attempted."""
        return self._state == "closed"

    def record_failure(self, reason: BaseException | str) -> None:
        """Open the breaker. Repeated failures while open are ignored."""
        self._last_failure = str(reason)
        if self._state == "open":
            return
        self._state = "open"
        self._opened_at = utcnow()
        self._trip_count += 1
        logger.warning(
            "Circuit '%s' opened, using in-process fallback until reset: %s",
            self._name, reason,
        )

    def reset(self) -> None:
        """Close the breaker so the next call tries the broker again."""
        if self._state == "closed":
            return
        self._state = "closed"
        self._opened_at = None
        logger.info("Circuit '%s' reset to closed", self._name)
