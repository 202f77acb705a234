# src/queue/handlers.py — v1
"""Job name -> handler registry shared by the broker worker and the fallback pool.

Handlers are async callables taking the job payload. Stages enqueue their
successors through JobQueue, and JobQueue runs handlers looked up here, so
neither side imports the other.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

JobHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class UnknownJobError(KeyError):
    """No handler is registered under the job name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown job: {name}")

    def __str__(self) -> str:
        return f"Unknown job: {self.name}"


class JobHandlerRegistry:
    """Mapping of job names to async handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, JobHandler] = {}

    def register(self, name: str, handler: JobHandler) -> None:
        if name in self._handlers:
            logger.debug("Replacing handler for job '%s'", name)
        self._handlers[name] = handler

    def get(self, name: str) -> JobHandler:
        try:
            return self._handlers[name]
        except KeyError:
            raise UnknownJobError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    @property
    def names(self) -> list[str]:
        return sorted(self._handlers)
