# src/llm/retry.py — v2
"""Retry of transient AI provider errors inside one stage attempt.

Errors are classified by the HTTP status the provider SDKs attach to
their exceptions (``status_code``), then by exception name and message.
Rate limits, timeouts and server-side failures are retried with
exponential backoff; anything else fails the call at once. Retrying the
whole job is left to the broker.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorKind = Literal["rate_limit", "timeout", "server_error", "token_limit", "unknown"]

_SERVER_CODES = ("500", "502", "503", "504", "529")


class LLMRetryExhausted(Exception):
    """An AI call failed for good: retries used up or error not retryable."""

    def __init__(self, task: str, error_type: str, attempts: int, last_error: Exception) -> None:
        self.task = task
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"AI task '{task}' failed after {attempts} attempts ({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True

    def delay(self, retry_index: int) -> float:
        """Sleep before retry number `retry_index` (0-based)."""
        delay = self.base_delay_s * (self.backoff_factor ** retry_index)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return delay


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=3, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=2, base_delay_s=1.0, backoff_factor=1.0),
    "server_error": RetryConfig(max_retries=3, base_delay_s=5.0),
}


def classify_error(error: BaseException) -> ErrorKind:
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status == 429:
            return "rate_limit"
        if status == 408:
            return "timeout"
        if status >= 500:
            return "server_error"

    if isinstance(error, asyncio.TimeoutError) or "timeout" in type(error).__name__.lower():
        return "timeout"

    msg = str(error).lower()
    if "429" in msg or "rate limit" in msg or "rate_limit" in msg:
        return "rate_limit"
    if "timeout" in msg or "timed out" in msg:
        return "timeout"
    if "overloaded" in msg or any(code in msg for code in _SERVER_CODES):
        return "server_error"
    if "token" in msg and ("limit" in msg or "exceed" in msg):
        return "token_limit"
    return "unknown"


class RetryPolicy:
    """Runs a provider call, retrying the error kinds it has a config for.

    Args:
        configs: Error kind -> retry config. Kinds without a config are
            not retried.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        configs: dict[str, RetryConfig] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._configs = DEFAULT_RETRY_CONFIGS if configs is None else configs
        self._sleep = sleep

    async def call(self, fn: Callable[[], Awaitable[T]], task: str = "unknown") -> T:
        """Await ``fn()`` until it succeeds or retries run out.

        Raises:
            LLMRetryExhausted: Wrapping the last provider error.
        """
        attempts = 0
        while True:
            try:
                return await fn()
            except Exception as exc:
                attempts += 1
                kind = classify_error(exc)
                config = self._configs.get(kind)
                if config is None or attempts > config.max_retries:
                    raise LLMRetryExhausted(task, kind, attempts, exc) from exc

                delay = config.delay(attempts - 1)
                logger.warning(
                    "AI task '%s': %s (attempt %d/%d), retrying in %.1fs",
                    task, kind, attempts, config.max_retries + 1, delay,
                )
                await self._sleep(delay)
