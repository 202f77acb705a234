# src/llm/router.py — v1
"""AI router: the single entry point stage code uses to reach a model.

Enforces a per-call cost cap, sizes max_tokens from the caller's cost
estimate, retries transient provider errors and records usage.
"""

from __future__ import annotations

import functools
import logging
import time

from linklore.llm.base_client import BaseLLMClient
from linklore.llm.models import AIUsageRecord, LLMResponse, compute_cost_cents
from linklore.llm.retry import LLMRetryExhausted, RetryConfig, RetryPolicy

logger = logging.getLogger(__name__)

ADMIN_COST_THRESHOLD_CENTS = 100


class CostLimitExceededError(Exception):
    """Raised when a call's estimated cost is above the job cap."""

    def __init__(self, task: str, estimated_cents: int, cap_cents: int) -> None:
        self.task = task
        self.estimated_cents = estimated_cents
        self.cap_cents = cap_cents
        super().__init__(
            f"AI task '{task}' estimated at {estimated_cents} cents exceeds "
            f"the per-call cap of {cap_cents} cents"
        )


def max_tokens_for_cost(estimated_cents: int) -> int:
    """Larger budgets get larger completions."""
    if estimated_cents > 200:
        return 4000
    if estimated_cents > ADMIN_COST_THRESHOLD_CENTS:
        return 3000
    return 2000


class AIRouter:
    """Route prompts to the configured provider under a cost cap."""

    def __init__(
        self,
        client: BaseLLMClient,
        cost_cap_cents: int = 50,
        admin_cost_cap_cents: int = 500,
        temperature: float = 0.7,
        retry_configs: dict[str, RetryConfig] | None = None,
        usage_log_size: int = 1000,
    ) -> None:
        self._client = client
        self._cost_cap_cents = cost_cap_cents
        self._admin_cost_cap_cents = admin_cost_cap_cents
        self._temperature = temperature
        self._retry = RetryPolicy(retry_configs)
        self._usage_log_size = usage_log_size
        self.usage_log: list[AIUsageRecord] = []

    def cap_for(self, estimated_cents: int) -> int:
        """Admin-class estimates (above 100 cents) get the higher cap."""
        if estimated_cents > ADMIN_COST_THRESHOLD_CENTS:
            return self._admin_cost_cap_cents
        return self._cost_cap_cents

    async def complete(
        self,
        task: str,
        prompt: str,
        estimated_cost_cents: int,
        user_id: str | None = None,
        system: str | None = None,
    ) -> LLMResponse:
        """Run one completion for `task`.

        Raises:
            CostLimitExceededError: If the estimate is above the cap.
            LLMRetryExhausted: If the provider keeps failing.
        """
        cap = self.cap_for(estimated_cost_cents)
        if estimated_cost_cents > cap:
            raise CostLimitExceededError(task, estimated_cost_cents, cap)

        max_tokens = max_tokens_for_cost(estimated_cost_cents)
        start = time.monotonic()
        try:
            response = await self._retry.call(
                functools.partial(
                    self._client.complete_prompt,
                    prompt,
                    system=system,
                    max_tokens=max_tokens,
                    temperature=self._temperature,
                ),
                task,
            )
        except LLMRetryExhausted as exc:
            self._record(AIUsageRecord(
                user_id=user_id or "anonymous",
                task=task,
                provider=self._client.provider_name,
                model="",
                latency_ms=int((time.monotonic() - start) * 1000),
                status="error",
                error=str(exc.last_error),
            ))
            raise

        cost = compute_cost_cents(
            response.model, response.input_tokens, response.output_tokens
        )
        response = response.model_copy(update={"cost_cents": cost})
        self._record(AIUsageRecord(
            user_id=user_id or "anonymous",
            task=task,
            provider=response.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cost_cents=cost,
            latency_ms=response.latency_ms,
        ))
        logger.info(
            "AI task '%s' done: %d in / %d out tokens, %.2f cents, %d ms",
            task, response.input_tokens, response.output_tokens, cost,
            response.latency_ms,
        )
        return response

    def _record(self, record: AIUsageRecord) -> None:
        self.usage_log.append(record)
        if len(self.usage_log) > self._usage_log_size:
            del self.usage_log[: len(self.usage_log) - self._usage_log_size]
