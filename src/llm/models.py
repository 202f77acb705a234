# src/llm/models.py — v2
"""Provider-neutral AI call types: messages, responses, usage and pricing.

Costs are tracked in cents. Prices are USD per million tokens; models
missing from the price table are recorded at zero cost.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from linklore.core.models import utcnow

Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    role: Role
    content: str


class LLMResponse(BaseModel):
    """One completion as returned by an adapter, cost filled in by the router."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    latency_ms: int
    cost_cents: float = 0.0
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


# === PRICING ===


class ModelPricing(BaseModel):
    input_per_1m_usd: float
    output_per_1m_usd: float

    def cents(self, input_tokens: int, output_tokens: int) -> float:
        usd = (
            input_tokens * self.input_per_1m_usd + output_tokens * self.output_per_1m_usd
        ) / 1_000_000
        return usd * 100


DEFAULT_PRICING: dict[str, ModelPricing] = {
    "claude-sonnet-4-20250514": ModelPricing(input_per_1m_usd=3.0, output_per_1m_usd=15.0),
    "claude-haiku-4-5-20251001": ModelPricing(input_per_1m_usd=0.80, output_per_1m_usd=4.0),
    "gpt-4o": ModelPricing(input_per_1m_usd=2.50, output_per_1m_usd=10.0),
    "gpt-4o-mini": ModelPricing(input_per_1m_usd=0.15, output_per_1m_usd=0.60),
}


def compute_cost_cents(
    model: str,
    input_tokens: int,
    output_tokens: int,
    pricing: dict[str, ModelPricing] | None = None,
) -> float:
    """Cost of one call in cents; 0.0 for models without a price."""
    price = (pricing or DEFAULT_PRICING).get(model)
    return price.cents(input_tokens, output_tokens) if price is not None else 0.0


# === USAGE ===


class AIUsageRecord(BaseModel):
    """One routed AI call, successful or not, attributed to a user."""

    timestamp: datetime = Field(default_factory=utcnow)
    user_id: str = "anonymous"
    task: str
    provider: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    cost_cents: float = 0.0
    latency_ms: int = 0
    status: Literal["success", "error"] = "success"
    error: str | None = None
