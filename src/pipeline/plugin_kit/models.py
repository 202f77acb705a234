# src/pipeline/plugin_kit/models.py — v2
"""Agent plugin models: AgentMetadata, AgentOutput."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from linklore.llm.json_decode import DecodeKind


class AgentMetadata(BaseModel):
    """Cost and timing of one agent run."""

    agent_name: str
    agent_version: str
    execution_time_ms: int
    llm_calls: int
    tokens_used: int
    cost_cents: float = 0.0
    prompt_hash: str | None = None


class AgentOutput(BaseModel):
    """Standard return type for all BaseAgent.execute() calls.

    ``decode_kind`` records how far the model reply can be trusted; a
    degraded output carries the agent's default payload in ``data``.
    """

    data: dict[str, Any]
    confidence: float
    metadata: AgentMetadata
    decode_kind: DecodeKind = "authoritative"
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return self.decode_kind == "degraded"
