# src/pipeline/agents/moderator.py — v1
"""Moderator agent: review one chat message against the discussion rules.

The reply's ``details`` keys are camelCase as requested by the prompt;
``to_result`` maps them onto ModerationDetails and clamps the score.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from linklore.core.models import ModerationDetails, ModerationResult
from linklore.pipeline.plugin_kit.base_agent import PROMPTS_DIR, BaseAgent
from linklore.pipeline.plugin_kit.models import AgentOutput

if TYPE_CHECKING:
    from linklore.llm.router import AIRouter

logger = logging.getLogger(__name__)

_PROMPT_PATH = PROMPTS_DIR / "moderate.txt"

FAILED_NOTE = "analysis failed, defaulting to safe"

_AI_CHECKS = (
    "9. AI-generated content: no invented facts or data, a neutral tone, no "
    "verdict on which user is right, and it must move the discussion toward "
    "agreement.\n"
)

_DETAIL_KEYS: dict[str, str] = {
    "topicDrift": "topic_drift",
    "premiseError": "premise_error",
    "premiseUnclear": "premise_unclear",
    "factSpeculationConfusion": "fact_speculation_confusion",
    "logicalFallacies": "logical_fallacies",
    "reasoningChainBreak": "reasoning_chain_break",
    "emotionalExpression": "emotional_expression",
    "emotionalEscalation": "emotional_escalation",
    "disrespectfulContent": "disrespectful_content",
    "disagreementType": "disagreement_type",
    "consensusConflict": "consensus_conflict",
    "aiFactualError": "ai_factual_error",
    "aiValueJudgment": "ai_value_judgment",
    "suggestions": "suggestions",
}
_AI_ONLY_KEYS = {"ai_factual_error", "ai_value_judgment"}
_LIST_KEYS = {"logical_fallacies", "suggestions"}


class ModeratorInput(BaseModel):
    """Input schema for moderator."""

    creator: str
    participant: str | None = None
    context: list[str] = Field(default_factory=list)
    locked_consensus: list[Any] = Field(default_factory=list)
    sender: str
    content: str
    is_ai_generated: bool = False


class ModerationReply(BaseModel):
    """Output schema for moderator."""

    status: Literal["SAFE", "WARNING", "BLOCKED"] = "SAFE"
    score: float = 0.0
    note: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


def failed_reply() -> ModerationReply:
    return ModerationReply(status="SAFE", score=0.0, note=FAILED_NOTE)


def to_result(reply: ModerationReply, is_ai_generated: bool) -> ModerationResult:
    """ModerationResult with the score clamped to [0, 1]."""
    fields: dict[str, Any] = {}
    for key, attr in _DETAIL_KEYS.items():
        value = reply.details.get(key)
        if attr in _AI_ONLY_KEYS and not is_ai_generated:
            continue
        if attr in _LIST_KEYS:
            fields[attr] = [str(v) for v in value] if isinstance(value, list) else []
        elif isinstance(value, str) and value.strip():
            fields[attr] = value
    return ModerationResult(
        status=reply.status,
        score=min(1.0, max(0.0, reply.score)),
        note=reply.note,
        details=ModerationDetails(**fields),
    )


class ModeratorAgent(BaseAgent):
    """Review a chat message for drift, fallacies and escalation."""

    @property
    def name(self) -> str:
        return "moderator"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Moderation of one message in a two-person discussion"

    @property
    def task(self) -> str:
        return "moderate"

    @property
    def estimated_cost_cents(self) -> int:
        return 10

    @property
    def input_schema(self) -> type[BaseModel]:
        return ModeratorInput

    @property
    def output_schema(self) -> type[BaseModel]:
        return ModerationReply

    @property
    def prompt_file(self) -> str | None:
        return str(_PROMPT_PATH)

    def _format_prompt(self, inp: ModeratorInput) -> str:
        return self._load_prompt().format(
            creator=inp.creator,
            participant=inp.participant or "(none)",
            context_size=len(inp.context),
            context="\n\n".join(inp.context) or "(no discussion yet)",
            locked_consensus=(
                json.dumps(inp.locked_consensus, indent=2, ensure_ascii=False, default=str)
                if inp.locked_consensus
                else "(none)"
            ),
            sender=inp.sender,
            message_kind="AI-generated content" if inp.is_ai_generated else "user message",
            content=inp.content,
            ai_checks=_AI_CHECKS if inp.is_ai_generated else "",
        )

    async def execute(
        self, inp: BaseModel, router: AIRouter, user_id: str | None = None
    ) -> AgentOutput:
        if not isinstance(inp, ModeratorInput):
            raise TypeError(f"Expected ModeratorInput, got {type(inp)}")
        return await self._complete_and_decode(
            self._format_prompt(inp), router, failed_reply, user_id
        )
