# src/pipeline/agents/disagreement_analyst.py — v1
"""Disagreement analyst: contrast the summaries of two documents."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from linklore.pipeline.plugin_kit.base_agent import PROMPTS_DIR, BaseAgent
from linklore.pipeline.plugin_kit.models import AgentOutput

if TYPE_CHECKING:
    from linklore.llm.router import AIRouter

logger = logging.getLogger(__name__)

_PROMPT_PATH = PROMPTS_DIR / "analyze_disagreement.txt"


class DocumentDigest(BaseModel):
    """What the analyst sees of one document."""

    document_id: str
    title: str
    overview: str
    claims: list[str]


class DisagreementInput(BaseModel):
    """Input schema for disagreement analyst."""

    doc1: DocumentDigest
    doc2: DocumentDigest
    text_limit: int = 15_000


class ReportedDisagreement(BaseModel):
    title: str | None = None
    description: str | None = None
    claim1: str | None = None
    claim2: str | None = None
    severity: str | None = None
    confidence: float | None = None


class DisagreementReply(BaseModel):
    """Output schema for disagreement analyst."""

    disagreements: list[ReportedDisagreement] = Field(default_factory=list)


class DisagreementAnalystAgent(BaseAgent):
    """Find the disagreements between two documents."""

    @property
    def name(self) -> str:
        return "disagreement_analyst"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Disagreements between two documents of a topic"

    @property
    def task(self) -> str:
        return "disagreement"

    @property
    def estimated_cost_cents(self) -> int:
        return 30

    @property
    def input_schema(self) -> type[BaseModel]:
        return DisagreementInput

    @property
    def output_schema(self) -> type[BaseModel]:
        return DisagreementReply

    @property
    def prompt_file(self) -> str | None:
        return str(_PROMPT_PATH)

    def _format_prompt(self, inp: DisagreementInput) -> str:
        # The cap is shared between both overviews.
        per_doc = max(1, inp.text_limit // 2)
        return self._load_prompt().format(
            doc1_id=inp.doc1.document_id,
            doc1_title=inp.doc1.title,
            doc1_overview=inp.doc1.overview[:per_doc],
            doc1_claims="\n".join(f"- {c}" for c in inp.doc1.claims),
            doc2_id=inp.doc2.document_id,
            doc2_title=inp.doc2.title,
            doc2_overview=inp.doc2.overview[:per_doc],
            doc2_claims="\n".join(f"- {c}" for c in inp.doc2.claims),
        )

    async def execute(
        self, inp: BaseModel, router: AIRouter, user_id: str | None = None
    ) -> AgentOutput:
        if not isinstance(inp, DisagreementInput):
            raise TypeError(f"Expected DisagreementInput, got {type(inp)}")
        return await self._complete_and_decode(
            self._format_prompt(inp), router, DisagreementReply, user_id
        )
