# src/pipeline/agents/summarizer.py — v2
"""Summarizer agent: structured multi-dimensional summary of one document.

Produces title, overview, structure (sections, arguments, logic), claims
and keywords. A reply that does not decode yields the degraded summary
built from the text itself.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from linklore.core.models import SummaryStructure
from linklore.pipeline.plugin_kit.base_agent import PROMPTS_DIR, BaseAgent
from linklore.pipeline.plugin_kit.models import AgentOutput

if TYPE_CHECKING:
    from linklore.llm.router import AIRouter

logger = logging.getLogger(__name__)

_PROMPT_PATH = PROMPTS_DIR / "summarize.txt"

UNTITLED = "Untitled document"


class SummarizerInput(BaseModel):
    """Input schema for summarizer."""

    text: str


class SummaryPayload(BaseModel):
    """Output schema for summarizer."""

    title: str
    overview: str
    structure: SummaryStructure = Field(default_factory=SummaryStructure)
    claims: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


def degraded_summary(text: str) -> SummaryPayload:
    """Summary derived from the text when the model reply is unusable."""
    first_line = next((ln.strip() for ln in text.splitlines() if ln.strip()), "")
    overview = text[:300] + ("..." if len(text) > 300 else "")
    return SummaryPayload(
        title=first_line[:50] or UNTITLED,
        overview=overview,
        structure=SummaryStructure(sections=[], arguments=[], logic="pending"),
        claims=[],
        keywords=[],
    )


class SummarizerAgent(BaseAgent):
    """Summarize a document into title, overview, structure, claims, keywords."""

    @property
    def name(self) -> str:
        return "summarizer"

    @property
    def version(self) -> str:
        return "2.0.0"

    @property
    def description(self) -> str:
        return "Structured summary of a single document"

    @property
    def task(self) -> str:
        return "summarize"

    @property
    def estimated_cost_cents(self) -> int:
        return 20

    @property
    def input_schema(self) -> type[BaseModel]:
        return SummarizerInput

    @property
    def output_schema(self) -> type[BaseModel]:
        return SummaryPayload

    @property
    def prompt_file(self) -> str | None:
        return str(_PROMPT_PATH)

    def _format_prompt(self, inp: SummarizerInput) -> str:
        return self._load_prompt().format(text=inp.text)

    async def execute(
        self, inp: BaseModel, router: AIRouter, user_id: str | None = None
    ) -> AgentOutput:
        if not isinstance(inp, SummarizerInput):
            raise TypeError(f"Expected SummarizerInput, got {type(inp)}")

        return await self._complete_and_decode(
            self._format_prompt(inp), router, lambda: degraded_summary(inp.text), user_id
        )
