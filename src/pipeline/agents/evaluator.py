# src/pipeline/agents/evaluator.py — v2
"""Evaluator agent: rubric scoring of one document.

The prompt carries the discipline rubric, the citation heuristic's result
and few-shot examples. Score post-processing lives here as pure functions
so the stage and the tests share it:

- missing or non-numeric dimensions default to 6,
- scores are clamped to [0, 10],
- without a citation signal a citation score above 2 is forced to 1.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from linklore.core.models import DimensionScore
from linklore.pipeline.plugin_kit.base_agent import PROMPTS_DIR, BaseAgent
from linklore.pipeline.plugin_kit.models import AgentOutput
from linklore.processing.rubrics import CITATION_DIMENSION, CRITERIA, Rubric

if TYPE_CHECKING:
    from linklore.llm.router import AIRouter

logger = logging.getLogger(__name__)

_PROMPT_PATH = PROMPTS_DIR / "evaluate.txt"

DEFAULT_DIMENSION_SCORE = 6.0
CITATION_CEILING_WITHOUT_SIGNAL = 2.0
CORRECTED_CITATION_SCORE = 1.0
PENDING_VERDICT = "evaluation pending"
COMPLETE_VERDICT = "evaluation complete"

_CITATIONS_FOUND_NOTE = "Citation markers or a reference list were detected in the document."
_NO_CITATIONS_NOTE = (
    "No citation markers, reference list, footnotes or in-text citations were "
    "detected. If the document really has none, the citation score must be 0-2."
)

# Per-dimension (score, reason) for the two few-shot examples.
_STRONG_EXAMPLE: dict[str, tuple[int, str]] = {
    "structure": (9, "Clear introduction, body and conclusion; each section has a distinct purpose and transitions are smooth."),
    "logic": (8, "The chain from question to conclusion is mostly complete; one jump from observation to conclusion in section three."),
    "viewpoint": (8, "Integrates existing work into a fresh angle with several useful insights; originality could go further."),
    "evidence": (7, "Statistics, case studies and literature support the main claims; some sources are not authoritative."),
    "citation": (7, "Fifteen citations with a reference list in a standard format; a few entries lack page numbers."),
    "argumentation": (8, "Uses example, contrast and causal arguments; one weak link between premise and claim in section two."),
    "expression": (8, "Precise and fluent with correct terminology; a few overly long sentences."),
    "material": (7, "Varied material from journals, statistics and fieldwork; some of it is dated."),
    "sources": (8, "Archives, documents and oral history, with source criticism; some items need further verification."),
    "data": (7, "Accurate data with several statistical methods; some sources are not authoritative."),
}
_PLAIN_EXAMPLE: dict[str, tuple[int, str]] = {
    "structure": (6, "Sections exist but their relation is unclear and transitions are abrupt."),
    "logic": (5, "Section two jumps from description to conclusion; several leaps in section three."),
    "viewpoint": (5, "Mostly restates existing positions without a new angle."),
    "evidence": (5, "Evidence is thin and only loosely related to the claims."),
    "citation": (1, "No citation markers, reference list, footnotes or in-text citations were found, so the score must be 0-2."),
    "argumentation": (5, "Relies on examples only; the chain of argument breaks in places."),
    "expression": (6, "Generally accurate but vague in places."),
    "material": (5, "Single-sourced material, mostly from the web."),
    "sources": (5, "Mostly secondary sources with little verification."),
    "data": (5, "Data of uncertain origin with shallow analysis."),
}


class EvaluatorInput(BaseModel):
    """Input schema for evaluator."""

    text: str
    rubric: Rubric
    has_citations: bool
    summary_overview: str | None = None
    text_limit: int = 8000


class EvaluationReply(BaseModel):
    """Output schema for evaluator: raw model reply before post-processing."""

    scores: dict[str, Any]
    reasoning: dict[str, Any] = Field(default_factory=dict)
    verdict: str | None = None


def pending_reply(rubric: Rubric) -> EvaluationReply:
    """Degraded reply: every dimension at the default score."""
    return EvaluationReply(
        scores={d: DEFAULT_DIMENSION_SCORE for d in rubric.dimensions},
        verdict=PENDING_VERDICT,
    )


def build_examples(dimensions: list[str], has_citations: bool) -> str:
    """Few-shot examples; the well-cited example is shown only for cited text."""
    blocks: list[str] = []
    if has_citations:
        blocks.append(
            "Example 1 (strong document with citations):\n"
            + json.dumps(_example(dimensions, _STRONG_EXAMPLE, 7.8), indent=2)
        )
    blocks.append(
        "Example 2 (average document without citations):\n"
        + json.dumps(_example(dimensions, _PLAIN_EXAMPLE, 5.2), indent=2)
    )
    return "\n\n".join(blocks)


def _example(
    dimensions: list[str], table: dict[str, tuple[int, str]], overall: float
) -> dict[str, Any]:
    picked = {d: table[d] for d in dimensions if d in table}
    return {
        "scores": {d: score for d, (score, _) in picked.items()},
        "reasoning": {d: reason for d, (_, reason) in picked.items()},
        "verdict": f"Overall score: {overall}/10.",
    }


def normalize_scores(reply: EvaluationReply, rubric: Rubric) -> dict[str, DimensionScore]:
    """One clamped score per rubric dimension, defaulting missing values."""
    result: dict[str, DimensionScore] = {}
    for dim in rubric.dimensions:
        raw = reply.scores.get(dim)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            value = DEFAULT_DIMENSION_SCORE
        else:
            value = min(10.0, max(0.0, float(raw)))
        reason = reply.reasoning.get(dim, "")
        result[dim] = DimensionScore(score=value, reasoning=reason if isinstance(reason, str) else str(reason))
    return result


def apply_citation_clamp(
    scores: dict[str, DimensionScore], has_citations: bool
) -> bool:
    """Force the citation score to 1 when no citation signal exists.

    Mutates `scores` in place. Returns True when a correction was made.
    """
    citation = scores.get(CITATION_DIMENSION)
    if has_citations or citation is None or citation.score <= CITATION_CEILING_WITHOUT_SIGNAL:
        return False

    original = citation.score
    scores[CITATION_DIMENSION] = DimensionScore(
        score=CORRECTED_CITATION_SCORE,
        reasoning=(
            "[auto-corrected] No citation signal was detected in the text; the "
            f"citation score was lowered from {original:g} to "
            f"{CORRECTED_CITATION_SCORE:g}. Original reasoning: {citation.reasoning}"
        ),
    )
    logger.info("Citation score corrected from %g to %g", original, CORRECTED_CITATION_SCORE)
    return True


class EvaluatorAgent(BaseAgent):
    """Score a document against its discipline rubric."""

    @property
    def name(self) -> str:
        return "evaluator"

    @property
    def version(self) -> str:
        return "2.0.0"

    @property
    def description(self) -> str:
        return "Rubric evaluation of a single document"

    @property
    def task(self) -> str:
        return "evaluate"

    @property
    def estimated_cost_cents(self) -> int:
        return 30

    @property
    def input_schema(self) -> type[BaseModel]:
        return EvaluatorInput

    @property
    def output_schema(self) -> type[BaseModel]:
        return EvaluationReply

    @property
    def prompt_file(self) -> str | None:
        return str(_PROMPT_PATH)

    def _format_prompt(self, inp: EvaluatorInput) -> str:
        dims = inp.rubric.dimensions
        criteria = "\n\n".join(
            f"{i}. {d} (0-10):\n{CRITERIA.get(d, 'How well the document does on this dimension.')}"
            for i, d in enumerate(dims, start=1)
        )
        summary_block = (
            f"Document summary: {inp.summary_overview}\n\n" if inp.summary_overview else ""
        )
        score_format = json.dumps({d: 7 for d in dims})
        reasoning_format = json.dumps(
            {d: "what was observed, how it maps to the criteria, why this score" for d in dims}
        )
        return self._load_prompt().format(
            discipline=inp.rubric.discipline,
            criteria=criteria,
            summary_block=summary_block,
            text_limit=inp.text_limit,
            text=inp.text,
            citation_note=_CITATIONS_FOUND_NOTE if inp.has_citations else _NO_CITATIONS_NOTE,
            examples=build_examples(dims, inp.has_citations),
            score_format=score_format,
            reasoning_format=reasoning_format,
        )

    async def execute(
        self, inp: BaseModel, router: AIRouter, user_id: str | None = None
    ) -> AgentOutput:
        if not isinstance(inp, EvaluatorInput):
            raise TypeError(f"Expected EvaluatorInput, got {type(inp)}")

        return await self._complete_and_decode(
            self._format_prompt(inp), router, lambda: pending_reply(inp.rubric), user_id
        )
