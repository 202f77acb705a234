# src/pipeline/agents/pair_consensus_analyst.py — v1
"""Pair consensus analyst: agreement and disagreement between two users.

Field names of the reply follow the JSON the prompt asks for
(``supportCount``, ``docIds``, ``doc1Id``...).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from linklore.pipeline.plugin_kit.base_agent import PROMPTS_DIR, BaseAgent
from linklore.pipeline.plugin_kit.models import AgentOutput

if TYPE_CHECKING:
    from linklore.llm.router import AIRouter

logger = logging.getLogger(__name__)

_PROMPT_PATH = PROMPTS_DIR / "pair_consensus.txt"


class PairConsensusInput(BaseModel):
    """Input schema for pair consensus analyst."""

    user_id1: str
    user_id2: str
    user1_claims: list[tuple[str, str]]
    user2_claims: list[tuple[str, str]]


class ReportedConsensus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    support_count: int = Field(default=1, alias="supportCount")
    doc_ids: list[str] = Field(default_factory=list, alias="docIds")


class ReportedPairDisagreement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    claim1: str = ""
    claim2: str = ""
    doc1_id: str = Field(default="", alias="doc1Id")
    doc2_id: str = Field(default="", alias="doc2Id")
    description: str = ""


class PairConsensusReply(BaseModel):
    """Output schema for pair consensus analyst."""

    consensus: list[ReportedConsensus] = Field(default_factory=list)
    disagreements: list[ReportedPairDisagreement] = Field(default_factory=list)


def _format_claims(claims: list[tuple[str, str]]) -> str:
    return "\n".join(f"- [{doc_id}] {claim}" for doc_id, claim in claims) or "(none)"


class PairConsensusAnalystAgent(BaseAgent):
    """Extract consensus and disagreement points between two users."""

    @property
    def name(self) -> str:
        return "pair_consensus_analyst"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Consensus and disagreement between the claims of two users"

    @property
    def task(self) -> str:
        return "consensus"

    @property
    def estimated_cost_cents(self) -> int:
        return 30

    @property
    def input_schema(self) -> type[BaseModel]:
        return PairConsensusInput

    @property
    def output_schema(self) -> type[BaseModel]:
        return PairConsensusReply

    @property
    def prompt_file(self) -> str | None:
        return str(_PROMPT_PATH)

    def _format_prompt(self, inp: PairConsensusInput) -> str:
        return self._load_prompt().format(
            user_id1=inp.user_id1,
            user_id2=inp.user_id2,
            user1_claims=_format_claims(inp.user1_claims),
            user2_claims=_format_claims(inp.user2_claims),
        )

    async def execute(
        self, inp: BaseModel, router: AIRouter, user_id: str | None = None
    ) -> AgentOutput:
        if not isinstance(inp, PairConsensusInput):
            raise TypeError(f"Expected PairConsensusInput, got {type(inp)}")
        return await self._complete_and_decode(
            self._format_prompt(inp), router, PairConsensusReply, user_id
        )
