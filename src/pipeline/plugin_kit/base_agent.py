# src/pipeline/plugin_kit/base_agent.py — v2
"""Standard agent interface for model-backed pipeline steps.

An agent owns one prompt template and one output schema. It formats the
prompt, calls the AI router once and decodes the reply strictly; a reply
that does not decode yields a degraded output, never an exception. Router
errors (cost cap, exhausted retries) propagate to the calling stage.
"""

from __future__ import annotations

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel

from linklore.llm.json_decode import decode_json
from linklore.pipeline.plugin_kit.models import AgentMetadata, AgentOutput

if TYPE_CHECKING:
    from linklore.llm.models import LLMResponse
    from linklore.llm.router import AIRouter

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


class BaseAgent(ABC):
    """Standard interface for all pipeline agents."""

    def __init__(self) -> None:
        self._prompt_template: str | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique agent identifier (e.g., 'summarizer', 'evaluator')."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Agent version (semver)."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this agent does."""

    @property
    @abstractmethod
    def task(self) -> str:
        """Router task hint."""

    @property
    @abstractmethod
    def estimated_cost_cents(self) -> int:
        """Cost estimate passed to the router."""

    @property
    @abstractmethod
    def input_schema(self) -> type[BaseModel]:
        """Pydantic model of the agent input."""

    @property
    @abstractmethod
    def output_schema(self) -> type[BaseModel]:
        """Pydantic model the model reply must decode into."""

    @property
    def prompt_file(self) -> str | None:
        """Path to prompt template file."""
        return None

    def _load_prompt(self) -> str:
        if self._prompt_template is None:
            if self.prompt_file is None:
                raise ValueError(f"Agent '{self.name}' has no prompt file")
            self._prompt_template = Path(self.prompt_file).read_text(encoding="utf-8")
        return self._prompt_template

    @abstractmethod
    async def execute(
        self, inp: BaseModel, router: AIRouter, user_id: str | None = None
    ) -> AgentOutput:
        """Execute the agent's logic.

        Args:
            inp: Instance of ``input_schema``.
            router: AI router used for the single model call.
            user_id: Attributed in the usage log.

        Returns:
            AgentOutput with data, confidence, decode kind and metadata.
        """

    async def _complete_and_decode(
        self,
        prompt: str,
        router: AIRouter,
        default: Callable[[], BaseModel],
        user_id: str | None = None,
    ) -> AgentOutput:
        """One router call, strictly decoded into ``output_schema``."""
        start = time.monotonic()
        response = await router.complete(
            task=self.task,
            prompt=prompt,
            estimated_cost_cents=self.estimated_cost_cents,
            user_id=user_id,
        )
        decoded = decode_json(response.content, self.output_schema, default)
        warnings: list[str] = []
        if decoded.is_degraded:
            logger.warning(
                "Agent '%s' reply unusable, using default: %s", self.name, decoded.error
            )
            warnings.append(decoded.error or "degraded")

        output = AgentOutput(
            data=decoded.value.model_dump(),
            confidence=0.0,
            metadata=self._metadata(prompt, response, start, time.monotonic()),
            decode_kind=decoded.kind,
            warnings=warnings,
        )
        output.confidence = self.validate_output(output)
        return output

    def _metadata(
        self, prompt: str, response: LLMResponse, started: float, finished: float
    ) -> AgentMetadata:
        return AgentMetadata(
            agent_name=self.name,
            agent_version=self.version,
            execution_time_ms=int((finished - started) * 1000),
            llm_calls=1,
            tokens_used=response.input_tokens + response.output_tokens,
            cost_cents=response.cost_cents,
            prompt_hash=hashlib.sha256(prompt.encode()).hexdigest()[:16],
        )

    def validate_output(self, output: AgentOutput) -> float:
        """Self-validation returning confidence score (0.0-1.0).

        Override for custom validation logic.
        """
        return 0.0 if output.is_degraded else 1.0
