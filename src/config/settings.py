# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for broker, fallback pool, AI limits, quality gate
and logging settings. Every field maps to an upper-case env var of the
same name (e.g. ``AI_SUMMARIZE_TEXT_LIMIT``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Job broker ===
    redis_url: str = "redis://127.0.0.1:6379"
    queue_name: str = "linklore-ai"
    queue_concurrency: int = 3
    broker_enabled: bool = True
    broker_backend: Literal["redis", "memory"] = "redis"
    broker_connect_timeout_s: float = 2.0
    worker_poll_interval_s: float = 1.0

    # === Fallback executor ===
    fallback_workers: int = 3
    fallback_queue_size: int = 100
    fallback_shutdown_timeout_s: float = 30.0

    # === AI text limits (characters) ===
    ai_summarize_text_limit: int = 10_000
    ai_evaluate_text_limit: int = 8_000
    ai_analyze_text_limit: int = 15_000

    # === Retry policy for AI stages (broker mode only) ===
    ai_retry_attempts: int = 3
    ai_retry_backoff_delay_ms: int = 2_000

    # === Quality gate ===
    min_quality_score: float = 4.0
    min_critical_score: float = 3.0
    min_viewpoint_score: float = 2.0

    # === Cross-document analysis ===
    analysis_quorum: int = 2
    disagreement_batch_size: int = 10
    disagreement_debounce_s: float = 300.0
    snapshot_history_limit: int = 50

    # === Reconciliation ===
    reconcile_stalled_after_s: float = 1800.0

    # === LLM ===
    llm_default_provider: str = "anthropic"
    llm_default_model: str = "claude-sonnet-4-20250514"
    llm_temperature: float = 0.7
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    ai_cost_cap_cents: int = 50
    ai_admin_cost_cap_cents: int = 500

    # === Embeddings (semantic similarity) ===
    embedding_provider: Literal["openai", "none"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # === Persistence ===
    repository_backend: Literal["memory", "json"] = "json"
    data_root: Path = Path("~/.linklore")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("queue_concurrency", "fallback_workers", "fallback_queue_size")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator(
        "ai_summarize_text_limit", "ai_evaluate_text_limit", "ai_analyze_text_limit"
    )
    @classmethod
    def validate_text_limit(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("text limits must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.analysis_quorum < 2:
            errors.append("ANALYSIS_QUORUM must be >= 2")

        if self.min_critical_score > self.min_quality_score:
            errors.append("MIN_CRITICAL_SCORE must be <= MIN_QUALITY_SCORE")

        if self.ai_retry_attempts < 1:
            errors.append("AI_RETRY_ATTEMPTS must be >= 1")

        if self.ai_cost_cap_cents > self.ai_admin_cost_cap_cents:
            errors.append("AI_COST_CAP_CENTS must be <= AI_ADMIN_COST_CAP_CENTS")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def data_path(self) -> Path:
        """Expanded data root."""
        return Path(self.data_root).expanduser()


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-process config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
