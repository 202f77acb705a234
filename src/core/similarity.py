# src/core/similarity.py — v1
"""Semantic similarity between two short texts, scored in [0, 1].

Embeddings + cosine similarity (numpy) when an embedder is configured,
falling back to asking the model for a score, then to a neutral 0.5.
Results are cached per text pair for 24 hours.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from linklore.llm.embeddings.base_embedder import BaseEmbedder
    from linklore.llm.router import AIRouter

logger = logging.getLogger(__name__)

NEUTRAL_SIMILARITY = 0.5
_SCORE_RE = re.compile(r"(?<![\d.])(1(?:\.0+)?|0?\.\d+|0)(?![\d.])")


def cosine_similarity(vec1: list[float] | np.ndarray, vec2: list[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 when either is all zeros."""
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector shapes differ: {a.shape} vs {b.shape}")
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom < 1e-10:
        return 0.0
    return float(np.dot(a, b) / denom)


def parse_score(text: str) -> float | None:
    """First number in [0, 1] found in a model reply."""
    match = _SCORE_RE.search(text)
    if match is None:
        return None
    return min(1.0, max(0.0, float(match.group(1))))


class SemanticSimilarity:
    """Cached similarity scorer."""

    def __init__(
        self,
        embedder: BaseEmbedder | None = None,
        router: AIRouter | None = None,
        cache_ttl_s: float = 24 * 3600,
    ) -> None:
        self._embedder = embedder
        self._router = router
        self._cache_ttl_s = cache_ttl_s
        self._cache: dict[str, tuple[float, float]] = {}

    @staticmethod
    def _cache_key(text1: str, text2: str) -> str:
        a, b = sorted((text1, text2))
        return hashlib.sha256(f"{a}\x00{b}".encode("utf-8")).hexdigest()

    async def similarity(self, text1: str, text2: str) -> float:
        """Similarity in [0, 1]; never raises."""
        if text1.strip() == text2.strip():
            return 1.0

        key = self._cache_key(text1, text2)
        cached = self._cache.get(key)
        if cached is not None and time.monotonic() - cached[1] < self._cache_ttl_s:
            return cached[0]

        score = await self._score(text1, text2)
        self._cache[key] = (score, time.monotonic())
        return score

    async def _score(self, text1: str, text2: str) -> float:
        if self._embedder is not None:
            try:
                vectors = await self._embedder.embed_texts([text1, text2])
                if len(vectors) == 2:
                    return min(1.0, max(0.0, cosine_similarity(vectors[0], vectors[1])))
                logger.warning("Embedding returned %d vectors, expected 2", len(vectors))
            except Exception as exc:
                logger.warning("Embedding similarity failed, asking model: %s", exc)

        if self._router is None:
            return NEUTRAL_SIMILARITY

        prompt = (
            "Rate the semantic similarity of the two statements below on a scale "
            "from 0 to 1 (1 = same meaning, 0 = unrelated or opposite).\n\n"
            f"Statement 1: {text1}\n\nStatement 2: {text2}\n\n"
            "Reply with the number only, e.g. 0.85"
        )
        try:
            response = await self._router.complete(
                task="similarity", prompt=prompt, estimated_cost_cents=1
            )
        except Exception as exc:
            logger.warning("Model similarity scoring failed: %s", exc)
            return NEUTRAL_SIMILARITY

        score = parse_score(response.content)
        return NEUTRAL_SIMILARITY if score is None else score
