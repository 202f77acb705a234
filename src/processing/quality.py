# src/processing/quality.py — v1
"""Document quality gate for cross-document analysis.

A document takes part in pair consensus only when its evaluation is good
enough to extract usable positions from.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from linklore.core.models import Evaluation
from linklore.processing.rubrics import (
    VIEWPOINT_DIMENSION,
    QualityThresholds,
    get_rubric,
    weighted_score,
)


class QualityReport(BaseModel):
    """Outcome of the quality gate with reasons and suggestions."""

    is_sufficient: bool
    overall_score: float
    critical_score: float
    reasons: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


def check_document_quality(
    scores: dict[str, float],
    discipline: str | None = None,
    thresholds: QualityThresholds | None = None,
) -> QualityReport:
    """Apply the quality gate to dimension scores.

    Sufficient iff the weighted score, the mean of the non-zero critical
    dimensions and the viewpoint score all reach their thresholds and at
    least one dimension scores 4 or more.
    """
    thresholds = thresholds or QualityThresholds()
    rubric = get_rubric(discipline)
    overall = weighted_score(scores, rubric)

    critical_values = [scores.get(d, 0.0) for d in rubric.critical]
    critical_values = [v for v in critical_values if v > 0]
    critical = sum(critical_values) / len(critical_values) if critical_values else 0.0

    reasons: list[str] = []
    suggestions: list[str] = []

    if overall < thresholds.overall:
        reasons.append(f"Overall score has room to improve (currently {overall:.1f}/10)")
        suggestions.append("Improve overall quality: state positions clearly and argue them fully")

    if critical < thresholds.critical:
        reasons.append(
            f"Key dimensions ({', '.join(rubric.critical)}) average "
            f"{critical:.1f}/10"
        )
        suggestions.append("Strengthen the stated position, the reasoning and the support")

    viewpoint = scores.get(VIEWPOINT_DIMENSION, 0.0)
    if viewpoint < thresholds.viewpoint:
        reasons.append(
            f"Viewpoint needs work (currently {viewpoint:.1f}/10); no clear position to extract"
        )
        suggestions.append("State the core position explicitly")

    if scores and not any(v >= 4 for v in scores.values()):
        reasons.append("No dimension reaches the basic level (4 or above)")
        suggestions.append("Bring at least one dimension up to the basic level")

    return QualityReport(
        is_sufficient=not reasons,
        overall_score=overall,
        critical_score=critical,
        reasons=reasons,
        suggestions=suggestions,
    )


def evaluation_quality(
    evaluation: Evaluation, thresholds: QualityThresholds | None = None
) -> QualityReport:
    """Quality gate for a stored evaluation."""
    return check_document_quality(
        evaluation.score_values(), evaluation.discipline, thresholds
    )
