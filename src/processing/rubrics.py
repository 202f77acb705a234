# src/processing/rubrics.py — v1
"""Discipline rubrics: dimensions, weights, critical dimensions, criteria."""

from __future__ import annotations

from pydantic import BaseModel, Field

RUBRIC_VERSION = "v1.0"
DEFAULT_DISCIPLINE = "default"
CITATION_DIMENSION = "citation"
VIEWPOINT_DIMENSION = "viewpoint"


class Rubric(BaseModel):
    """Scoring rubric for one discipline. Weights sum to 1."""

    discipline: str
    weights: dict[str, float]
    critical: tuple[str, ...]

    @property
    def dimensions(self) -> list[str]:
        return list(self.weights)


RUBRICS: dict[str, Rubric] = {
    "default": Rubric(
        discipline="default",
        weights={"structure": 0.2, "logic": 0.25, "viewpoint": 0.25, "evidence": 0.2, "citation": 0.1},
        critical=("viewpoint", "logic", "evidence"),
    ),
    "philosophy": Rubric(
        discipline="philosophy",
        weights={"structure": 0.15, "logic": 0.3, "viewpoint": 0.3, "argumentation": 0.15, "citation": 0.1},
        critical=("viewpoint", "logic", "argumentation"),
    ),
    "literature": Rubric(
        discipline="literature",
        weights={"structure": 0.2, "expression": 0.3, "viewpoint": 0.25, "material": 0.15, "citation": 0.1},
        critical=("viewpoint", "expression", "material"),
    ),
    "history": Rubric(
        discipline="history",
        weights={"structure": 0.15, "logic": 0.2, "viewpoint": 0.25, "sources": 0.3, "citation": 0.1},
        critical=("viewpoint", "logic", "sources"),
    ),
    "science": Rubric(
        discipline="science",
        weights={"structure": 0.15, "logic": 0.25, "viewpoint": 0.2, "data": 0.3, "citation": 0.1},
        critical=("viewpoint", "logic", "data"),
    ),
}

DISCIPLINE_ALIASES: dict[str, str] = {
    "哲学": "philosophy",
    "文学": "literature",
    "历史": "history",
    "科学": "science",
    "philosophie": "philosophy",
    "lit": "literature",
    "sciences": "science",
}

CRITERIA: dict[str, str] = {
    "structure": (
        "Organization, sectioning and layering of the document.\n"
        "- 9-10: very clear structure with introduction, body and conclusion; smooth transitions\n"
        "- 7-8: clear structure, some abrupt transitions\n"
        "- 5-6: complete but weakly layered\n"
        "- 0-4: disorganized, hard to follow"
    ),
    "logic": (
        "Rigor of the argument and completeness of the reasoning chain.\n"
        "- 9-10: rigorous, complete chain, no gaps\n"
        "- 7-8: mostly rigorous, a few leaps\n"
        "- 5-6: visible breaks in the chain\n"
        "- 0-4: confused reasoning with many gaps"
    ),
    "viewpoint": (
        "Novelty, depth and distinctiveness of the positions taken.\n"
        "- 9-10: original and deep\n"
        "- 7-8: some novelty, moderate depth\n"
        "- 5-6: conventional, shallow\n"
        "- 0-4: no discernible position"
    ),
    "evidence": (
        "Quality, sufficiency and relevance of supporting evidence.\n"
        "- 9-10: ample, relevant, high quality\n"
        "- 7-8: mostly sufficient\n"
        "- 5-6: thin or weakly related\n"
        "- 0-4: missing or irrelevant"
    ),
    "citation": (
        "Quantity, quality and formatting of cited sources.\n"
        "- 9-10: ample, well formatted, high-quality sources\n"
        "- 7-8: fairly ample, mostly well formatted\n"
        "- 5-6: insufficient or inconsistently formatted\n"
        "- 3-4: a few poorly formatted citations\n"
        "- 0-2: no citations at all (no reference list, footnotes, in-text markers, DOI or ISBN); must score 0-2"
    ),
    "argumentation": (
        "Rigor and persuasiveness of the argumentation.\n"
        "- 9-10: rigorous and convincing\n"
        "- 7-8: mostly rigorous, a few weak links\n"
        "- 5-6: noticeably weak links\n"
        "- 0-4: unconvincing"
    ),
    "expression": (
        "Accuracy and fluency of the writing.\n"
        "- 9-10: precise, fluent, concise\n"
        "- 7-8: mostly precise\n"
        "- 5-6: vague in places\n"
        "- 0-4: hard to understand"
    ),
    "material": (
        "Quality and richness of the material used.\n"
        "- 9-10: rich, varied, authoritative\n"
        "- 7-8: fairly rich\n"
        "- 5-6: thin, single-sourced\n"
        "- 0-4: insufficient"
    ),
    "sources": (
        "Use and verification of historical sources.\n"
        "- 9-10: rich primary sources, careful verification\n"
        "- 7-8: fairly rich, mostly verified\n"
        "- 5-6: thin, loosely verified\n"
        "- 0-4: insufficient, unverified"
    ),
    "data": (
        "Accuracy of the data and depth of its analysis.\n"
        "- 9-10: accurate data, deep analysis\n"
        "- 7-8: mostly accurate, fairly deep\n"
        "- 5-6: questionable data, shallow analysis\n"
        "- 0-4: insufficient data"
    ),
}


def resolve_discipline(discipline: str | None) -> str:
    """Canonical discipline name; unknown or empty values map to default."""
    if not discipline:
        return DEFAULT_DISCIPLINE
    key = discipline.strip()
    key = DISCIPLINE_ALIASES.get(key, DISCIPLINE_ALIASES.get(key.lower(), key.lower()))
    return key if key in RUBRICS else DEFAULT_DISCIPLINE


def get_rubric(discipline: str | None) -> Rubric:
    return RUBRICS[resolve_discipline(discipline)]


def weighted_score(scores: dict[str, float], rubric: Rubric) -> float:
    """Weighted mean over the dimensions the rubric knows; 0.0 if none."""
    total_weight = 0.0
    weighted = 0.0
    for name, value in scores.items():
        weight = rubric.weights.get(name, 0.0)
        weighted += value * weight
        total_weight += weight
    return weighted / total_weight if total_weight > 0 else 0.0


class QualityThresholds(BaseModel):
    overall: float = Field(default=4.0, ge=0.0, le=10.0)
    critical: float = Field(default=3.0, ge=0.0, le=10.0)
    viewpoint: float = Field(default=2.0, ge=0.0, le=10.0)
