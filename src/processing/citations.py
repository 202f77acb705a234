# src/processing/citations.py — v1
"""Deterministic citation-presence heuristic.

Pure function of the input text. Evaluate runs it before calling the model
and uses the result to bound the model's citation score.
"""

from __future__ import annotations

import re

_REFERENCE_HEADER_RE = re.compile(
    r"(?:参考文献|引用文献|参考书目|\breferences?\b|\bbibliography\b|\bworks?\s*cited\b)"
    r"[:：]?[ \t]*\r?\n([\s\S]{50,})",
    re.IGNORECASE,
)

# Each pattern needs at least two hits.
_IN_TEXT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\[\d+\]"),                              # [1]
    re.compile(r"\[\d+[-\s,]\d+\]"),                     # [1-5], [1,2]
    re.compile(r"\(\d{4}[a-z]?\)"),                      # (2020), (2020a)
    re.compile(r"\([A-Z][a-z]+\s*,\s*\d{4}\)"),          # (Smith, 2020)
    re.compile(r"\([A-Z][a-z]+\s+et\s+al\.\s*,\s*\d{4}\)"),  # (Smith et al., 2020)
)

_FOOTNOTE_GLYPH_RE = re.compile(r"[¹²³⁰⁴-⁹]")

_FORMAT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"doi[:\s]?10\.\d+/\S+", re.IGNORECASE),
    re.compile(r"isbn[:\s]?\d{10,13}", re.IGNORECASE),
    re.compile(r"https?://\S+(?:doi|pubmed|arxiv)", re.IGNORECASE),
)

# One hit is enough.
_AUTHOR_YEAR_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s*,\s*\d{4}[a-z]?\)"),  # (Jane Smith, 2020a)
    re.compile(r"\[[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s*,\s*\d{4}[a-z]?\]"),  # [Smith, 2020]
)


def has_reference_section(text: str) -> bool:
    """Reference-list header followed by substantial content."""
    match = _REFERENCE_HEADER_RE.search(text)
    return bool(match and len(match.group(1).strip()) > 20)


def has_citations(text: str) -> bool:
    """Whether the text shows any citation signal.

    Signals: a reference section, repeated bracketed or parenthetical
    citations, repeated footnote glyphs, a DOI/ISBN/scholarly URL, or an
    author-year citation.
    """
    if not text:
        return False
    if has_reference_section(text):
        return True
    if any(len(p.findall(text)) >= 2 for p in _IN_TEXT_PATTERNS):
        return True
    if len(_FOOTNOTE_GLYPH_RE.findall(text)) >= 2:
        return True
    if any(p.search(text) for p in _FORMAT_PATTERNS):
        return True
    return any(p.search(text) for p in _AUTHOR_YEAR_PATTERNS)
