# src/extraction/normalize.py — v1
"""Text normalization and title inference for extracted documents."""

from __future__ import annotations

import re

TITLE_MAX_LENGTH = 100
PLACEHOLDER_TITLES = frozenset({"", "Processing...", "处理中..."})

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_HEADING_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)


def normalize_text(text: str) -> str:
    """Unify newlines, strip control characters, collapse blank runs."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS_RE.sub("", text)
    text = _TRAILING_SPACE_RE.sub("\n", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def infer_title(text: str) -> str | None:
    """Best-effort document title.

    First level-one Markdown heading, else the first non-empty line when it
    is between 6 and 99 characters long.
    """
    match = _HEADING_RE.search(text)
    if match:
        return match.group(1).strip()[:TITLE_MAX_LENGTH]
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            continue
        if 5 < len(line) < TITLE_MAX_LENGTH:
            return line
        return None
    return None


def is_placeholder_title(title: str | None) -> bool:
    return title is None or title.strip() in PLACEHOLDER_TITLES
