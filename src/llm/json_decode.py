# src/llm/json_decode.py — v1
"""Strict schema decoding of model output with an explicit recovery tag.

Model replies are untrusted text. ``decode_json`` never raises on bad
output; instead the result says how much the caller can trust it:

- ``authoritative``: the reply (fences stripped) is valid JSON matching the schema.
- ``recovered``: the reply only validated after cleanup (outermost object
  extracted, comments and trailing commas removed).
- ``degraded``: nothing validated; ``value`` is the caller's default.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Callable, Generic, Literal, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)

DecodeKind = Literal["authoritative", "recovered", "degraded"]

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
# Line comments only when not inside a URL like http://
_LINE_COMMENT_RE = re.compile(r"(?<![:\"'])//[^\n]*")


@dataclass(frozen=True)
class Decoded(Generic[T]):
    """Tagged decode result."""

    kind: DecodeKind
    value: T
    error: str | None = None

    @property
    def is_degraded(self) -> bool:
        return self.kind == "degraded"


def strip_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    return _FENCE_RE.sub("", text.strip()).strip()


def extract_object(text: str) -> str | None:
    """Return the outermost ``{...}`` span of text, or None."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def clean_json(text: str) -> str:
    """Drop comments and trailing commas that models like to emit."""
    text = _BLOCK_COMMENT_RE.sub("", text)
    text = _LINE_COMMENT_RE.sub("", text)
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def decode_json(
    text: str,
    schema: type[T],
    default: Callable[[], T],
) -> Decoded[T]:
    """Decode a model reply into `schema`.

    Args:
        text: Raw model output.
        schema: Pydantic model the reply must match.
        default: Factory for the degraded value.

    Returns:
        Decoded result tagged authoritative, recovered or degraded.
    """
    stripped = strip_fences(text)
    try:
        return Decoded("authoritative", schema.model_validate_json(stripped))
    except ValidationError as exc:
        first_error = _short_error(exc)

    candidate = extract_object(stripped)
    if candidate is None:
        return Decoded("degraded", default(), f"no JSON object found ({first_error})")

    try:
        data = json.loads(clean_json(candidate))
    except json.JSONDecodeError as exc:
        return Decoded("degraded", default(), f"invalid JSON: {exc.msg}")

    try:
        return Decoded("recovered", schema.model_validate(data))
    except ValidationError as exc:
        return Decoded("degraded", default(), f"schema mismatch: {_short_error(exc)}")


def _short_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg', '')}" if loc else str(first.get("msg", ""))
