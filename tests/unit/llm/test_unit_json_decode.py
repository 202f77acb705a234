# tests/unit/llm/test_unit_json_decode.py — v1
"""Tests for llm/json_decode.py — tagged strict decoding of model replies."""

from __future__ import annotations

from pydantic import BaseModel, Field

from linklore.llm.json_decode import clean_json, decode_json, extract_object, strip_fences


class Reply(BaseModel):
    title: str
    tags: list[str] = Field(default_factory=list)


def _default() -> Reply:
    return Reply(title="fallback")


class TestHelpers:
    def test_strip_fences(self):
        assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_fences('  {"a": 1}  ') == '{"a": 1}'

    def test_extract_object(self):
        assert extract_object('noise {"a": {"b": 1}} tail') == '{"a": {"b": 1}}'
        assert extract_object("no braces") is None

    def test_clean_json_keeps_urls(self):
        text = '{"u": "http://x.org/a", // note\n "v": [1, 2,], /* c */ }'
        assert clean_json(text) == '{"u": "http://x.org/a", \n "v": [1, 2]}'


class TestDecodeJson:
    def test_authoritative(self):
        decoded = decode_json('{"title": "A", "tags": ["x"]}', Reply, _default)
        assert decoded.kind == "authoritative"
        assert decoded.value.tags == ["x"]
        assert decoded.error is None

    def test_fenced_is_still_authoritative(self):
        decoded = decode_json('```json\n{"title": "A"}\n```', Reply, _default)
        assert decoded.kind == "authoritative"

    def test_recovered_from_prose_and_trailing_commas(self):
        decoded = decode_json('Sure! {"title": "A", "tags": ["x",],} Hope this helps.', Reply, _default)
        assert decoded.kind == "recovered"
        assert decoded.value.title == "A"

    def test_no_object_is_degraded(self):
        decoded = decode_json("I refuse.", Reply, _default)
        assert decoded.is_degraded
        assert decoded.value.title == "fallback"
        assert "no JSON object" in decoded.error

    def test_broken_json_is_degraded(self):
        decoded = decode_json('{"title": "A" "tags": []}', Reply, _default)
        assert decoded.is_degraded
        assert decoded.error.startswith("invalid JSON")

    def test_schema_mismatch_is_degraded(self):
        decoded = decode_json('{"tags": ["x"]}', Reply, _default)
        assert decoded.is_degraded
        assert decoded.error.startswith("schema mismatch: title")
