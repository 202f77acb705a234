# src/extraction/md_extractor.py — v3
"""Markdown extractor — keeps headings, drops images and link targets."""

from __future__ import annotations

import re

from linklore.extraction.base_extractor import BaseExtractor

_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_LINK_RE = re.compile(r"(?<!!)\[([^\]]+)\]\(([^)]+)\)")
_HTML_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")


class MdExtractor(BaseExtractor):
    """Extractor for Markdown files (.md, .markdown)."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".md", ".markdown"]

    @property
    def supported_mime_types(self) -> list[str]:
        return ["text/markdown", "text/x-markdown"]

    async def extract(self, content: bytes) -> str:
        text = self.decode(content)
        text = _IMAGE_RE.sub(lambda m: m.group(1), text)
        text = _LINK_RE.sub(lambda m: m.group(1), text)
        return _HTML_TAG_RE.sub("", text)
