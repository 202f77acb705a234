# src/extraction/txt_extractor.py — v3
"""Plain text extractor — passthrough."""

from __future__ import annotations

from linklore.extraction.base_extractor import BaseExtractor


class TxtExtractor(BaseExtractor):
    """Extractor for plain text files (.txt)."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".txt", ".text"]

    @property
    def supported_mime_types(self) -> list[str]:
        return ["text/plain"]

    async def extract(self, content: bytes) -> str:
        return self.decode(content)
