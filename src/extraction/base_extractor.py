# src/extraction/base_extractor.py — v2
"""Abstract extractor interface for uploaded document formats."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ConversionError(Exception):
    """A converter failed on input it claims to support."""


class BaseExtractor(ABC):
    """Unified interface for document format extractors.

    Extractors return plain text. Headings are kept as ``#`` markers where
    the format exposes them, so title inference can use them.
    """

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """File extensions this extractor handles (e.g., ['.pdf'])."""

    @property
    def supported_mime_types(self) -> list[str]:
        """MIME types this extractor handles."""
        return []

    @abstractmethod
    async def extract(self, content: bytes) -> str:
        """Convert raw file bytes to text."""

    @staticmethod
    def decode(content: bytes) -> str:
        """UTF-8 decode, tolerating a BOM and invalid bytes."""
        return content.decode("utf-8-sig", errors="replace")
