# src/extraction/pdf_extractor.py — v2
"""PDF extractor using PyMuPDF (fitz).

Requires the 'pymupdf' package.
"""

from __future__ import annotations

import logging

from linklore.extraction.base_extractor import BaseExtractor, ConversionError

logger = logging.getLogger(__name__)


class PdfExtractor(BaseExtractor):
    """Extractor for PDF files using PyMuPDF."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".pdf"]

    @property
    def supported_mime_types(self) -> list[str]:
        return ["application/pdf"]

    async def extract(self, content: bytes) -> str:
        try:
            import fitz  # PyMuPDF
        except ImportError as e:
            raise ImportError(
                "pymupdf package required for PDF extraction: pip install pymupdf"
            ) from e

        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except Exception as exc:
            raise ConversionError(f"Cannot parse PDF: {exc}") from exc

        try:
            pages = [page.get_text("text") for page in doc]
        finally:
            doc.close()
        logger.debug("PDF: %d pages", len(pages))
        return "\n".join(pages)
