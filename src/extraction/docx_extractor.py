# src/extraction/docx_extractor.py — v2
"""DOCX extractor using python-docx.

Paragraph text with headings prefixed by ``#`` markers, followed by table
rows rendered as Markdown.
Requires the 'python-docx' package.
"""

from __future__ import annotations

import io
import logging

from linklore.extraction.base_extractor import BaseExtractor, ConversionError

logger = logging.getLogger(__name__)


class DocxExtractor(BaseExtractor):
    """Extractor for Word documents (.docx)."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".docx"]

    @property
    def supported_mime_types(self) -> list[str]:
        return ["application/vnd.openxmlformats-officedocument.wordprocessingml.document"]

    async def extract(self, content: bytes) -> str:
        try:
            import docx
        except ImportError as e:
            raise ImportError(
                "python-docx package required for DOCX extraction: "
                "pip install python-docx"
            ) from e

        try:
            doc = docx.Document(io.BytesIO(content))
        except Exception as exc:
            raise ConversionError(f"Cannot open DOCX: {exc}") from exc

        text_parts: list[str] = []
        for para in doc.paragraphs:
            if not para.text.strip():
                continue
            style_name = (para.style.name if para.style is not None else "") or ""
            style_name = style_name.lower()
            if style_name == "title":
                text_parts.append(f"# {para.text}")
            elif "heading" in style_name:
                try:
                    level = int(style_name.replace("heading", "").strip())
                except ValueError:
                    level = 1
                text_parts.append(f"{'#' * level} {para.text}")
            else:
                text_parts.append(para.text)

        for table in doc.tables:
            rows = [[cell.text.strip() for cell in row.cells] for row in table.rows]
            if len(rows) >= 2:
                text_parts.append(self._rows_to_markdown(rows))

        logger.debug("DOCX: %d paragraphs, %d tables", len(doc.paragraphs), len(doc.tables))
        return "\n\n".join(text_parts)

    @staticmethod
    def _rows_to_markdown(rows: list[list[str]]) -> str:
        max_cols = max(len(r) for r in rows)
        normalized = [r + [""] * (max_cols - len(r)) for r in rows]
        lines = ["| " + " | ".join(normalized[0]) + " |"]
        lines.append("| " + " | ".join("---" for _ in normalized[0]) + " |")
        lines.extend("| " + " | ".join(row) + " |" for row in normalized[1:])
        return "\n".join(lines)
