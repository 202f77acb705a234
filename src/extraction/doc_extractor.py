# src/extraction/doc_extractor.py — v1
"""Legacy Word (.doc) extractor.

Converts to .docx with LibreOffice in headless mode, then reuses the DOCX
extractor. Requires ``soffice`` (or ``libreoffice``) on PATH.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path

from linklore.extraction.base_extractor import BaseExtractor, ConversionError
from linklore.extraction.docx_extractor import DocxExtractor

logger = logging.getLogger(__name__)

_CONVERT_TIMEOUT_S = 30.0


def find_office_binary() -> str | None:
    return shutil.which("soffice") or shutil.which("libreoffice")


class DocExtractor(BaseExtractor):
    """Extractor for legacy Word documents (.doc)."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".doc"]

    @property
    def supported_mime_types(self) -> list[str]:
        return ["application/msword"]

    async def extract(self, content: bytes) -> str:
        converted = await self.convert_to_docx(content)
        return await DocxExtractor().extract(converted)

    async def convert_to_docx(self, content: bytes) -> bytes:
        binary = find_office_binary()
        if binary is None:
            raise ConversionError("LibreOffice is required to convert .doc files")

        with tempfile.TemporaryDirectory(prefix="linklore-doc-") as tmp:
            in_path = Path(tmp) / "input.doc"
            out_path = Path(tmp) / "input.docx"
            in_path.write_bytes(content)
            proc = await asyncio.create_subprocess_exec(
                binary, "--headless", "--convert-to", "docx", "--outdir", tmp, str(in_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await asyncio.wait_for(proc.communicate(), timeout=_CONVERT_TIMEOUT_S)
            except asyncio.TimeoutError as exc:
                proc.kill()
                await proc.wait()
                raise ConversionError(
                    f".doc conversion timed out after {_CONVERT_TIMEOUT_S:.0f}s"
                ) from exc
            if proc.returncode != 0 or not out_path.exists():
                message = stderr.decode("utf-8", errors="replace").strip()
                raise ConversionError(f".doc conversion failed: {message or proc.returncode}")
            return out_path.read_bytes()
