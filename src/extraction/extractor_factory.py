# src/extraction/extractor_factory.py — v3
"""Factory: instantiate an extractor from a file name/key and MIME type.

The extension of the file key wins; the MIME type is consulted only when
the extension is unknown. Any other ``text/*`` type is read as plain text.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from linklore.extraction.base_extractor import BaseExtractor
from linklore.extraction.doc_extractor import DocExtractor
from linklore.extraction.docx_extractor import DocxExtractor
from linklore.extraction.md_extractor import MdExtractor
from linklore.extraction.pdf_extractor import PdfExtractor
from linklore.extraction.rtf_extractor import RtfExtractor
from linklore.extraction.txt_extractor import TxtExtractor

# Registries map extension / MIME type → extractor class.
_EXTRACTOR_REGISTRY: dict[str, type[BaseExtractor]] = {}
_MIME_REGISTRY: dict[str, type[BaseExtractor]] = {}


def _register_defaults() -> None:
    """Register built-in extractors."""
    for cls in [TxtExtractor, MdExtractor, PdfExtractor, DocxExtractor,
                DocExtractor, RtfExtractor]:
        instance = cls()
        for ext in instance.supported_extensions:
            _EXTRACTOR_REGISTRY[ext.lower()] = cls
        for mime in instance.supported_mime_types:
            _MIME_REGISTRY[mime.lower()] = cls


_register_defaults()


class UnsupportedFormatError(ValueError):
    """Raised when no extractor is available for a format."""


def _extension_of(name: str) -> str:
    return PurePosixPath(name).suffix.lower()


def create_extractor(file_key: str = "", mime_type: str = "") -> BaseExtractor:
    """Create an extractor for a file.

    Args:
        file_key: Storage key or file name; its extension is tried first.
        mime_type: Declared MIME type, tried when the extension is unknown.

    Returns:
        BaseExtractor instance.

    Raises:
        UnsupportedFormatError: If no extractor matches.
    """
    ext = _extension_of(file_key)
    cls = _EXTRACTOR_REGISTRY.get(ext)
    if cls is None:
        mime = mime_type.split(";", 1)[0].strip().lower()
        cls = _MIME_REGISTRY.get(mime)
        if cls is None and mime.startswith("text/"):
            cls = TxtExtractor
    if cls is None:
        raise UnsupportedFormatError(
            f"Unsupported type for extraction (key={file_key!r}, mime={mime_type!r}). "
            f"Supported: {', '.join(supported_extensions())}"
        )
    return cls()


def register_extractor(extension: str, cls: type[BaseExtractor]) -> None:
    """Register a custom extractor for an extension."""
    _EXTRACTOR_REGISTRY[extension.lower()] = cls


def supported_extensions() -> list[str]:
    """Return list of supported file extensions."""
    return sorted(_EXTRACTOR_REGISTRY.keys())
