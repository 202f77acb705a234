# src/extraction/rtf_extractor.py — v1
"""Rich text extractor.

A small tokenizer, not a full RTF reader: keeps body text, paragraph
breaks, hex and unicode escapes, and skips destination groups such as
font and color tables.
"""

from __future__ import annotations

import re

from linklore.extraction.base_extractor import BaseExtractor

_DESTINATIONS = frozenset({
    "fonttbl", "colortbl", "stylesheet", "info", "pict", "header", "footer",
    "listtable", "listoverridetable", "generator", "themedata", "latentstyles",
    "rsidtbl", "xmlnstbl", "datastore", "object",
})

_TOKEN_RE = re.compile(
    r"\\([a-zA-Z]+)(-?\d+)? ?"      # control word
    r"|\\'([0-9a-fA-F]{2})"         # hex escape
    r"|\\(.)"                       # control symbol
    r"|([{}])"                      # group
    r"|([^\\{}]+)",                 # text
    re.DOTALL,
)


class RtfExtractor(BaseExtractor):
    """Extractor for .rtf files."""

    @property
    def supported_extensions(self) -> list[str]:
        return [".rtf"]

    @property
    def supported_mime_types(self) -> list[str]:
        return ["application/rtf", "text/rtf"]

    async def extract(self, content: bytes) -> str:
        return strip_rtf(content.decode("latin-1"))


def strip_rtf(text: str) -> str:
    """Plain text of an RTF string."""
    out: list[str] = []
    stack: list[bool] = []
    skip = False
    group_start = False
    skip_next_char = False

    for match in _TOKEN_RE.finditer(text):
        word, arg, hexcode, symbol, brace, plain = match.groups()
        set_skip = False
        if brace == "{":
            stack.append(skip)
            group_start = True
            continue
        if brace == "}":
            skip = stack.pop() if stack else False
            group_start = False
            continue

        if word is not None:
            if group_start and word in _DESTINATIONS:
                skip = True
            elif not skip:
                if word in ("par", "line"):
                    out.append("\n")
                elif word == "tab":
                    out.append("\t")
                elif word == "u" and arg is not None:
                    out.append(chr(int(arg) % 65536))
                    set_skip = True
        elif symbol is not None:
            if symbol == "*" and group_start:
                skip = True
            elif not skip and symbol in "\\{}":
                out.append(symbol)
            elif not skip and symbol == "~":
                out.append(" ")
            elif not skip and symbol in "\r\n":
                out.append("\n")
        elif hexcode is not None:
            if not skip and not skip_next_char:
                out.append(bytes([int(hexcode, 16)]).decode("cp1252", errors="replace"))
        elif plain is not None and not skip:
            chunk = plain.replace("\r", "").replace("\n", "")
            if skip_next_char and chunk:
                chunk = chunk[1:]
            out.append(chunk)
        skip_next_char = set_skip
        group_start = False

    return "".join(out).strip()
