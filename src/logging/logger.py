# src/logging/logger.py — v2
"""Worker log output: formatters that carry the job context, and setup.

Every record is stamped with the job/document/stage set in
``linklore.logging.context``. ``setup_logging`` installs one stdout
handler plus, when ``log_file`` is configured, a size-rotated file.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from linklore.config.settings import Settings
from linklore.logging.context import get_context

ROOT_LOGGER = "linklore"

_UNITS = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}


def parse_size(text: str) -> int:
    """'10MB' -> bytes. KB/MB/GB, case-insensitive."""
    match = re.fullmatch(r"(\d+)\s*([KMG]B)", text.strip(), re.IGNORECASE)
    if match is None:
        raise ValueError(f"Invalid size {text!r}, expected e.g. '10MB'")
    return int(match.group(1)) * _UNITS[match.group(2).upper()]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Single-line text for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        tags = [
            f"[{ctx.stage}]" if ctx.stage else "",
            f"(doc={ctx.document_id})" if ctx.document_id else "",
            f"(job={ctx.job_id})" if ctx.job_id else "",
        ]
        head = " ".join(
            part
            for part in (_utc_now().strftime("%Y-%m-%d %H:%M:%S"), f"[{record.levelname:8s}]",
                         record.name, *tags)
            if part
        )
        line = f"{head} - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def _file_handler(path: Path, rotation: str, retention: int) -> RotatingFileHandler:
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        path, maxBytes=parse_size(rotation), backupCount=retention, encoding="utf-8"
    )


def setup_logging(settings: Settings, level: str | None = None) -> logging.Logger:
    """(Re)configure the ``linklore`` logger from settings.

    Args:
        settings: Supplies log_level, log_format, log_file, log_rotation
            and log_retention.
        level: Overrides ``settings.log_level`` (e.g. DEBUG for --verbose).

    Returns:
        The configured package root logger.
    """
    root = logging.getLogger(ROOT_LOGGER)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))

    formatter: logging.Formatter = (
        JsonFormatter() if settings.log_format == "json" else TextFormatter()
    )
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(
            _file_handler(Path(settings.log_file), settings.log_rotation, settings.log_retention)
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root
