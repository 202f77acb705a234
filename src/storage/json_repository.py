# src/storage/json_repository.py — v1
"""JSON file-backed repository (default REPOSITORY_BACKEND=json).

Holds the full state in memory and rewrites a single JSON file after every
mutation. Suitable for one worker process; use a database-backed
BaseRepository for multi-process deployments.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from linklore.storage.memory_repository import InMemoryRepository, RepositoryState

logger = logging.getLogger(__name__)


class JsonRepository(InMemoryRepository):
    """Repository persisted to ``<root>/repository.json``."""

    def __init__(self, root: str | Path) -> None:
        self._path = Path(root).expanduser() / "repository.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(self._load())

    def _load(self) -> RepositoryState:
        if not self._path.exists():
            return RepositoryState()
        try:
            return RepositoryState.model_validate_json(
                self._path.read_text(encoding="utf-8")
            )
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to read repository file %s: %s", self._path, e)
            return RepositoryState()

    def _changed(self) -> None:
        # Write-then-rename so a crash never leaves a truncated file.
        tmp = self._path.with_suffix(".json.tmp")
        tmp.write_text(self._state.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, self._path)
