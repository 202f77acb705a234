# src/storage/local_object_store.py — v1
"""Local filesystem object store (default backend)."""

from __future__ import annotations

from pathlib import Path

from linklore.storage.base_object_store import BaseObjectStore, ObjectNotFoundError


class LocalObjectStore(BaseObjectStore):
    """Store uploaded files under a root directory, one file per key."""

    def __init__(self, base_path: str | Path) -> None:
        self._base = Path(base_path).expanduser()

    def _resolve(self, key: str) -> Path:
        """Resolve a key relative to the root, refusing escapes."""
        path = (self._base / key).resolve()
        if self._base.resolve() not in path.parents and path != self._base.resolve():
            raise ValueError(f"Key escapes object store root: {key!r}")
        return path

    async def get(self, key: str) -> bytes:
        path = self._resolve(key)
        if not path.is_file():
            raise ObjectNotFoundError(key)
        return path.read_bytes()

    async def put(self, key: str, data: bytes) -> None:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()


class InMemoryObjectStore(BaseObjectStore):
    """Dict-backed object store for tests and single-process runs."""

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self._objects: dict[str, bytes] = dict(objects or {})

    async def get(self, key: str) -> bytes:
        try:
            return self._objects[key]
        except KeyError:
            raise ObjectNotFoundError(key) from None

    async def put(self, key: str, data: bytes) -> None:
        self._objects[key] = data

    async def exists(self, key: str) -> bool:
        return key in self._objects
