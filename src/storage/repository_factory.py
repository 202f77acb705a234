# src/storage/repository_factory.py — v1
"""Factory for repository and object store instantiation."""

from __future__ import annotations

from linklore.config.settings import Settings
from linklore.storage.base_object_store import BaseObjectStore
from linklore.storage.base_repository import BaseRepository


def create_repository(settings: Settings | None = None) -> BaseRepository:
    """Instantiate the configured repository backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseRepository implementation.
    """
    backend = "memory" if settings is None else settings.repository_backend

    if backend == "memory":
        from linklore.storage.memory_repository import InMemoryRepository
        return InMemoryRepository()

    if backend == "json":
        from linklore.storage.json_repository import JsonRepository
        return JsonRepository(root=settings.data_path)  # type: ignore[union-attr]

    raise ValueError(f"Unsupported repository backend: {backend!r}")


def create_object_store(settings: Settings | None = None) -> BaseObjectStore:
    """Instantiate the object store holding uploaded files."""
    if settings is None:
        from linklore.storage.local_object_store import InMemoryObjectStore
        return InMemoryObjectStore()

    from linklore.storage.local_object_store import LocalObjectStore
    return LocalObjectStore(settings.data_path / "uploads")
