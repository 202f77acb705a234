# src/storage/base_object_store.py — v1
"""Abstract raw-bytes storage accessor (file key -> bytes)."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ObjectNotFoundError(KeyError):
    """Raised when a file key has no stored object."""


class BaseObjectStore(ABC):
    """Unified interface for uploaded-file storage backends."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the bytes stored under key.

        Raises:
            ObjectNotFoundError: If nothing is stored under key.
        """

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store bytes under key, overwriting any previous object."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether key has a stored object."""
