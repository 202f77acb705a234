# src/core/locks.py — v1
"""Per-key asyncio locks that disappear once nobody holds or awaits them."""

from __future__ import annotations

import asyncio
import weakref


class KeyedLocks:
    """asyncio.Lock per key (document id, room id, ...).

    Locks live in a WeakValueDictionary: every holder or waiter keeps a
    strong reference through ``lock()``, so an entry is dropped as soon as
    the last one is done with it.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
