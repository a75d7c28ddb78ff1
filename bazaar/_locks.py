"""
Keyed locks — one asyncio.Lock per key, acquired in a global order.

    locks = KeyedLocks[int]()

    async with locks.hold(3, 1, 2):   # acquires 1, 2, 3
        ...

Note: Entries are created on demand and dropped when nobody holds or waits.
Почему: Carts and items come and go; the table must not grow forever.
"""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLocks[K: Hashable]:
    """Per-key mutual exclusion. Different keys never contend."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[K, _Entry] = {}

    def hold(self, *keys: K) -> Held[K]:
        """
        Context manager acquiring every key in sorted order.

        Duplicate keys are acquired once. Sorting gives every caller the
        same acquisition order, so two holders can never deadlock.
        """
        ordered: list[K] = sorted(set(keys), key=_sort_key)
        return Held(self, tuple(ordered))

    def is_locked(self, key: K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)

    async def _acquire(self, key: K) -> None:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.users += 1
        try:
            await entry.lock.acquire()
        except BaseException:
            self._leave(key, entry)
            raise

    def _release(self, key: K) -> None:
        entry = self._entries[key]
        entry.lock.release()
        self._leave(key, entry)

    def _leave(self, key: K, entry: _Entry) -> None:
        entry.users -= 1
        if entry.users == 0:
            del self._entries[key]


class Held[K: Hashable]:
    """Async context manager returned by KeyedLocks.hold()."""

    __slots__ = ("_locks", "_keys", "_acquired")

    def __init__(self, locks: KeyedLocks[K], keys: tuple[K, ...]) -> None:
        self._locks = locks
        self._keys = keys
        self._acquired: list[K] = []

    @property
    def keys(self) -> tuple[K, ...]:
        return self._keys

    async def __aenter__(self) -> Held[K]:
        try:
            for key in self._keys:
                await self._locks._acquire(key)
                self._acquired.append(key)
        except BaseException:
            self._release_all()
            raise
        return self

    async def __aexit__(self, *args: object) -> None:
        self._release_all()

    def _release_all(self) -> None:
        while self._acquired:
            self._locks._release(self._acquired.pop())


def _sort_key(key: Any) -> tuple[str, Any]:
    # Mixed key types still get a total order.
    return (type(key).__name__, key)


__all__ = ("KeyedLocks", "Held")
