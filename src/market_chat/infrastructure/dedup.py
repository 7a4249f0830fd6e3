"""Bounded FIFO memories of recently seen keys.

The gateway keeps the confirmation sent for each ``(user, clientMsgId)`` so a
retried ``sendMessage`` is answered again instead of stored twice. The client
adapter drops message ids delivered twice (confirm + receive, replays after a
reconnect).
"""
from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable
from typing import Generic, TypeVar

V = TypeVar("V")


def _check_capacity(capacity: int) -> int:
    if capacity < 1:
        raise ValueError(f"capacity must be positive, got {capacity!r}")
    return capacity


class RecentKeys:
    """Remembers the last ``capacity`` keys; the oldest is evicted first."""

    def __init__(self, capacity: int = 200) -> None:
        self._capacity = _check_capacity(capacity)
        self._keys: OrderedDict[Hashable, None] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, key: Hashable) -> None:
        if key in self._keys:
            return
        self._keys[key] = None
        while len(self._keys) > self._capacity:
            self._keys.popitem(last=False)

    def check_and_add(self, key: Hashable) -> bool:
        """Return True if ``key`` was already present, otherwise remember it."""
        if key in self._keys:
            return True
        self.add(key)
        return False

    def discard(self, key: Hashable) -> None:
        self._keys.pop(key, None)

    def clear(self) -> None:
        self._keys.clear()


class RecentResults(Generic[V]):
    """Like :class:`RecentKeys`, but remembers a value per key."""

    def __init__(self, capacity: int = 1000) -> None:
        self._capacity = _check_capacity(capacity)
        self._items: OrderedDict[Hashable, V] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: Hashable) -> V | None:
        return self._items.get(key)

    def put(self, key: Hashable, value: V) -> None:
        self._items[key] = value
        self._items.move_to_end(key)
        while len(self._items) > self._capacity:
            self._items.popitem(last=False)

    def discard(self, key: Hashable) -> None:
        self._items.pop(key, None)
