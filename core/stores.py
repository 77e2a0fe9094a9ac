"""
In-Memory Keyed Stores

Process-lifetime stores for comparable runs and reports. Values are
immutable; updates replace the whole value under a lock, never mutate
it in place.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, Optional, TypeVar


T = TypeVar("T")


class KeyedStore(Generic[T]):
    """
    Thread-safe map of id -> immutable value.

    Injected into the service so tests get a fresh store without touching
    a process-wide singleton.
    """

    def __init__(self, name: str = "store"):
        self._name = name
        self._items: dict[str, T] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def put(self, key: str, value: T) -> T:
        """Insert or replace the value stored under key."""
        with self._lock:
            items = dict(self._items)
            items[key] = value
            self._items = items
        return value

    def update(self, key: str, fn: Callable[[T], T]) -> Optional[T]:
        """
        Atomically replace the value under key with fn(current).

        Returns:
            The new value, or None if key is absent
        """
        with self._lock:
            current = self._items.get(key)
            if current is None:
                return None
            updated = fn(current)
            items = dict(self._items)
            items[key] = updated
            self._items = items
        return updated

    def list(self) -> list[T]:
        """All values in insertion order."""
        return list(self._items.values())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
