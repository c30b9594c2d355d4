"""In-memory key-value store for testing.

Example:
    >>> from fluxsync.storage.memory import MemoryKeyValueStore
    >>> kv = MemoryKeyValueStore()
    >>> kv.set("feeds", [{"id": "feed-1"}])
    >>> kv.get("feeds")[0]["id"]
    'feed-1'
    >>> kv.get("missing", [])
    []
"""

from __future__ import annotations

import copy
from typing import Any


class MemoryKeyValueStore:
    """Dictionary-backed store. Data is lost when the process exits.

    Values are deep-copied on the way in and out so callers can never mutate
    stored state by reference, matching the behaviour of a serializing store.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.writes: int = 0

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.writes += 1

    def delete(self, key: str) -> bool:
        if key in self._data:
            del self._data[key]
            return True
        return False

    def keys(self) -> list[str]:
        return list(self._data)
