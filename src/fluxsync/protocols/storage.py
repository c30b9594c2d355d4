"""Durable key-value storage protocol.

The local catalog persists each collection under a well-known key.

Example:
    >>> from fluxsync.protocols.storage import KeyValueStore, StorageKey
    >>> hasattr(KeyValueStore, "get")
    True
    >>> StorageKey.SYNCED_ITEM_IDS.value
    'synced_item_ids'
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable


class StorageKey(str, Enum):
    """Keys of the durable namespace."""

    FEEDS = "feeds"
    ITEMS = "items"
    FOLDERS = "folders"
    LAST_SYNC = "last_sync"
    SYNCED_FEED_IDS = "synced_feed_ids"
    SYNCED_ITEM_IDS = "synced_item_ids"
    PROVIDER_CONFIG = "provider_config"
    REMOTE_MAPPING = "remote_mapping"


@runtime_checkable
class KeyValueStore(Protocol):
    """Key-value storage of JSON-compatible values.

    Local disk access is synchronous; only network calls suspend.

    See Also:
        fluxsync.storage.memory.MemoryKeyValueStore: In-memory implementation
        fluxsync.storage.file.FileKeyValueStore: JSON file implementation
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` if absent or unreadable."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it existed."""
        ...
