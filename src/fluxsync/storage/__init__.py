"""Durable key-value storage backends."""

from fluxsync.core.exceptions import StorageError
from fluxsync.storage.file import FileKeyValueStore
from fluxsync.storage.memory import MemoryKeyValueStore

__all__ = [
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "StorageError",
]
