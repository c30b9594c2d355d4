"""Protocols for pluggable backends."""

from fluxsync.protocols.backend import RemoteBackend
from fluxsync.protocols.provider import Provider
from fluxsync.protocols.storage import KeyValueStore, StorageKey

__all__ = [
    "KeyValueStore",
    "Provider",
    "RemoteBackend",
    "StorageKey",
]
