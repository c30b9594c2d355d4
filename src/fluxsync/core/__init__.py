"""Core orchestration, configuration and error types."""

from fluxsync.core.config import Settings, get_settings
from fluxsync.core.events import CatalogEvent, CatalogEventKind, EventHub, SyncErrorEvent
from fluxsync.core.exceptions import (
    AuthError,
    ConfigurationError,
    FeedError,
    FluxSyncError,
    FormatError,
    IntegrityError,
    NotFoundError,
    StorageError,
    RateLimitedError,
    TransportError,
)

__all__ = [
    "Settings",
    "get_settings",
    "CatalogEvent",
    "CatalogEventKind",
    "EventHub",
    "SyncErrorEvent",
    "FluxSyncError",
    "TransportError",
    "RateLimitedError",
    "FormatError",
    "AuthError",
    "IntegrityError",
    "ConfigurationError",
    "NotFoundError",
    "FeedError",
    "StorageError",
]
