"""
FluxSync - Multi-Source Feed Aggregator with Remote Sync.

FluxSync ingests articles, forum threads, video channels, social timelines
and podcasts into one local catalog, keeps that catalog converging with a
remote relational backend, and mirrors read/starred state with hosted feed
readers.

Key Features:
- Adapters per source kind, normalized into one item shape
- Triple-key deduplication (id, url, feed + title)
- Last-write-wins reconciliation with deletion detection
- Debounced write-back of read/starred/bookmarked toggles
- Miniflux, Feedbin and Google Reader (FreshRSS, BazQux) providers

Quick Start:
    >>> from fluxsync import CatalogStore, FluxSync, HttpClient, MemoryKeyValueStore
    >>> catalog = CatalogStore(MemoryKeyValueStore())
    >>> async with FluxSync(catalog, http=HttpClient()) as flux:
    ...     feed = await flux.add_feed("https://example.com/rss")
    ...     result = await flux.sync_all()
"""

# Models
from fluxsync.models.base import SourceKind
from fluxsync.models.feed import Feed
from fluxsync.models.item import Item
from fluxsync.models.provider import (
    FeedbinConfig,
    GoogleReaderConfig,
    MinifluxConfig,
    parse_provider_config,
)

# Errors and signals
from fluxsync.core.events import CatalogEvent, CatalogEventKind, EventHub, SyncErrorEvent
from fluxsync.core.exceptions import (
    AuthError,
    ConfigurationError,
    FeedError,
    FluxSyncError,
    FormatError,
    IntegrityError,
    NotFoundError,
    RateLimitedError,
    StorageError,
    TransportError,
)
from fluxsync.core.config import Settings, get_settings

# HTTP and storage
from fluxsync.http import HttpClient, RateLimiter
from fluxsync.storage import FileKeyValueStore, MemoryKeyValueStore

# Catalog
from fluxsync.catalog import CatalogStore, deduplicate_items, filter_new_items

# Adapters
from fluxsync.adapter import (
    BaseSourceAdapter,
    detect_source_from_url,
    discover_feed_info,
    get_adapter,
)

# Providers
from fluxsync.providers import (
    BaseProvider,
    FeedbinProvider,
    GoogleReaderProvider,
    MinifluxProvider,
    create_provider,
)

# Remote sync
from fluxsync.backend import MemoryBackend, RestBackend
from fluxsync.sync import ProviderSyncService, ReconciliationEngine, SyncResult, WriteBackQueue

# Core orchestration
from fluxsync.core.fluxsync import CollectionResult, FeedStats, FluxSync

# Retry utilities
from fluxsync.utils.retry import RetryConfig, with_retry

__version__ = "0.1.0"

__all__ = [
    # Models
    "SourceKind",
    "Feed",
    "Item",
    "MinifluxConfig",
    "FeedbinConfig",
    "GoogleReaderConfig",
    "parse_provider_config",
    # Errors and signals
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
    "CatalogEvent",
    "CatalogEventKind",
    "EventHub",
    "SyncErrorEvent",
    "Settings",
    "get_settings",
    # HTTP and storage
    "HttpClient",
    "RateLimiter",
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    # Catalog
    "CatalogStore",
    "deduplicate_items",
    "filter_new_items",
    # Adapters
    "BaseSourceAdapter",
    "get_adapter",
    "detect_source_from_url",
    "discover_feed_info",
    # Providers
    "BaseProvider",
    "MinifluxProvider",
    "FeedbinProvider",
    "GoogleReaderProvider",
    "create_provider",
    # Remote sync
    "MemoryBackend",
    "RestBackend",
    "ReconciliationEngine",
    "SyncResult",
    "WriteBackQueue",
    "ProviderSyncService",
    # Orchestration
    "FluxSync",
    "CollectionResult",
    "FeedStats",
    # Utilities
    "RetryConfig",
    "with_retry",
]
