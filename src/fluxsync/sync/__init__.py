"""Reconciliation with the remote backend and hosted feed readers."""

from fluxsync.sync.engine import ReconciliationEngine, SyncResult
from fluxsync.sync.mapping import (
    FEEDS_TABLE,
    ITEMS_TABLE,
    feed_to_row,
    item_to_row,
    row_to_feed,
    row_to_item,
)
from fluxsync.sync.provider_sync import ProviderSyncService, StatusSyncResult
from fluxsync.sync.writeback import WriteBackQueue

__all__ = [
    "ReconciliationEngine",
    "SyncResult",
    "WriteBackQueue",
    "ProviderSyncService",
    "StatusSyncResult",
    "FEEDS_TABLE",
    "ITEMS_TABLE",
    "feed_to_row",
    "row_to_feed",
    "item_to_row",
    "row_to_item",
]
