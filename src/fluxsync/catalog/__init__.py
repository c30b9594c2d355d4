"""Local catalog of feeds, items and folders."""

from fluxsync.catalog.dedup import IdentityIndex, deduplicate_items, filter_new_items
from fluxsync.catalog.store import (
    CATEGORY_DEFINITIONS,
    Category,
    CatalogStore,
    FeedImport,
    ImportResult,
    category_for,
)

__all__ = [
    "CATEGORY_DEFINITIONS",
    "CatalogStore",
    "Category",
    "FeedImport",
    "IdentityIndex",
    "ImportResult",
    "category_for",
    "deduplicate_items",
    "filter_new_items",
]
