"""FluxSync record shapes."""

from fluxsync.models.base import SOURCE_DEFAULTS, FluxModel, SourceKind, is_newer, utc_now
from fluxsync.models.feed import Feed, generate_id
from fluxsync.models.item import Item, normalize_title
from fluxsync.models.provider import (
    FeedbinConfig,
    GoogleReaderConfig,
    MinifluxConfig,
    ProviderConfig,
    ProviderEntry,
    ProviderFeed,
    parse_provider_config,
)

__all__ = [
    "FluxModel",
    "SourceKind",
    "SOURCE_DEFAULTS",
    "is_newer",
    "utc_now",
    "Feed",
    "generate_id",
    "Item",
    "normalize_title",
    "ProviderConfig",
    "MinifluxConfig",
    "FeedbinConfig",
    "GoogleReaderConfig",
    "ProviderEntry",
    "ProviderFeed",
    "parse_provider_config",
]
