"""Clients for hosted feed reading services."""

from fluxsync.providers.base import BaseProvider
from fluxsync.providers.factory import create_provider
from fluxsync.providers.feedbin import FeedbinProvider
from fluxsync.providers.google_reader import GoogleReaderProvider
from fluxsync.providers.miniflux import MinifluxProvider

__all__ = [
    "BaseProvider",
    "FeedbinProvider",
    "GoogleReaderProvider",
    "MinifluxProvider",
    "create_provider",
]
