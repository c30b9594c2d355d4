"""Provider factory.

Example:
    >>> from fluxsync.models.provider import FeedbinConfig
    >>> from fluxsync.providers.factory import create_provider
    >>> type(create_provider(FeedbinConfig(username="u", password="p"))).__name__
    'FeedbinProvider'
"""

from __future__ import annotations

import httpx

from fluxsync.core.exceptions import ConfigurationError
from fluxsync.models.provider import FeedbinConfig, GoogleReaderConfig, MinifluxConfig
from fluxsync.providers.base import BaseProvider
from fluxsync.providers.feedbin import FeedbinProvider
from fluxsync.providers.google_reader import GoogleReaderProvider
from fluxsync.providers.miniflux import MinifluxProvider


def create_provider(
    config: MinifluxConfig | FeedbinConfig | GoogleReaderConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BaseProvider:
    """Build the provider client matching ``config``.

    Raises:
        ConfigurationError: If ``config`` is not a known provider config.
    """
    if isinstance(config, MinifluxConfig):
        return MinifluxProvider(config, transport=transport)
    if isinstance(config, FeedbinConfig):
        return FeedbinProvider(config, transport=transport)
    if isinstance(config, GoogleReaderConfig):
        return GoogleReaderProvider(config, transport=transport)
    raise ConfigurationError(f"Unknown provider type: {type(config).__name__}")
