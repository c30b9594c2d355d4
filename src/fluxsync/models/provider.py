"""Provider-side shapes and configuration.

Provider configuration is a tagged variant: each provider kind carries only
the credential fields it needs, so a config with the wrong field set for its
kind cannot be constructed.

Example:
    >>> from fluxsync.models.provider import parse_provider_config
    >>> cfg = parse_provider_config({"kind": "miniflux", "base_url": "https://rss.example", "api_key": "k"})
    >>> type(cfg).__name__
    'MinifluxConfig'
    >>> cfg = parse_provider_config({"kind": "bazqux", "username": "u", "password": "p"})
    >>> cfg.base_url
    'https://www.bazqux.com/reader'
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter, field_validator, model_validator

from fluxsync.models.base import FluxModel

BAZQUX_BASE_URL = "https://www.bazqux.com/reader"
FEEDBIN_BASE_URL = "https://api.feedbin.com"


class ProviderFeed(FluxModel):
    """A subscription as reported by a provider."""

    remote_id: str
    title: str = ""
    feed_url: str
    site_url: str | None = None
    category: str | None = None


class ProviderEntry(FluxModel):
    """An entry as reported by a provider."""

    remote_id: str
    feed_remote_id: str = ""
    title: str = ""
    url: str = ""
    author: str | None = None
    content: str | None = None
    published_at: datetime


class _BaseProviderConfig(FluxModel):
    sync_enabled: bool = True

    @field_validator("base_url", mode="after", check_fields=False)
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class MinifluxConfig(_BaseProviderConfig):
    """Token-header REST provider."""

    kind: Literal["miniflux"] = "miniflux"
    base_url: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1)


class FeedbinConfig(_BaseProviderConfig):
    """Basic-auth REST provider."""

    kind: Literal["feedbin"] = "feedbin"
    username: str = Field(..., min_length=1)
    password: str
    base_url: str = FEEDBIN_BASE_URL


class GoogleReaderConfig(_BaseProviderConfig):
    """Session-token provider shared by FreshRSS and BazQux."""

    kind: Literal["freshrss", "bazqux"]
    username: str = Field(..., min_length=1)
    password: str
    base_url: str = ""
    auth_token: str | None = None

    @model_validator(mode="after")
    def resolve_base_url(self) -> GoogleReaderConfig:
        if self.kind == "bazqux":
            if not self.base_url:
                object.__setattr__(self, "base_url", BAZQUX_BASE_URL)
        elif not self.base_url:
            raise ValueError("freshrss requires base_url")
        return self


ProviderConfig = Annotated[
    MinifluxConfig | FeedbinConfig | GoogleReaderConfig,
    Field(discriminator="kind"),
]

_config_adapter: TypeAdapter[Any] = TypeAdapter(ProviderConfig)


def parse_provider_config(data: dict[str, Any]) -> MinifluxConfig | FeedbinConfig | GoogleReaderConfig:
    """Validate a raw mapping into the matching provider config variant."""
    return _config_adapter.validate_python(data)
