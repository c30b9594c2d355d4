"""Runtime settings.

Every field can be set through a ``FLUXSYNC_``-prefixed environment
variable or a local ``.env`` file; keyword overrides win over both.

Example:
    >>> from fluxsync.core.config import get_settings
    >>> get_settings(log_level="DEBUG").log_level
    'DEBUG'
    >>> settings = get_settings()
    >>> settings.writeback_delay
    2.0
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Where data lives, how to fetch, and which backend to reconcile with.

    Leaving ``backend_url`` or ``user_id`` unset keeps FluxSync local-only.

    Example:
        >>> from fluxsync.core.config import Settings
        >>> s = Settings(user_id="u-1")
        >>> s.user_id
        'u-1'
        >>> s.push_batch_size
        500
    """

    model_config = SettingsConfigDict(
        env_prefix="FLUXSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Local storage
    data_dir: Path = Field(default=Path("./data"), description="Directory for durable JSON keys")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: console or rich")

    # Fetching
    request_timeout: float = Field(default=30.0, ge=1.0)
    user_agent: str = Field(default="FluxSync/0.1")
    proxy_url: str | None = Field(default=None, description="Shared fetch proxy, if any")
    rsshub_instance: str = Field(default="https://rsshub.app")
    rate_limit_attempts: int = Field(default=3, ge=1)
    rate_limit_base_delay: float = Field(default=2.0, ge=0.0)

    # Remote backend
    backend_url: str | None = Field(default=None, description="Relational REST endpoint")
    backend_api_key: str | None = Field(default=None)
    user_id: str | None = Field(default=None, description="Authenticated principal")
    push_batch_size: int = Field(default=500, ge=1, le=5000)

    # Write-back
    writeback_delay: float = Field(default=2.0, ge=0.0, description="Debounce delay in seconds")


def get_settings(**overrides: Any) -> Settings:
    """Build :class:`Settings`, letting keyword arguments override the environment.

    Example:
        >>> from fluxsync.core.config import get_settings
        >>> s = get_settings(request_timeout=5.0)
        >>> s.request_timeout
        5.0
    """
    return Settings(**overrides)
