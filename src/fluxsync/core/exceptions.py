"""Custom exceptions.

FluxSync uses a hierarchy of exceptions that mirrors how failures are
handled: transport and rate-limit errors are recoverable and surfaced,
format errors fail a single adapter call, auth errors are surfaced after one
re-login, and integrity errors withhold the offending record.

Example:
    >>> from fluxsync.core.exceptions import RateLimitedError, TransportError
    >>> isinstance(RateLimitedError("slow down", attempts=3), TransportError)
    True
    >>> try:
    ...     raise FormatError("bad xml")
    ... except FluxSyncError as e:
    ...     print(f"Caught: {type(e).__name__}")
    Caught: FormatError
"""

from __future__ import annotations


class FluxSyncError(Exception):
    """Base exception for FluxSync."""


class TransportError(FluxSyncError):
    """Network or HTTP failure.

    Example:
        >>> err = TransportError("HTTP 502", status_code=502, url="https://x")
        >>> err.status_code
        502
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class RateLimitedError(TransportError):
    """Upstream kept answering 429 after all retry attempts."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 0,
        retry_after: float | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message, status_code=429, url=url)
        self.attempts = attempts
        self.retry_after = retry_after


class FormatError(FluxSyncError):
    """Upstream payload is empty or malformed."""


class AuthError(FluxSyncError):
    """Provider rejected the credentials, even after re-authenticating."""


class IntegrityError(FluxSyncError):
    """A push would reference a record unknown to the remote side."""


class ConfigurationError(FluxSyncError):
    """Configuration is invalid or incomplete."""


class NotFoundError(FluxSyncError):
    """Requested feed or item not found in the catalog."""


class FeedError(FluxSyncError):
    """Error during a source adapter fetch.

    Example:
        >>> err = FeedError("Connection failed", source="feed-1")
        >>> err.source
        'feed-1'
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.cause = cause


class StorageError(FluxSyncError):
    """Writing to durable local storage failed."""
