"""FluxSync HTTP utilities.

Provides the shared HTTP boundary with rate limiting and retries.

Example:
    >>> from fluxsync.http import HttpClient
    >>>
    >>> async with HttpClient(rate_limit=10.0) as client:
    ...     response = await client.get("https://example.com/feed.xml")
"""

from fluxsync.http.client import HttpClient, http_client
from fluxsync.http.rate_limiter import RateLimiter

__all__ = [
    "HttpClient",
    "RateLimiter",
    "http_client",
]
