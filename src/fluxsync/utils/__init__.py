"""Utility helpers."""

from fluxsync.utils.retry import RetryConfig, with_retry
from fluxsync.utils.text import (
    estimate_read_time,
    is_truncated,
    make_excerpt,
    parse_duration,
    strip_html,
)

__all__ = [
    "RetryConfig",
    "with_retry",
    "estimate_read_time",
    "is_truncated",
    "make_excerpt",
    "parse_duration",
    "strip_html",
]
