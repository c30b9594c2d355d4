"""Logging setup.

Library modules only create loggers (``logging.getLogger(__name__)``);
applications call :func:`configure_logging` once at startup.

Example:
    >>> from fluxsync.core.logging import configure_logging
    >>> configure_logging("WARNING")
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure the ``fluxsync`` logger hierarchy.

    Args:
        level: Logging level name.
        fmt: ``console`` for plain stream output, ``rich`` for RichHandler.
    """
    root = logging.getLogger("fluxsync")
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if fmt == "rich":
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    root.addHandler(handler)
    root.propagate = False
