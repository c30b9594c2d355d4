"""Remote relational backends."""

from fluxsync.backend.memory import MemoryBackend
from fluxsync.backend.rest import RestBackend

__all__ = [
    "MemoryBackend",
    "RestBackend",
]
