"""File-based key-value store using JSON files.

Each key is one JSON file in a directory. Writes go to a temporary file that
is atomically renamed into place, so a crash mid-write leaves the previous
value intact.

Example:
    >>> import tempfile
    >>> from pathlib import Path
    >>> from fluxsync.storage.file import FileKeyValueStore
    >>> with tempfile.TemporaryDirectory() as tmpdir:
    ...     kv = FileKeyValueStore(Path(tmpdir))
    ...     kv.set("last_sync", "2026-01-01T00:00:00+00:00")
    ...     kv.get("last_sync")
    '2026-01-01T00:00:00+00:00'
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from fluxsync.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class FileKeyValueStore:
    """JSON file per key under ``directory``."""

    def __init__(self, directory: Path) -> None:
        """Initialize file store.

        Args:
            directory: Directory to store key files in.
        """
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        """Get path for a key file."""
        safe_key = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self._directory / f"{safe_key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Unreadable storage key {key!r}, using default: {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write storage key {key!r}: {e}")
            if tmp.exists():
                tmp.unlink()
            raise StorageError(f"Failed to write {key}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if path.exists():
            path.unlink()
            return True
        return False
