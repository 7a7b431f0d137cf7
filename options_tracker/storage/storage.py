"""Key/value document storage for trade sets and tracker settings.

Each document is a JSON-compatible value stored under a string key. The
file implementation keeps one ``<key>.json`` file per document.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

_TMP_PREFIX = ".tmp-"


class IStorageService(ABC):
    """Interface for document storage keyed by string."""

    @abstractmethod
    def save(self, key: str, data: Any) -> None:
        """Store a document, replacing any previous one under the same key.

        Args:
            key: Document key (e.g. ``trades_<user_id>``)
            data: JSON-compatible document
        """
        ...

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Fetch a document.

        Returns:
            The document, or None when nothing usable is stored under key
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        """Keys of all stored documents, sorted."""
        ...


class JsonFileStorage(IStorageService):
    """One JSON file per key under a base directory.

    Saves are atomic: the document is written to a temporary file next to
    the target and renamed over it, so readers see either the old trade set
    or the new one.
    """

    def __init__(self, base_path: str | Path) -> None:
        """Create the storage, making base_path if needed.

        Args:
            base_path: Directory holding the JSON files (``~`` is expanded)
        """
        self._base_path = Path(base_path).expanduser()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _path_for(self, key: str) -> Path:
        # Keys must not escape the base directory
        return self._base_path / (key.replace("/", "_").replace("\\", "_") + ".json")

    def save(self, key: str, data: Any) -> None:
        """Write a document atomically.

        Raises:
            TypeError: If data is not JSON-serializable
            OSError: If the file cannot be written
        """
        fd, tmp_name = tempfile.mkstemp(dir=self._base_path, prefix=_TMP_PREFIX, suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self._path_for(key))
        except (TypeError, ValueError, OSError) as e:
            logger.error(f"Failed to save document '{key}': {e}")
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def load(self, key: str) -> Optional[Any]:
        """Read a document; missing and unreadable files both give None."""
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (ValueError, OSError) as e:
            logger.error(f"Could not read document '{key}' from {path}: {e}")
            return None

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to delete document '{key}': {e}")

    def keys(self) -> List[str]:
        return sorted(
            p.stem for p in self._base_path.glob("*.json") if not p.name.startswith(_TMP_PREFIX)
        )
