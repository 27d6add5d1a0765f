# ==============================================================================
# File Cache Implementation
# ==============================================================================
"""
Local-directory implementation of the Cache interface.

Each key is stored as one JSON file under the data directory. This is the
default backend: state stays on the device, like browser local storage,
and survives restarts without any server.

Writes go to a temporary file first and are moved into place, so a crash
mid-write leaves the previous document intact.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from wikipulse.base.cache import Cache, CacheError, CorruptValueError
from wikipulse.utils.config import get_settings

logger = logging.getLogger(__name__)


class FileCache(Cache):
    """One JSON file per key inside a data directory."""

    def __init__(self, data_dir: Path | str | None = None):
        """
        Initialize file cache.

        Args:
            data_dir: Directory holding the JSON files. If None, uses settings.
                     Created on first write.
        """
        if data_dir is None:
            data_dir = get_settings().storage.data_dir_path
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, key: str) -> Path:
        # "wikipulse:events" -> "wikipulse-events.json"
        safe = key.replace(":", "-").replace("/", "_")
        return self._data_dir / f"{safe}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"Failed to read {path}: {e}") from e
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptValueError(f"Invalid JSON in {path}") from e

    def set(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for {key} is not JSON-serializable: {e}") from e

        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise CacheError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheError(f"Failed to delete {path}: {e}") from e

    def ping(self) -> bool:
        """Check that the data directory exists (or can be created) and is writable."""
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug("Data directory %s unavailable: %s", self._data_dir, e)
            return False
        return os.access(self._data_dir, os.W_OK)
