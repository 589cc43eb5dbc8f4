"""
Screenshot Cache Module
Maps cache keys to PNG files on disk through a persisted JSON index.
"""

from pathlib import Path
from typing import Dict, Optional, Union
import json
import logging
import threading
import uuid

from utils.file_utils import (
    atomic_write_bytes,
    ensure_directory,
    normalize_path,
    read_file_bytes,
    read_json,
    write_json,
)

logger = logging.getLogger(__name__)

class CacheIndexError(Exception):
    """The persisted cache index can't be loaded."""

class ScreenshotCache:
    """
    Flat on-disk screenshot cache.

    The index maps a cache key to the absolute path of a PNG file the cache
    owns. It is loaded once on construction and rewritten in full after every
    change. Entries whose file has disappeared are dropped on lookup.
    """

    def __init__(self, cache_dir: Union[str, Path], index_path: Optional[Union[str, Path]] = None):
        self.cache_dir = normalize_path(cache_dir)
        self.index_path = normalize_path(index_path) if index_path else self.cache_dir / 'cache.json'
        self._lock = threading.Lock()
        ensure_directory(self.cache_dir)
        self.index: Dict[str, str] = self._load_index()

    def _load_index(self) -> Dict[str, str]:
        if not self.index_path.exists():
            logger.info(f"No cache index at {self.index_path}, starting empty")
            return {}
        try:
            data = read_json(self.index_path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheIndexError(f"Cache index {self.index_path} is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise CacheIndexError(f"Cache index {self.index_path} must map keys to file paths")

        logger.info(f"Loaded {len(data)} cache entries from {self.index_path}")
        return data

    def _persist(self) -> None:
        write_json(self.index_path, self.index)

    def __contains__(self, key: str) -> bool:
        return key in self.index

    def __len__(self) -> int:
        return len(self.index)

    def lookup(self, key: str) -> Optional[Path]:
        """
        Return the cached file for a key, or None on a miss.

        An entry pointing at a missing file is removed from the index before
        the miss is reported.
        """
        with self._lock:
            path = self.index.get(key)
            if path is None:
                return None
            if Path(path).is_file():
                return Path(path)

            logger.warning(f"Cached file {path} for key {key!r} is missing, dropping entry")
            del self.index[key]
            self._persist()
            return None

    def read(self, key: str) -> Optional[bytes]:
        """Return the cached bytes for a key, or None on a miss."""
        path = self.lookup(key)
        if path is None:
            return None
        try:
            return read_file_bytes(path)
        except FileNotFoundError:
            # Removed between lookup and read
            self.invalidate(key)
            return None

    def invalidate(self, key: str) -> None:
        """Delete the cached file for a key and remove its index entry."""
        with self._lock:
            path = self.index.pop(key, None)
            if path is None:
                return
            Path(path).unlink(missing_ok=True)
            self._persist()
            logger.debug(f"Invalidated cache entry {key!r}")

    def store(self, key: str, data: bytes) -> Path:
        """
        Write image bytes to a new cache file and index it under key.

        Args:
            key: Cache key from derive_key
            data: PNG bytes

        Returns:
            Path of the new cache file
        """
        path = self.cache_dir / f'{uuid.uuid4()}.png'
        atomic_write_bytes(path, data)

        with self._lock:
            previous = self.index.get(key)
            self.index[key] = str(path)
            self._persist()

        if previous and previous != str(path):
            Path(previous).unlink(missing_ok=True)

        logger.info(f"Cached screenshot for {key!r} at {path}")
        return path
