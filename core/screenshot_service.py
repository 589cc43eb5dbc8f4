"""
Screenshot Service Module
Serves screenshots from the cache and captures them on a miss.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging
import threading

from core.cache_key import QueryMapping, derive_key
from core.fragment_builder import FragmentBuilder
from core.screenshot_cache import ScreenshotCache

logger = logging.getLogger(__name__)

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class ScreenshotService:
    """
    Cache-first screenshot flow.

    Identical requests share a per-key lock, so concurrent misses for the
    same key capture once and the rest are served from the cache.
    """

    def __init__(self,
                 cache: ScreenshotCache,
                 generator,
                 builder: Optional[FragmentBuilder] = None,
                 asset_base: str = '',
                 capture_timeout: Optional[float] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.cache = cache
        self.generator = generator
        self.builder = builder or FragmentBuilder()
        self.asset_base = asset_base
        self.capture_timeout = capture_timeout
        self.clock = clock
        # key -> [lock, number of threads holding or waiting on it]
        self._key_locks: Dict[str, List] = {}
        self._key_locks_guard = threading.Lock()

    @contextmanager
    def _key_lock(self, key: str):
        """Hold the lock for a key; the lock is dropped once nobody needs it."""
        with self._key_locks_guard:
            entry = self._key_locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._key_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    def get_screenshot(self, query: QueryMapping) -> bytes:
        """Return PNG bytes for a query, capturing only on a cache miss."""
        key = derive_key(query)

        image = self.cache.read(key)
        if image is not None:
            logger.debug(f"Cache hit for {key!r}")
            return image

        with self._key_lock(key):
            # Another request may have filled the entry while we waited
            image = self.cache.read(key)
            if image is not None:
                logger.debug(f"Cache filled concurrently for {key!r}")
                return image

            logger.info(f"Cache miss for {key!r}, capturing")
            image = self.capture_screenshot(query)
            self.cache.store(key, image)
            return image

    def capture_screenshot(self, query: QueryMapping) -> bytes:
        """Render the embed document in-process and screenshot its table."""
        html = self.builder.build_page(query, self.clock(), asset_base=self.asset_base)
        return self.generator.capture(html, timeout=self.capture_timeout)
