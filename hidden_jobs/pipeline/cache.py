"""Result cache: URL-keyed crawl results with TTL-based expiration.

Entries live in SQLite (``result_cache`` table). Expired entries are purged
lazily on read. Any I/O or decode failure is a miss on read and is dropped
on write, so the cache never fails a crawl.
"""

import base64
import logging
import sqlite3
import time
from collections.abc import Callable, Iterable

from pydantic import ValidationError

from hidden_jobs.core.config import CacheConfig
from hidden_jobs.core.db import delete_cache_entries, get_cache_entry, put_cache_entry
from hidden_jobs.core.schemas import CacheEntry, CrawlResult

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(url: str) -> str:
    """Stable key for a site URL. The URL is used exactly (case-sensitive)."""
    return "cached_" + base64.b64encode(url.encode("utf-8")).decode("ascii")


class ResultCache:
    """Read-through cache for crawl results.

    Usage::

        cache = ResultCache(conn, settings.cache)
        hit = cache.get("https://a.example")
        if hit is None:
            ...  # crawl
            cache.put("https://a.example", result)
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: CacheConfig,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._conn = conn
        self._config = config
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def get(self, url: str) -> CrawlResult | None:
        """Return the cached result for ``url`` if enabled and not expired."""
        if not self._config.enabled:
            return None
        key = cache_key(url)
        try:
            row = get_cache_entry(self._conn, key)
            if row is None:
                return None
            entry = CacheEntry(
                url=row["url"],
                timestamp=row["timestamp"],
                data=CrawlResult.model_validate_json(row["data"]),
            )
            if entry.is_valid(self._clock(), self._config.ttl_days):
                return entry.data
            delete_cache_entries(self._conn, [key])
            logger.debug("Removed expired cache entry: %s", url)
            return None
        except (sqlite3.Error, ValidationError, ValueError) as e:
            logger.warning("Cache read failed for %s: %s", url, e)
            return None

    def put(self, url: str, result: CrawlResult) -> None:
        """Store or overwrite the entry for ``url``. No-op when disabled."""
        if not self._config.enabled:
            return
        try:
            put_cache_entry(
                self._conn,
                cache_key(url),
                url,
                self._clock(),
                result.model_dump_json(),
            )
            logger.debug("Cached result for: %s", url)
        except sqlite3.Error as e:
            logger.warning("Cache write failed for %s: %s", url, e)

    def clear(self, urls: Iterable[str]) -> int:
        """Remove entries for the given URLs (exact match). Returns rows removed."""
        removed = delete_cache_entries(self._conn, (cache_key(u) for u in urls))
        logger.info("Cleared %d cache entries", removed)
        return removed
