"""
TTL cache for read-heavy investment listings.

``GET /investments`` is polled by dashboards far more often than investments
change, so list results are cached per query under keys starting with
``investments:``.  Every service method that writes an investment or its
ledger calls ``cache.invalidate("investments")`` before returning.

Valuations are never cached: they depend on the clock, and the time machine
can move the clock between two identical requests.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Optional, Tuple

from investment_engine.core.config import settings

logger = logging.getLogger(__name__)

_MISSING = object()


def make_key(namespace: str, *parts: Any) -> str:
    """``make_key("investments", "owner", uid)`` → ``"investments:owner:<uid>"``."""
    return ":".join([namespace, *(str(p) for p in parts)])


class TTLCache:
    """
    In-process cache with per-entry expiry and FIFO eviction.

    When ``enabled`` is False every lookup misses and writes are dropped,
    which is how the test-suite runs.
    """

    def __init__(self, ttl: float = 30.0, max_size: int = 1000, enabled: bool = True):
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._ttl = ttl
        self._max_size = max_size
        self._enabled = enabled
        self._hits = 0
        self._misses = 0

    def _lookup(self, key: str) -> Any:
        item = self._entries.get(key)
        if item is None:
            return _MISSING
        stored_at, value = item
        if time.monotonic() - stored_at > self._ttl:
            del self._entries[key]
            logger.debug("Cache expired: %s", key)
            return _MISSING
        return value

    def get(self, key: str) -> Optional[Any]:
        """Cached value for ``key``, or ``None`` on a miss."""
        if not self._enabled:
            return None
        value = self._lookup(key)
        if value is _MISSING:
            self._misses += 1
            return None
        self._hits += 1
        logger.debug("Cache hit: %s", key)
        return value

    def set(self, key: str, value: Any) -> None:
        if not self._enabled:
            return
        if key not in self._entries and len(self._entries) >= self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache full, evicted %s", evicted)
        self._entries[key] = (time.monotonic(), value)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value, or await ``loader()`` and cache its result."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        self.set(key, value)
        return value

    def invalidate(self, *prefixes: str) -> int:
        """Drop every entry whose key starts with one of ``prefixes``."""
        if not self._enabled:
            return 0
        stale = [k for k in self._entries if k.startswith(prefixes)]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Cache invalidated %d entries for %s", len(stale), prefixes)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict:
        """Counters for the health-check endpoint."""
        lookups = self._hits + self._misses
        return {
            "enabled": self._enabled,
            "size": len(self._entries),
            "max_size": self._max_size,
            "ttl_seconds": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{(self._hits / lookups * 100):.1f}%" if lookups else "N/A",
        }


cache = TTLCache(
    ttl=settings.CACHE_TTL,
    max_size=settings.CACHE_MAX_SIZE,
    enabled=settings.CACHE_ENABLED,
)
