"""
In-memory TTL cache with tag-based invalidation.

Entries are shared by reference with every reader until they expire, so
cached values must be treated as immutable.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float
    tags: FrozenSet[str] = field(default_factory=frozenset)


def _normalize_tags(tags: Optional[Iterable[str]]) -> FrozenSet[str]:
    if tags is None:
        return frozenset()
    if isinstance(tags, str):
        tags = [tags]
    normalized = set()
    for tag in tags:
        if not isinstance(tag, str) or not tag.strip():
            raise ValueError(f"Invalid cache tag: {tag!r}")
        normalized.add(tag)
    return frozenset(normalized)


class TTLCache:
    """
    TTL cache bounded by ``max_size``.

    When full, inserting a new key evicts the oldest *inserted* key still
    present (FIFO), not the least recently used one.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        :param default_ttl: TTL in seconds used when ``set`` gets none.
        :param max_size: Maximum number of entries.
        :param clock: Monotonic clock returning seconds.
        """
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() <= entry.expires_at

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return default

        if self._clock() > entry.expires_at:
            del self._entries[key]
            self.misses += 1
            return default

        self.hits += 1
        return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Store ``value`` under ``key``.

        :param key: Cache key.
        :param value: Value to store.
        :param ttl: TTL in seconds, defaults to ``default_ttl``.
        :param tags: Tags used for bulk invalidation.
        :raises ValueError: If a tag is not a non-empty string.
        """
        tag_set = _normalize_tags(tags)
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"Invalid cache ttl: {ttl!r}")

        if key not in self._entries and len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug(f"Cache full, evicted {oldest}")

        self._entries[key] = CacheEntry(
            value=value,
            expires_at=self._clock() + ttl,
            tags=tag_set,
        )

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear_by_tags(self, tags: Iterable[str]) -> int:
        """
        Remove every entry whose tags intersect ``tags``.

        :return: Number of entries removed.
        """
        wanted = _normalize_tags(tags)
        doomed = [key for key, entry in self._entries.items() if entry.tags & wanted]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries for tags {sorted(wanted)}")
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def purge_expired(self) -> int:
        """Actively remove expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "keys": list(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": (self.hits / lookups) if lookups else None,
        }
