"""In-memory cache layer for registry lookups and built dependency trees.

This module provides a process-scoped cache to avoid repeated registry calls
when the same package shows up many times in one scan, or across repeated
scans in the same process.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from package_health.models import DependencyTreeNode, PackageMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached payload with its capture time and TTL.

    Attributes:
        data: The cached payload.
        timestamp: Clock reading (seconds) when the entry was stored.
        ttl: Lifetime in seconds.
    """

    data: T
    timestamp: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        """Return True while ``now - timestamp <= ttl``."""
        return now - self.timestamp <= self.ttl


class PackageCache:
    """TTL cache for package metadata and dependency trees.

    Entries expire after their TTL and are removed lazily on lookup or by
    ``cleanup_expired()``. There is no size-based eviction. Each operation is
    a single dict operation, so the cache can be shared by concurrent tasks
    on one event loop.

    Attributes:
        enabled: When False every get returns None and every set is a no-op.
        default_ttl: TTL in seconds applied when ``set_*`` gets no ttl.
        hits: Number of lookups that found a valid entry.
        misses: Number of lookups that found nothing or an expired entry.
    """

    DEFAULT_TTL_SECONDS = 3600.0

    def __init__(
        self,
        enabled: bool = True,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            enabled: Whether caching is active.
            ttl: Default TTL in seconds.
            clock: Time source in seconds, injectable for tests.
        """
        self.enabled = enabled
        self.default_ttl = ttl
        self._clock = clock
        self._metadata: dict[str, CacheEntry[PackageMetadata]] = {}
        self._trees: dict[str, CacheEntry[DependencyTreeNode]] = {}
        self.hits = 0
        self.misses = 0

    def _lookup(self, store: dict[str, CacheEntry[T]], key: str) -> Optional[T]:
        if not self.enabled:
            return None

        entry = store.get(key)
        if entry is None:
            self.misses += 1
            return None

        if not entry.is_valid(self._clock()):
            del store[key]
            self.misses += 1
            return None

        self.hits += 1
        return entry.data

    def _store(
        self,
        store: dict[str, CacheEntry[T]],
        key: str,
        data: T,
        ttl: Optional[float],
    ) -> None:
        if not self.enabled:
            return
        store[key] = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=ttl if ttl else self.default_ttl,
        )

    def get_metadata(self, name: str) -> Optional[PackageMetadata]:
        """Retrieve cached registry metadata for a package.

        Args:
            name: Package name.

        Returns:
            The cached metadata, or None on a miss, an expired entry, or
            when the cache is disabled.
        """
        return self._lookup(self._metadata, name)

    def set_metadata(
        self, name: str, metadata: PackageMetadata, ttl: Optional[float] = None
    ) -> None:
        """Store registry metadata for a package.

        Args:
            name: Package name.
            metadata: Metadata to store.
            ttl: Optional TTL in seconds overriding the default.
        """
        self._store(self._metadata, name, metadata, ttl)

    def get_tree(self, key: str) -> Optional[DependencyTreeNode]:
        """Retrieve a previously built (sub)tree by an opaque key."""
        return self._lookup(self._trees, key)

    def set_tree(
        self, key: str, tree: DependencyTreeNode, ttl: Optional[float] = None
    ) -> None:
        """Store a built (sub)tree under an opaque key."""
        self._store(self._trees, key, tree, ttl)

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        self._metadata.clear()
        self._trees.clear()
        self.hits = 0
        self.misses = 0

    def cleanup_expired(self) -> int:
        """Physically remove expired entries.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        removed = 0
        for store in (self._metadata, self._trees):
            expired = [key for key, entry in store.items() if not entry.is_valid(now)]
            for key in expired:
                del store[key]
            removed += len(expired)
        if removed:
            logger.debug("Removed %d expired cache entries", removed)
        return removed

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with:
                - hits / misses: lookup counters
                - hit_rate: hits / (hits + misses), 0.0 before any lookup
                - metadata_size / tree_size / total_size: stored entry counts
        """
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
            "metadata_size": len(self._metadata),
            "tree_size": len(self._trees),
            "total_size": len(self._metadata) + len(self._trees),
        }
