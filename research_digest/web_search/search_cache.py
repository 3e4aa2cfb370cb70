"""
In-memory cache of researched queries.
Avoids repeating search, scrape and rank work for the same query string.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..models.trace import Bundle, PageDigest


@dataclass
class SearchCache:
    """
    Maps literal query strings to the Bundle computed for them.

    Keys are case-sensitive and not normalized; entries live until the
    process exits. The cache never owns what it hands out: stores and
    lookups both copy, so no Result is shared between traces.

    Not safe for overlapping research sessions writing the same key.
    """

    _cache: Dict[str, Bundle] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0

    def get(self, query: str) -> Optional[Bundle]:
        """Cached bundle for ``query`` or None."""
        bundle = self._cache.get(query)
        if bundle is None:
            self.misses += 1
            return None
        self.hits += 1
        return copy.deepcopy(bundle)

    def get_page(self, query: str, page: int) -> Optional[PageDigest]:
        """Cached digest for one page of ``query`` or None."""
        bundle = self._cache.get(query)
        digest = bundle.page(page) if bundle is not None else None
        if digest is None:
            self.misses += 1
            return None
        self.hits += 1
        return copy.deepcopy(digest)

    def set(self, query: str, bundle: Bundle) -> None:
        """Cache ``bundle`` under ``query``, merging pages already cached."""
        snapshot = copy.deepcopy(bundle)
        existing = self._cache.get(query)
        if existing is not None:
            for digest in snapshot.pages:
                existing.attach_page(digest)
            return
        self._cache[query] = snapshot

    def __contains__(self, query: str) -> bool:
        return query in self._cache

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        """Number of cached queries."""
        return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_entries": len(self._cache),
            "hits": self.hits,
            "misses": self.misses,
        }
