"""
In-memory result cache keyed by feed title.

Entries live for the lifetime of the cache object; there is no eviction or
TTL. One lock guards the whole mapping and is held only for the lookup or
the write, never while fetching or parsing.
"""

import threading
from typing import Iterable, Optional

from rss_aggregation.models import Article


class ResultCache:
    """Thread-safe mapping from feed title to its last parsed articles."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Article, ...]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[list[Article]]:
        """Return the cached articles for a feed, or None on a miss."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        return list(entry)

    def put(self, key: str, articles: Iterable[Article]) -> None:
        """Replace the entry for a feed wholesale."""
        entry = tuple(articles)
        with self._lock:
            self._entries[key] = entry

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<ResultCache(entries={len(self)})>"
