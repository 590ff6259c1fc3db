"""In-process cache layer for URL shortener."""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, NamedTuple, Optional, Tuple, Union

from .models import ShortLink


class CacheEntry(NamedTuple):
    """Cached destination of a short code."""

    original_url: str
    expires_at: datetime


@dataclass(frozen=True)
class CacheCounts:
    """Entry counts at a point in time."""

    total: int
    active: int
    expired: int


class LinkCache:
    """Process-local mapping of short code to destination and expiry.

    Entries are advisory: a miss means "ask the store", never "not found".
    All access goes through one lock, including reads, since the sweep
    mutates the mapping while request handlers look it up.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def lookup(self, short_code: str, now: datetime) -> Optional[CacheEntry]:
        """Get a live entry.

        An entry that has expired is removed and reported as a miss.

        Args:
            short_code: The short code to lookup
            now: Current time

        Returns:
            The entry, or None on miss or expiry
        """
        with self._lock:
            entry = self._entries.get(short_code)
            if entry is None:
                return None
            if now >= entry.expires_at:
                del self._entries[short_code]
                return None
            return entry

    def insert(self, short_code: str, original_url: str, expires_at: datetime) -> None:
        """Insert or overwrite an entry."""
        with self._lock:
            self._entries[short_code] = CacheEntry(original_url, expires_at)

    def remove(self, short_code: str) -> bool:
        """Remove an entry.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            return self._entries.pop(short_code, None) is not None

    def sweep(self, now: datetime) -> int:
        """Remove every entry whose expiry has passed.

        Returns:
            Number of removed entries
        """
        with self._lock:
            expired = [code for code, entry in self._entries.items() if now >= entry.expires_at]
            for code in expired:
                del self._entries[code]
            return len(expired)

    def bulk_load(self, entries: Iterable[Union[ShortLink, Tuple[str, str, datetime]]]) -> int:
        """Seed the cache from stored links.

        Args:
            entries: ShortLink objects or (short_code, original_url, expires_at) triples

        Returns:
            Number of entries loaded
        """
        loaded = {}
        for item in entries:
            if isinstance(item, ShortLink):
                loaded[item.short_code] = CacheEntry(item.original_url, item.expires_at)
            else:
                code, original_url, expires_at = item
                loaded[code] = CacheEntry(original_url, expires_at)

        with self._lock:
            self._entries.update(loaded)
        return len(loaded)

    def active_items(self, now: datetime) -> Dict[str, CacheEntry]:
        """Copy of the unexpired entries; expired ones are left for the sweep."""
        with self._lock:
            return {
                code: entry
                for code, entry in self._entries.items()
                if now < entry.expires_at
            }

    def counts(self, now: datetime) -> CacheCounts:
        with self._lock:
            total = len(self._entries)
            active = sum(1 for entry in self._entries.values() if now < entry.expires_at)
        return CacheCounts(total=total, active=active, expired=total - active)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, short_code: str) -> bool:
        with self._lock:
            return short_code in self._entries
