"""
In-memory TTL cache for generated content.

Headline sets are keyed by the real headline and embeddings by word, so
replaying the same round does not spend provider quota twice. Entries are
kept in least-recently-used order; when the cache is full the stalest entry
goes first.
"""
import hashlib
import os
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Optional, Tuple

from loguru import logger

CacheKey = Tuple[str, str]


@dataclass
class CacheEntry:
    value: Any
    expires_at: float           # time.monotonic() deadline


class ResponseCache:
    """Thread-safe LRU cache with per-namespace TTLs.

    Queries are stripped, lowercased and MD5-hashed, so "  Moon Is Round "
    and "moon is round" share an entry.
    """

    NAMESPACE_TTLS = {
        "headlines": 1800,
        "embeddings": 3600,
    }

    def __init__(self, default_ttl_seconds: int = 300, max_entries: int = 5000):
        self.default_ttl = default_ttl_seconds
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(namespace: str, query: str) -> CacheKey:
        digest = hashlib.md5(query.strip().lower().encode("utf-8")).hexdigest()
        return namespace, digest

    def get(self, namespace: str, query: str) -> Optional[Any]:
        key = self._key(namespace, query)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at < time.monotonic():
                del self._entries[key]
                entry = None
            if entry is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, namespace: str, query: str, value: Any,
            ttl_seconds: Optional[int] = None):
        ttl = ttl_seconds or self.NAMESPACE_TTLS.get(namespace, self.default_ttl)
        key = self._key(namespace, query)
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=time.monotonic() + ttl)
            self._entries.move_to_end(key)
            if len(self._entries) > self.max_entries:
                self._purge_expired()
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def _purge_expired(self):
        now = time.monotonic()
        for key in [k for k, e in self._entries.items() if e.expires_at < now]:
            del self._entries[key]

    def invalidate(self, namespace: Optional[str] = None) -> int:
        """Drop every entry, or only one namespace. Returns how many went."""
        with self._lock:
            doomed = [k for k in self._entries if namespace is None or k[0] == namespace]
            for key in doomed:
                del self._entries[key]
        logger.debug(f"Cache invalidated ({namespace or 'all'}): {len(doomed)} entries")
        return len(doomed)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self.hits + self.misses
            by_namespace: Dict[str, int] = {}
            for namespace, _ in self._entries:
                by_namespace[namespace] = by_namespace.get(namespace, 0) + 1
            return {
                "entries": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(self.hits / lookups * 100, 1) if lookups else 0.0,
                "by_namespace": by_namespace,
            }


_response_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    global _response_cache
    if _response_cache is None:
        _response_cache = ResponseCache(
            default_ttl_seconds=int(os.getenv("CACHE_DEFAULT_TTL", "300"))
        )
    return _response_cache
