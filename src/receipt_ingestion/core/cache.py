# ============================================================================
# src/receipt_ingestion/core/cache.py
# ============================================================================
"""
Pipeline Result Cache

In-memory LRU cache of pipeline results keyed by a SHA-256 digest of the
document bytes. Thread-safe; optional TTL. Disabled by default so that,
unless an operator opts in, requests share no state.
"""

import hashlib
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class CacheEntry:
    """
    Single cache entry with metadata.

    Attributes:
        key: Document digest
        value: Cached pipeline result
        created_at: When the entry was created
        access_count: Number of times read
        ttl_seconds: Time-to-live (None = no expiration)
    """
    key: str
    value: Any
    created_at: datetime = field(default_factory=datetime.now)
    access_count: int = 0
    ttl_seconds: Optional[int] = None

    def is_expired(self) -> bool:
        if self.ttl_seconds is None:
            return False
        age = (datetime.now() - self.created_at).total_seconds()
        return age > self.ttl_seconds


class CacheStatistics:
    """Track cache performance metrics"""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0
        self.writes = 0

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "writes": self.writes,
            "hit_rate": self.hit_rate(),
        }


class ResultCache:
    """
    LRU cache for pipeline results.

    Example:
        cache = ResultCache(max_size=100)
        key = ResultCache.make_key(data, "image/png")
        cache.set(key, result)
        cached = cache.get(key)
    """

    def __init__(self, max_size: int = 100, default_ttl: Optional[int] = None):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl

        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStatistics()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def make_key(data: bytes, mime_type: str = "", reference_date: str = "") -> str:
        """
        Digest of the document bytes, its MIME type and the reference date.

        Results whose date fell back to the processing date are only valid
        for that date, so the date is part of the key.
        """
        digest = hashlib.sha256(data)
        digest.update(b"\0")
        digest.update((mime_type or "").lower().encode("utf-8"))
        digest.update(b"\0")
        digest.update(reference_date.encode("utf-8"))
        return digest.hexdigest()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats.misses += 1
                return default

            if entry.is_expired():
                del self._cache[key]
                self._stats.misses += 1
                self._stats.expirations += 1
                return default

            entry.access_count += 1
            self._cache.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None):
        with self._lock:
            if key in self._cache:
                del self._cache[key]

            while len(self._cache) >= self.max_size:
                evicted_key, _ = self._cache.popitem(last=False)
                self._stats.evictions += 1
                self.logger.debug(f"Evicted cache entry {evicted_key[:12]}")

            self._cache[key] = CacheEntry(
                key=key,
                value=value,
                ttl_seconds=ttl if ttl is not None else self.default_ttl,
            )
            self._stats.writes += 1

    def clear(self):
        with self._lock:
            self._cache.clear()

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.to_dict()
            stats["entry_count"] = len(self._cache)
            stats["max_size"] = self.max_size
            return stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._cache
