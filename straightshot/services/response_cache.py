"""
Response Cache - content-addressed store in front of the upstream model

Keys are sha256(schema_version, canonical snapshot JSON), so:
- incidental payload differences (field order, whitespace, url noise) still hit
- bumping the schema version retires every old entry without a purge

Entries hold the exact serialized response body; a hit is byte-identical to
what was stored. Writes for the same key are idempotent (last writer wins,
content is deterministic for the key).
"""

import json
import time
import threading
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from straightshot.config import CacheConfig, CACHE
from straightshot.utils.fingerprint import SnapshotLike, cache_key

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Single cache entry with metadata"""
    body: bytes
    stored_at: float
    ttl: int
    schema_version: str
    hits: int = 0

    def age_seconds(self, now: float) -> float:
        return now - self.stored_at

    def is_expired(self, now: float) -> bool:
        return self.age_seconds(now) >= self.ttl

    @property
    def result(self) -> Dict[str, Any]:
        return json.loads(self.body)


def serialize_result(result: Dict[str, Any]) -> bytes:
    return json.dumps(result, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class ResponseCache:
    """
    Thread-safe LRU cache with a fixed TTL

    Features:
    - Versioned content-addressed keys
    - LRU eviction when max size reached
    - Hit tracking for the health endpoint
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or CACHE
        self._clock = clock
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = {
            'hits': 0,
            'misses': 0,
            'stores': 0,
            'evictions': 0,
            'expirations': 0,
        }

    def make_key(self, snapshot: SnapshotLike) -> str:
        return cache_key(snapshot, self.config.schema_version)

    def lookup(self, snapshot: SnapshotLike) -> Optional[CacheEntry]:
        """Return the live entry for snapshot, or None on a miss."""
        key = self.make_key(snapshot)
        now = self._clock()

        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats['misses'] += 1
                return None

            if entry.is_expired(now):
                del self._cache[key]
                self._stats['expirations'] += 1
                self._stats['misses'] += 1
                return None

            # Move to end (most recently used)
            self._cache.move_to_end(key)
            entry.hits += 1
            self._stats['hits'] += 1

        logger.info(f"[CACHE] HIT {key[:12]} (age {entry.age_seconds(now):.0f}s, hits {entry.hits})")
        return entry

    def store(self, snapshot: SnapshotLike, result: Dict[str, Any]) -> CacheEntry:
        """Store the final coerced result for snapshot."""
        key = self.make_key(snapshot)
        entry = CacheEntry(
            body=serialize_result(result),
            stored_at=self._clock(),
            ttl=self.config.ttl_seconds,
            schema_version=self.config.schema_version,
        )

        with self._lock:
            if key in self._cache:
                del self._cache[key]
            # Evict oldest if at capacity
            while len(self._cache) >= self.config.max_size:
                self._cache.popitem(last=False)
                self._stats['evictions'] += 1
            self._cache[key] = entry
            self._stats['stores'] += 1

        logger.info(f"[CACHE] STORE {key[:12]} ({len(entry.body)} bytes, ttl {entry.ttl}s)")
        return entry

    def cleanup_expired(self) -> int:
        """Remove all expired entries, return count removed"""
        now = self._clock()
        with self._lock:
            expired_keys = [k for k, v in self._cache.items() if v.is_expired(now)]
            for key in expired_keys:
                del self._cache[key]
            self._stats['expirations'] += len(expired_keys)
        return len(expired_keys)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            total_requests = self._stats['hits'] + self._stats['misses']
            hit_rate = (
                self._stats['hits'] / total_requests * 100
                if total_requests > 0 else 0
            )
            return {
                'size': len(self._cache),
                'max_size': self.config.max_size,
                'schema_version': self.config.schema_version,
                'hit_rate': f"{hit_rate:.1f}%",
                **self._stats,
            }
