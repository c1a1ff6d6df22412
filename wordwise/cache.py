"""
Analysis Cache
==============
Bounded TTL cache for analyzer results and AI enhancements.

The cache is an explicit instance handed to the scheduler, the AI
service and the HTTP layer; there is no module-level cache object. The
in-memory backend is always present. A persistent backend (SQLite) is an
optional second level: reads fall through to it and promote the entry,
writes go to both.

Eviction removes expired entries first, then the entry with the fewest
hits, oldest first on ties.
"""

import hashlib
import json
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from config_logging import get_logger

logger = get_logger('wordwise.cache')


@dataclass
class CacheEntry:
    """A cached value with expiry and hit bookkeeping."""
    key: str
    value: Any
    created_at: float = field(default_factory=time.time)
    ttl: Optional[float] = None  # seconds, None = no expiry
    hits: int = 0

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.ttl is None:
            return False
        return (now or time.time()) - self.created_at > self.ttl


class CacheBackend(ABC):
    """Storage strategy for cache entries."""

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """Get entry by key."""

    @abstractmethod
    def set(self, entry: CacheEntry):
        """Store entry."""

    @abstractmethod
    def delete(self, key: str):
        """Delete entry by key."""

    @abstractmethod
    def clear(self):
        """Clear all entries."""

    @abstractmethod
    def size(self) -> int:
        """Number of entries."""

    @abstractmethod
    def entries(self) -> List[CacheEntry]:
        """Snapshot of all entries."""


class MemoryCacheBackend(CacheBackend):
    """Plain dict storage."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, entry: CacheEntry):
        self._entries[entry.key] = entry

    def delete(self, key: str):
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def entries(self) -> List[CacheEntry]:
        return list(self._entries.values())


class SqliteCacheBackend(CacheBackend):
    """
    SQLite-backed storage. Values must be JSON serializable.

    Pass ':memory:' for a throwaway database.
    """

    def __init__(self, path: Union[str, Path] = ':memory:'):
        self.path = str(path)
        if self.path != ':memory:':
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    @contextmanager
    def _db(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database operations."""
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _init_schema(self):
        with self._db() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    ttl REAL,
                    hits INTEGER DEFAULT 0
                )
            """)

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        return CacheEntry(
            key=row['key'],
            value=json.loads(row['value']),
            created_at=row['created_at'],
            ttl=row['ttl'],
            hits=row['hits'],
        )

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._db() as conn:
            row = conn.execute(
                "SELECT key, value, created_at, ttl, hits FROM cache_entries WHERE key = ?",
                (key,)
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def set(self, entry: CacheEntry):
        payload = json.dumps(entry.value)
        with self._db() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cache_entries (key, value, created_at, ttl, hits) "
                "VALUES (?, ?, ?, ?, ?)",
                (entry.key, payload, entry.created_at, entry.ttl, entry.hits)
            )

    def delete(self, key: str):
        with self._db() as conn:
            conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))

    def clear(self):
        with self._db() as conn:
            conn.execute("DELETE FROM cache_entries")

    def size(self) -> int:
        with self._db() as conn:
            return conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0]

    def entries(self) -> List[CacheEntry]:
        with self._db() as conn:
            rows = conn.execute(
                "SELECT key, value, created_at, ttl, hits FROM cache_entries"
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def close(self):
        self._conn.close()


class AnalysisCache:
    """Bounded two-level TTL cache."""

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        persistent: Optional[CacheBackend] = None,
        max_size: int = 1000,
        default_ttl: Optional[float] = 300.0,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.backend = backend or MemoryCacheBackend()
        self.persistent = persistent
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @classmethod
    def from_config(cls, cache_config=None) -> 'AnalysisCache':
        if cache_config is None:
            from .config import get_config
            cache_config = get_config().cache
        persistent = None
        if cache_config.persistent_path:
            persistent = SqliteCacheBackend(cache_config.persistent_path)
        return cls(persistent=persistent, max_size=cache_config.max_size,
                   default_ttl=cache_config.default_ttl)

    @staticmethod
    def make_key(*parts: Any) -> str:
        """SHA-256 over the string form of the parts."""
        digest = hashlib.sha256()
        for part in parts:
            digest.update(str(part).encode('utf-8'))
            digest.update(b'\x1f')
        return digest.hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None."""
        with self._lock:
            entry = self.backend.get(key)
            if entry is not None and entry.is_expired():
                self.backend.delete(key)
                entry = None

            if entry is None and self.persistent is not None:
                entry = self.persistent.get(key)
                if entry is not None and entry.is_expired():
                    self.persistent.delete(key)
                    entry = None
                if entry is not None:
                    self._evictions += self._make_room(self.backend)
                    self.backend.set(entry)

            if entry is None:
                self._misses += 1
                return None

            entry.hits += 1
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        """Store a value; ttl defaults to the cache's default_ttl."""
        entry = CacheEntry(key=key, value=value,
                           ttl=self.default_ttl if ttl is None else ttl)
        with self._lock:
            if self.backend.get(key) is None:
                self._evictions += self._make_room(self.backend)
            self.backend.set(entry)
            if self.persistent is not None:
                try:
                    if self.persistent.get(key) is None:
                        self._make_room(self.persistent)
                    self.persistent.set(entry)
                except (TypeError, ValueError, sqlite3.Error) as e:
                    logger.warning(f"Persistent cache write failed: {e}", cache_key=key[:16])

    def delete(self, key: str):
        with self._lock:
            self.backend.delete(key)
            if self.persistent is not None:
                self.persistent.delete(key)

    def clear(self):
        with self._lock:
            self.backend.clear()
            if self.persistent is not None:
                self.persistent.clear()

    def __len__(self):
        return self.backend.size()

    def __contains__(self, key: str) -> bool:
        entry = self.backend.get(key)
        return entry is not None and not entry.is_expired()

    def _make_room(self, backend: CacheBackend) -> int:
        """Evict from one level until it has space for one more entry. Returns the eviction count."""
        if backend.size() < self.max_size:
            return 0
        self._remove_expired(backend)
        evicted = 0
        while backend.size() >= self.max_size:
            victim = min(backend.entries(), key=lambda e: (e.hits, e.created_at))
            backend.delete(victim.key)
            evicted += 1
        return evicted

    @staticmethod
    def _remove_expired(backend: CacheBackend) -> int:
        now = time.time()
        expired = [e.key for e in backend.entries() if e.is_expired(now)]
        for key in expired:
            backend.delete(key)
        return len(expired)

    def cleanup(self) -> int:
        """Remove expired entries from every level. Returns the count removed."""
        with self._lock:
            removed = self._remove_expired(self.backend)
            if self.persistent is not None:
                removed += self._remove_expired(self.persistent)
        if removed:
            logger.debug("Cache cleanup", removed=removed)
        return removed

    @property
    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            'size': self.backend.size(),
            'max_size': self.max_size,
            'hits': self._hits,
            'misses': self._misses,
            'evictions': self._evictions,
            'hit_rate': self._hits / total if total > 0 else 0.0,
            'persistent': self.persistent is not None,
        }
