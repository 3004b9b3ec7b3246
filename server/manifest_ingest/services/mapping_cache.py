"""
In-memory TTL cache for AI field-mapping suggestions.

Owned by a FieldMapper instance so repeated headers across sheets and
documents only reach the AI collaborator once per TTL window.
"""

from __future__ import annotations

import time
from threading import Lock
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from manifest_ingest.services.extraction_config import DEFAULT_AI_CACHE_TTL_SECONDS

CacheKey = Tuple[str, Tuple[str, ...]]


def make_mapping_key(header: str, candidates: Iterable[str]) -> CacheKey:
    """Key by header plus the sorted candidate shortlist."""
    return (header, tuple(sorted(candidates)))


class MappingCache:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_AI_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = Lock()
        self._store: Dict[CacheKey, Dict[str, Any]] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def set(self, key: CacheKey, data: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a mapping with TTL (default: the cache's TTL)."""
        expires_at = self._clock() + (self._ttl_seconds if ttl_seconds is None else ttl_seconds)
        with self._lock:
            self._store[key] = {
                "data": data,
                "expires_at": expires_at,
            }

    def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieve a mapping if present and not expired."""
        with self._lock:
            entry = self._store.get(key)
            if not entry:
                return None

            if entry["expires_at"] <= self._clock():
                # Expired – prune and return None
                self._store.pop(key, None)
                return None

            return entry["data"]

    def delete(self, key: CacheKey) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def purge_expired(self) -> int:
        """Remove expired entries; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired_keys = [key for key, entry in self._store.items() if entry["expires_at"] <= now]
            for key in expired_keys:
                self._store.pop(key, None)
        return len(expired_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
