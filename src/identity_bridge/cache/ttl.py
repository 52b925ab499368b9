"""In-memory key -> value cache with per-entry expiry."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from identity_bridge.temporal.clock import Clock, SystemClock

V = TypeVar("V")


@dataclass
class _CacheEntry(Generic[V]):
    value: V
    expires_at: datetime


class TTLCache(Generic[V]):
    """Expiring cache. Expiry is checked lazily on read.

    Keys are plain strings; values are whatever the caller stores. Safe
    to share between the event loop and worker threads.
    """

    def __init__(self, ttl_seconds: float, clock: Clock | None = None, name: str = "") -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._entries: dict[str, _CacheEntry[V]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> V | None:
        """Return the live value for *key*, dropping it if expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at > self._clock.now():
                self._hits += 1
                return entry.value
            if entry is not None:
                del self._entries[key]
            self._misses += 1
            return None

    def set(self, key: str, value: V, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = _CacheEntry(
                value=value,
                expires_at=self._clock.now() + timedelta(seconds=ttl),
            )

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge(self) -> int:
        """Drop every expired entry. Returns how many were dropped."""
        with self._lock:
            now = self._clock.now()
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def keys(self) -> list[str]:
        """Live keys."""
        with self._lock:
            self.purge()
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "keys": len(self.keys()),
                "hits": self._hits,
                "misses": self._misses,
                "ttl_seconds": self.ttl_seconds,
            }

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and entry.expires_at > self._clock.now()

    def __len__(self) -> int:
        return len(self.keys())
