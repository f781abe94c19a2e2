"""
In-memory cache for acquired background images.

Entries live for the lifetime of the process: there is no eviction, no TTL
and no size bound. The pipeline only depends on the ``get``/``set`` pair, so
a bounded or shared cache can be dropped in later without touching callers.
"""

import threading
from typing import Dict, Optional, Protocol


class BackgroundCache(Protocol):
    """Minimal interface the acquisition pipeline needs from a cache."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class InMemoryBackgroundCache:
    """
    Thread-safe dict-backed cache.

    FastAPI runs sync handlers in a threadpool, so single-key reads and
    writes are serialized with a lock. Concurrent misses for the same key
    are not coalesced; the last write wins.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._entries[key] = value

    def clear(self) -> None:
        """Drop every entry. Useful for testing or memory management."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
