"""
Bounded cache — an explicit, injectable LRU store.

Shared caches (classification results, parse trees) are instances of this
class handed to their owners, never module globals, so every test run can
start from an empty cache.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Any, Hashable

logger = logging.getLogger(__name__)

_MISSING = object()


def text_key(*parts: str) -> str:
    """Hash arbitrary text parts into a compact cache key."""
    combined = "\x1f".join(parts)
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()


class BoundedCache:
    """Thread-safe LRU cache holding at most ``max_entries`` items."""

    def __init__(self, max_entries: int = 256, name: str = "cache"):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._name = name
        self._data: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value (refreshing its recency) or *default*."""
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                self.misses += 1
                return default
            self._data.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: Hashable, value: Any) -> None:
        """Store a value, evicting the least recently used entry when full."""
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self._max_entries:
                evicted, _ = self._data.popitem(last=False)
                logger.debug("[Cache:%s] Evicted %r", self._name, evicted)

    def clear(self) -> int:
        """Remove all entries and return how many were dropped."""
        with self._lock:
            count = len(self._data)
            self._data.clear()
            self.hits = 0
            self.misses = 0
        return count

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    @property
    def max_entries(self) -> int:
        return self._max_entries
