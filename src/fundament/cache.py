"""
Best-effort result cache.

Values may disappear at any time: when the bound is exceeded the oldest write
is dropped, and ``evict`` lets the host (or a test) signal memory pressure.
Absence of a value is a normal state and never an error.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """
    A cached value and the time it was stored.
    """

    key: str
    value: Any
    stored_at: float = field(default_factory=time.time)


class ResultCache:
    """
    Thread-safe bounded key/value store with an explicit eviction hook.
    """

    def __init__(
        self,
        max_entries: int = 1024,
        on_evict: Optional[Callable[[str], None]] = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.on_evict = on_evict
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()

    def get(self, key: str) -> Any:
        """Return the cached value for ``key``, or None when absent."""
        entry = self.entry(key)
        return entry.value if entry else None

    def entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, value: Any) -> None:
        """
        Store ``value`` under ``key``, overwriting any previous value.
        """
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(key=key, value=value)
            overflow = []
            while len(self._entries) > self.max_entries:
                oldest, _ = self._entries.popitem(last=False)
                overflow.append(oldest)

        for evicted in overflow:
            logger.debug(f"Cache bound reached, evicted '{evicted}'")
            self._evicted(evicted)

    def discard(self, key: str) -> bool:
        """Drop ``key`` without running the eviction hook."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def evict(self, key: Optional[str] = None) -> List[str]:
        """
        Evict one key, or everything when ``key`` is None.

        Returns:
            The keys that were evicted
        """
        with self._lock:
            if key is None:
                evicted = list(self._entries)
                self._entries.clear()
            elif self._entries.pop(key, None) is not None:
                evicted = [key]
            else:
                evicted = []

        for evicted_key in evicted:
            self._evicted(evicted_key)
        if evicted:
            logger.info(f"Evicted {len(evicted)} cached value(s)")
        return evicted

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evicted(self, key: str) -> None:
        if self.on_evict:
            try:
                self.on_evict(key)
            except Exception as e:
                logger.error(f"Eviction callback failed for '{key}': {e}")
