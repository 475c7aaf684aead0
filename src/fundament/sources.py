"""
Source registry: per-key fetch functions, refresh intervals and timer status.
"""

import itertools
import logging
import threading
import time
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .exceptions import DuplicateKeyError
from .ids import IdAllocator

logger = logging.getLogger(__name__)

# A fetch function takes no arguments and returns the value, or a Future
# that resolves to it. A Future that never resolves means "no update".
FetchFunction = Callable[[], Any]


class TimerStatus(Enum):
    """
    Status of a source's timer. Busy while a fetch is outstanding.
    """

    IDLE = "idle"
    BUSY = "busy"


@dataclass
class SourceEntry:
    """
    A registered data source.
    """

    key: str
    fetch: FetchFunction
    interval: float
    status: TimerStatus = TimerStatus.IDLE
    generation: int = 0
    busy_since: Optional[float] = None
    last_updated: Optional[float] = None
    updates: int = 0
    registered_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.key:
            raise ValueError("Data source key cannot be empty")
        if not callable(self.fetch):
            raise TypeError(f"Fetch function for '{self.key}' is not callable")
        if self.interval <= 0:
            raise ValueError("Update interval must be positive")

    @property
    def busy(self) -> bool:
        return self.status is TimerStatus.BUSY

    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "interval": self.interval,
            "status": self.status.value,
            "busy_since": self.busy_since,
            "last_updated": self.last_updated,
            "updates": self.updates,
        }


def from_callback(producer: Callable[[Callable[[Any], None]], None]) -> FetchFunction:
    """
    Adapt a callback-style producer into a fetch function.

    The producer is called with a ``done(value)`` callback and may call it
    from any thread, at any later time, or never. Only the first call counts.
    """

    def fetch() -> Future:
        future: Future = Future()

        def done(value: Any) -> None:
            try:
                future.set_result(value)
            except InvalidStateError:
                logger.debug("Ignoring repeated completion of a callback fetch")

        producer(done)
        return future

    fetch.__qualname__ = getattr(producer, "__qualname__", "from_callback")
    return fetch


class SourceRegistry:
    """
    Holds every registered SourceEntry, keyed by data source key.

    All status transitions go through this registry so that checking and
    setting the busy flag is a single locked step.
    """

    def __init__(self, allocator: Optional[IdAllocator] = None):
        self.allocator = allocator or IdAllocator()
        self._entries: Dict[str, SourceEntry] = {}
        self._lock = threading.RLock()
        # Unique across keys and re-registrations of the same key.
        self._generations = itertools.count(1)

    def register(self, key: str, fetch: FetchFunction, interval: float) -> SourceEntry:
        """
        Register a fetch function under ``key``.

        Raises:
            DuplicateKeyError: If ``key`` is already registered
        """
        entry = SourceEntry(key=key, fetch=fetch, interval=interval)
        with self._lock:
            if key in self._entries:
                raise DuplicateKeyError(key)
            self._entries[key] = entry

        logger.debug(f"Registered data source '{key}' (interval={interval}s)")
        return entry

    def register_generated(self, fetch: FetchFunction, interval: float) -> str:
        """Register under a freshly allocated key and return that key."""
        key = self.allocator.source_key()
        self.register(key, fetch, interval)
        return key

    def unregister(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return False
        logger.debug(f"Unregistered data source '{key}'")
        return True

    def get(self, key: str) -> Optional[SourceEntry]:
        with self._lock:
            return self._entries.get(key)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def begin_fetch(self, key: str) -> Optional[int]:
        """
        Mark ``key`` busy if it is idle.

        Returns:
            The generation number of the new fetch, or None if the source is
            unknown or already busy
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.busy:
                return None
            entry.status = TimerStatus.BUSY
            entry.generation = next(self._generations)
            entry.busy_since = time.time()
            return entry.generation

    def end_fetch(
        self,
        key: str,
        generation: int,
        store: Optional[Callable[[], None]] = None,
    ) -> bool:
        """
        Mark ``key`` idle again if ``generation`` is still the current fetch.

        Args:
            key: Data source key
            generation: Generation returned by ``begin_fetch``
            store: Called under the registry lock before the entry goes idle,
                   so a result is never written for a source that is gone

        Returns:
            False when the entry is gone or the fetch was superseded (timed
            out), in which case its result must be dropped
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.generation != generation or not entry.busy:
                return False
            if store is not None:
                store()
                entry.last_updated = time.time()
                entry.updates += 1
            entry.status = TimerStatus.IDLE
            entry.busy_since = None
            return True

    def abandon_fetch(self, key: str, generation: int) -> bool:
        """Release a fetch that is still outstanding after its timeout."""
        return self.end_fetch(key, generation)

    def status(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {key: entry.describe() for key, entry in self._entries.items()}

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
