"""
Refresh scheduler: one recurring timer per data source.

On every tick the scheduler starts a fetch unless the previous one for the same
key is still outstanding. Fetches run on an executor; when a value arrives it
is written to the result cache, the source goes idle again, and listeners are
notified. Deliveries for one key never overlap and follow the order in which
results were stored; a result completing while its key is still being
delivered is handed to the thread already delivering.

Known limitation: a fetch that never completes keeps its source busy forever
and no further cycles run for that key. Set ``fetch_timeout`` to abandon such
fetches; their late results are then dropped.
"""

import logging
import threading
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Deque, Dict, List, Optional, Set, Tuple

from .cache import ResultCache
from .clock import Clock, ThreadingClock, TimerHandle
from .sources import SourceRegistry

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Drives fetches for every registered data source.
    """

    def __init__(
        self,
        sources: SourceRegistry,
        cache: ResultCache,
        notify: Callable[[str, Any], None],
        clock: Optional[Clock] = None,
        executor: Optional[Executor] = None,
        fetch_timeout: Optional[float] = None,
        max_workers: int = 4,
    ):
        """
        Initialize the scheduler.

        Args:
            sources: Registry holding the fetch functions and timer status
            cache: Cache receiving every successful result
            notify: Called with (key, value) after each successful fetch
            clock: Timer facility, real threads by default
            executor: Runs fetch functions; a thread pool is created when omitted
            fetch_timeout: Seconds after which an outstanding fetch is abandoned
            max_workers: Size of the thread pool created when no executor is given
        """
        self.sources = sources
        self.cache = cache
        self.notify = notify
        self.clock = clock or ThreadingClock()
        self.fetch_timeout = fetch_timeout
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="fundament-fetch"
        )
        self._timers: Dict[str, TimerHandle] = {}
        self._timeouts: Dict[str, Tuple[int, TimerHandle]] = {}
        self._pending: Dict[str, Deque[Any]] = {}
        self._delivering: Set[str] = set()
        self._lock = threading.RLock()

    def start(self, key: str) -> None:
        """
        Start the recurring timer for a registered source.

        Raises:
            KeyError: If ``key`` is not registered
        """
        entry = self.sources.get(key)
        if entry is None:
            raise KeyError(f"Data source '{key}' is not registered")

        handle = self.clock.call_every(
            entry.interval, lambda: self.tick(key), name=key
        )
        with self._lock:
            previous = self._timers.pop(key, None)
            self._timers[key] = handle
        if previous is not None:
            previous.cancel()
        logger.debug(f"Started timer for '{key}' every {entry.interval}s")

    def stop(self, key: str) -> bool:
        """
        Stop the timer for ``key``. An in-flight fetch is left to finish.
        """
        with self._lock:
            handle = self._timers.pop(key, None)
            timeout = self._timeouts.pop(key, None)
            self._pending.pop(key, None)
        if timeout is not None:
            timeout[1].cancel()
        if handle is None:
            return False
        handle.cancel()
        logger.debug(f"Stopped timer for '{key}'")
        return True

    def running(self) -> List[str]:
        with self._lock:
            return list(self._timers)

    def tick(self, key: str) -> bool:
        """
        Run one refresh cycle for ``key``.

        Returns:
            True if a fetch was started, False if the cycle was skipped
        """
        generation = self.sources.begin_fetch(key)
        if generation is None:
            logger.debug(f"Skipping refresh of '{key}': busy or not registered")
            return False

        entry = self.sources.get(key)
        if entry is None:
            return False

        if self.fetch_timeout:
            self._arm_timeout(key, generation)

        try:
            future = self.executor.submit(entry.fetch)
        except RuntimeError as e:
            logger.error(f"Cannot start fetch for '{key}': {e}")
            self._release(key, generation)
            return False

        future.add_done_callback(lambda f: self._fetched(key, generation, f))
        return True

    def shutdown(self, wait: bool = False) -> None:
        """Stop every timer and, if owned, the fetch executor."""
        with self._lock:
            handles = list(self._timers.values()) + [
                handle for _, handle in self._timeouts.values()
            ]
            self._timers.clear()
            self._timeouts.clear()
            self._pending.clear()
        for handle in handles:
            handle.cancel()

        if self._owns_executor:
            self.executor.shutdown(wait=wait, cancel_futures=True)
        logger.info(f"Scheduler stopped ({len(handles)} timers cancelled)")

    def _fetched(self, key: str, generation: int, future: Future) -> None:
        if future.cancelled():
            logger.warning(f"Fetch for '{key}' was cancelled")
            self._release(key, generation)
            return

        error = future.exception()
        if error is not None:
            logger.warning(f"Fetch for '{key}' failed: {error}")
            self._release(key, generation)
            return

        result = future.result()
        if isinstance(result, Future):
            # Fetch handed back a pending result; wait for it to resolve.
            result.add_done_callback(lambda f: self._fetched(key, generation, f))
            return

        self._complete(key, generation, result)

    def _complete(self, key: str, generation: int, value: Any) -> None:
        self._disarm_timeout(key, generation)
        stored = self.sources.end_fetch(
            key, generation, store=lambda: self._store(key, value)
        )
        if not stored:
            logger.debug(f"Dropping late result for '{key}'")
            return

        logger.debug(f"Updated '{key}'")
        self._deliver(key)

    def _store(self, key: str, value: Any) -> None:
        # Runs under the source registry lock, so queue order is store order.
        self.cache.put(key, value)
        with self._lock:
            self._pending.setdefault(key, deque()).append(value)

    def _deliver(self, key: str) -> None:
        with self._lock:
            if key in self._delivering:
                return
            self._delivering.add(key)

        while True:
            with self._lock:
                queue = self._pending.get(key)
                if not queue:
                    self._pending.pop(key, None)
                    self._delivering.discard(key)
                    return
                value = queue.popleft()
            try:
                self.notify(key, value)
            except Exception:
                logger.exception(f"Delivering update of '{key}' failed")

    def _release(self, key: str, generation: int) -> None:
        self._disarm_timeout(key, generation)
        self.sources.end_fetch(key, generation)

    def _arm_timeout(self, key: str, generation: int) -> None:
        def expire():
            if self.sources.abandon_fetch(key, generation):
                logger.warning(
                    f"Fetch for '{key}' still outstanding after "
                    f"{self.fetch_timeout}s, abandoned"
                )
            with self._lock:
                if self._timeouts.get(key, (None,))[0] == generation:
                    del self._timeouts[key]

        handle = self.clock.call_later(
            self.fetch_timeout, expire, name=f"{key}:timeout"
        )
        with self._lock:
            self._timeouts[key] = (generation, handle)

    def _disarm_timeout(self, key: str, generation: int) -> None:
        with self._lock:
            armed = self._timeouts.get(key)
            if armed is None or armed[0] != generation:
                return
            del self._timeouts[key]
        armed[1].cancel()
