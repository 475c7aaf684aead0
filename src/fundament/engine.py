"""
The Fundament engine: the single context object applications talk to.

It owns the source registry, result cache, observer registry and scheduler,
and exposes the public API::

    engine = Fundament()
    key = engine.add_data_source(fetch_weather, interval=300, key="weather")
    listener_id = engine.add_listener("weather", show_weather)
    ...
    engine.remove_listener(listener_id)

Registry conflicts never raise out of this API: a duplicate source key or a
refused listener id is logged and reported as ``None``.
"""

import logging
from concurrent.futures import Executor
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from . import bootstrap
from .cache import ResultCache
from .clock import Clock
from .exceptions import DuplicateKeyError, DuplicateListenerError
from .fetch import ResponseType, URLFetcher
from .ids import IdAllocator
from .observers import ObserverRegistry, TargetAction
from .scheduler import Scheduler
from .settings import DEFAULT_UPDATE_INTERVAL, Settings
from .sources import FetchFunction, SourceRegistry

logger = logging.getLogger(__name__)


class Fundament:
    """
    Key-addressed data refresh engine.

    Every data source is polled on its own interval; the latest successful
    result is cached and pushed to the listeners of its key.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Initialize the engine.

        Args:
            settings: Configuration, read from the environment when omitted
            clock: Timer facility for the scheduler (real threads by default)
            executor: Runs fetch functions (a thread pool by default)
        """
        self.settings = settings or Settings()
        self.allocator = IdAllocator(
            descriptive=self.settings.descriptive_listener_ids
        )
        self.sources = SourceRegistry(self.allocator)
        self.cache = ResultCache(max_entries=self.settings.cache_max_entries)
        self.observers = ObserverRegistry(self.allocator)
        self.scheduler = Scheduler(
            self.sources,
            self.cache,
            self.observers.notify,
            clock=clock,
            executor=executor,
            fetch_timeout=self.settings.fetch_timeout,
            max_workers=self.settings.max_workers,
        )
        self._default_update_interval = self.settings.default_update_interval

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "Fundament":
        """
        Create an engine and register the sources of the default config file.

        A missing config file is not an error; the engine simply starts empty.
        """
        engine = cls(settings, **kwargs)
        mapping = bootstrap.load_default_config(engine.settings.default_config)
        if mapping:
            engine.add_url_data_sources_from_dict(mapping)
        return engine

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def default_update_interval(self) -> float:
        """Interval used for sources registered without one."""
        return self._default_update_interval

    @default_update_interval.setter
    def default_update_interval(self, interval: float) -> None:
        # Only affects sources registered from now on.
        if interval < 0:
            raise ValueError("Update interval must be non-negative")
        self._default_update_interval = interval or DEFAULT_UPDATE_INTERVAL
        logger.debug(f"Default update interval set to {self._default_update_interval}s")

    @property
    def descriptive_listener_ids(self) -> bool:
        return self.allocator.descriptive

    # ------------------------------------------------------------------
    # Data sources
    # ------------------------------------------------------------------

    def add_data_source(
        self,
        fetch: FetchFunction,
        interval: Optional[float] = None,
        key: Optional[str] = None,
    ) -> Optional[str]:
        """
        Register a fetch function and start polling it.

        Args:
            fetch: Zero-argument callable returning the value, or a Future
                   resolving to it
            interval: Seconds between refreshes; the default interval when omitted.
                      Zero and negative intervals are rejected.
            key: Key to store and observe the data under; generated when omitted

        Returns:
            The data source key, or None if ``key`` is already registered

        Raises:
            ValueError: If ``interval`` is not positive
        """
        if interval is None:
            interval = self.default_update_interval
        try:
            if key is None:
                key = self.sources.register_generated(fetch, interval)
            else:
                self.sources.register(key, fetch, interval)
        except DuplicateKeyError as e:
            logger.warning(f"{e}; not adding it again")
            return None

        self.scheduler.start(key)
        logger.info(f"Added data source '{key}' (every {interval}s)")
        return key

    def add_url_data_source(
        self,
        url: str,
        response_type: Union[str, ResponseType] = ResponseType.JSON,
        interval: Optional[float] = None,
        key: Optional[str] = None,
    ) -> Optional[str]:
        """
        Register a URL whose body is decoded according to ``response_type``.

        Raises:
            UnknownResponseTypeError: If no decoder handles ``response_type``
            ValueError: If ``url`` is not an http(s) URL
        """
        fetcher = URLFetcher(url, response_type, timeout=self.settings.request_timeout)
        return self.add_data_source(fetcher, interval=interval, key=key)

    def add_url_data_source_from_dict(
        self, mapping: Mapping[str, Any], key: Optional[str] = None
    ) -> Optional[str]:
        """
        Register a URL data source described by ``{"format": ..., "url": ...}``.
        """
        config = bootstrap.parse_source(mapping)
        return self.add_url_data_source(
            config.url, config.format, interval=config.interval, key=key
        )

    def add_url_data_sources_from_dict(
        self, mapping: Mapping[str, Any]
    ) -> Dict[str, Optional[str]]:
        """
        Register every ``name -> {"format": ..., "url": ...}`` entry.
        """
        return bootstrap.register_sources(self, mapping)

    def unregister(self, key: str) -> bool:
        """
        Stop polling ``key`` and forget its cached value and listeners.

        A fetch already in flight may still complete; its result is dropped.
        """
        if not self.sources.unregister(key):
            return False
        self.scheduler.stop(key)
        self.cache.discard(key)
        dropped = self.observers.clear(key)
        logger.info(f"Removed data source '{key}' ({dropped} listeners dropped)")
        return True

    def refresh(self, key: str) -> bool:
        """
        Start a fetch for ``key`` now, unless one is already in flight.
        """
        return self.scheduler.tick(key)

    def keys(self) -> List[str]:
        return self.sources.keys()

    # ------------------------------------------------------------------
    # Cached values
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any:
        """
        Return the latest cached value of ``key``, or None if there is none.

        Never fetches: a missing value means no successful fetch yet, or the
        value was evicted.
        """
        return self.cache.get(key)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(
        self,
        key: str,
        callback: Callable[[Any], None],
        listener_id: Optional[str] = None,
        namespacing: bool = True,
        overwrite: bool = True,
    ) -> Optional[str]:
        """
        Call ``callback`` with every new value of ``key``.

        Args:
            key: Data source key to observe
            callback: Called with the new value
            listener_id: Your own id; it is prefixed with ``key + "."`` unless
                         ``namespacing`` is False. Allocated when omitted.
            namespacing: Prefix the id with the data source key
            overwrite: Replace an existing listener with the same id

        Returns:
            The listener id, or None if the id exists and ``overwrite`` is False
        """
        try:
            return self.observers.add(
                key,
                callback,
                local_id=listener_id,
                namespacing=namespacing,
                overwrite=overwrite,
            )
        except DuplicateListenerError as e:
            logger.warning(f"{e}; listener not added")
            return None

    def add_target_listener(
        self,
        key: str,
        target: Any,
        action: str,
        listener_id: Optional[str] = None,
        namespacing: bool = True,
        overwrite: bool = True,
    ) -> Optional[str]:
        """
        Call ``target.<action>(value)`` with every new value of ``key``.
        """
        return self.add_listener(
            key,
            TargetAction(target, action),
            listener_id=listener_id,
            namespacing=namespacing,
            overwrite=overwrite,
        )

    def remove_listener(self, listener_id: str) -> bool:
        return self.observers.remove(listener_id)

    # ------------------------------------------------------------------
    # Status & lifecycle
    # ------------------------------------------------------------------

    def status(self, key: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Describe the registered sources.

        A source whose fetch never completes stays ``busy``; ``busy_since``
        shows how long it has been stuck.

        Returns:
            Status of ``key`` (None if unknown), or of every source keyed by
            data source key
        """
        summary = {}
        for source_key, info in self.sources.status().items():
            info["cached"] = source_key in self.cache
            info["listeners"] = self.observers.count(source_key)
            summary[source_key] = info

        if key is not None:
            return summary.get(key)
        return summary

    def shutdown(self, wait: bool = False) -> None:
        """Stop every timer. Cached values stay readable."""
        self.scheduler.shutdown(wait=wait)

    def __enter__(self) -> "Fundament":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
