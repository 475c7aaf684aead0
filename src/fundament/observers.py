"""
Observer registry: per-key ordered listeners notified on every update.

Listener ids are namespaced with the data source key by default
(``news.my_widget``). Adding a listener whose id already exists under the same
key replaces the old one, unless overwriting is turned off, in which case the
registry refuses with DuplicateListenerError.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .exceptions import DuplicateListenerError
from .ids import IdAllocator, qualify

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class TargetAction:
    """
    Listener calling a named method on a target object.

    ``TargetAction(widget, "on_update")`` calls ``widget.on_update(value)``.
    """

    def __init__(self, target: Any, action: str):
        if not callable(getattr(target, action, None)):
            raise AttributeError(
                f"{type(target).__name__} has no callable attribute '{action}'"
            )
        self.target = target
        self.action = action

    def __call__(self, value: Any) -> None:
        getattr(self.target, self.action)(value)

    def describe(self) -> str:
        return f"{type(self.target).__name__}_{self.action}"

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, TargetAction)
            and self.target is other.target
            and self.action == other.action
        )

    def __hash__(self) -> int:
        return hash((id(self.target), self.action))

    def __repr__(self) -> str:
        return f"TargetAction({type(self.target).__name__}, {self.action!r})"


@dataclass(frozen=True)
class Listener:
    """
    A callback registered for one data source key.
    """

    listener_id: str
    key: str
    callback: Callback


class ObserverRegistry:
    """
    Thread-safe mapping of data source key to its ordered listeners.
    """

    def __init__(self, allocator: Optional[IdAllocator] = None):
        self.allocator = allocator or IdAllocator()
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.RLock()

    def add(
        self,
        key: str,
        callback: Callback,
        local_id: Optional[str] = None,
        namespacing: bool = True,
        overwrite: bool = True,
    ) -> str:
        """
        Register ``callback`` for updates of ``key``.

        Args:
            key: Data source key to observe
            callback: Called with every new value
            local_id: Listener id before namespacing; allocated when omitted
            namespacing: Prefix the id with ``key``
            overwrite: Replace an existing listener with the same id

        Returns:
            The listener id, needed to remove the listener later

        Raises:
            DuplicateListenerError: If the id exists under ``key`` and
                ``overwrite`` is False
        """
        if not key:
            raise ValueError("Data source key cannot be empty")
        if not callable(callback):
            raise TypeError("Listener callback must be callable")

        with self._lock:
            if local_id is None:
                local_id = self.allocator.listener_id(
                    callback,
                    taken=lambda candidate: self._has_id(
                        qualify(key, candidate, namespacing)
                    ),
                )
            listener_id = qualify(key, local_id, namespacing)

            current = self._listeners.get(key, [])
            kept = [item for item in current if item.listener_id != listener_id]
            if len(kept) != len(current):
                if not overwrite:
                    raise DuplicateListenerError(listener_id)
                logger.debug(f"Replacing listener '{listener_id}'")

            # Lists are replaced, never mutated, so a notify pass holding the
            # old list is unaffected.
            self._listeners[key] = kept + [Listener(listener_id, key, callback)]

        logger.debug(f"Added listener '{listener_id}' for '{key}'")
        return listener_id

    def remove(self, listener_id: str) -> bool:
        """
        Remove a listener by its full id, whatever key it observes.

        Returns:
            True if a listener was removed
        """
        removed = False
        with self._lock:
            for key, current in list(self._listeners.items()):
                kept = [item for item in current if item.listener_id != listener_id]
                if len(kept) == len(current):
                    continue
                removed = True
                if kept:
                    self._listeners[key] = kept
                else:
                    del self._listeners[key]

        if removed:
            logger.debug(f"Removed listener '{listener_id}'")
        return removed

    def clear(self, key: str) -> int:
        """Drop every listener of ``key`` and return how many there were."""
        with self._lock:
            return len(self._listeners.pop(key, []))

    def notify(self, key: str, value: Any) -> int:
        """
        Deliver ``value`` to every listener of ``key`` in insertion order.

        The listener list is captured before delivery starts; listeners added
        or removed meanwhile take effect from the next notification.

        Returns:
            Number of listeners that handled the value without raising
        """
        with self._lock:
            snapshot = self._listeners.get(key, [])

        delivered = 0
        for listener in snapshot:
            try:
                listener.callback(value)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Listener '{listener.listener_id}' failed handling '{key}'"
                )
        return delivered

    def listeners(self, key: str) -> List[Listener]:
        with self._lock:
            return list(self._listeners.get(key, []))

    def ids(self, key: str) -> List[str]:
        return [listener.listener_id for listener in self.listeners(key)]

    def count(self, key: Optional[str] = None) -> int:
        with self._lock:
            if key is not None:
                return len(self._listeners.get(key, []))
            return sum(len(items) for items in self._listeners.values())

    def _has_id(self, listener_id: str) -> bool:
        return any(
            item.listener_id == listener_id
            for items in self._listeners.values()
            for item in items
        )
