"""
Listener and source identifier allocation.

Two modes are supported, selected once per engine:

- opaque:      a random UUID4 string, e.g. ``550e8400-e29b-41d4-a716-446655440000``
- descriptive: derived from the observer, e.g. ``Dashboard_on_update``, with a
               numeric suffix when the candidate is already taken.

Namespacing prefixes the local id with the data source key:
``news.Dashboard_on_update``.
"""

import logging
import uuid
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "."


def opaque_id() -> str:
    """Return a random, process-unique token."""
    return str(uuid.uuid4())


def describe_observer(callback: Any) -> Optional[str]:
    """
    Derive a human-readable hint for an observer.

    Returns:
        ``Type_action`` for target/action listeners and bound methods, the
        qualified name for named functions, or None when nothing readable can
        be derived (lambdas, partials, arbitrary callables).
    """
    describe = getattr(callback, "describe", None)
    if callable(describe):
        hint = describe()
        if isinstance(hint, str) and hint:
            return hint

    owner = getattr(callback, "__self__", None)
    func = getattr(callback, "__func__", None)
    if owner is not None and func is not None:
        owner_type = owner if isinstance(owner, type) else type(owner)
        return f"{owner_type.__name__}_{func.__name__}"

    qualname = getattr(callback, "__qualname__", None)
    if not qualname or "<" in qualname:
        return None
    return qualname.replace(NAMESPACE_SEPARATOR, "_")


def qualify(key: str, local_id: str, namespacing: bool = True) -> str:
    """Apply the namespacing rule to a local listener id."""
    if not namespacing:
        return local_id
    return f"{key}{NAMESPACE_SEPARATOR}{local_id}"


class IdAllocator:
    """
    Allocates listener ids and generated data source keys.
    """

    def __init__(self, descriptive: bool = False):
        self.descriptive = descriptive

    def source_key(self) -> str:
        """Generated source keys are always opaque."""
        return opaque_id()

    def listener_id(
        self,
        callback: Any,
        taken: Optional[Callable[[str], bool]] = None,
    ) -> str:
        """
        Allocate a local id for a listener.

        Args:
            callback: The observer the id is for, used as the descriptive hint
            taken: Predicate telling whether a candidate id is already in use.
                   Only consulted in descriptive mode.

        Returns:
            A local (not yet namespaced) listener id
        """
        if not self.descriptive:
            return opaque_id()

        hint = describe_observer(callback)
        if not hint:
            logger.debug(f"No descriptive hint for {callback!r}, using opaque id")
            return opaque_id()

        if taken is None:
            return hint

        candidate = hint
        suffix = 2
        while taken(candidate):
            candidate = f"{hint}_{suffix}"
            suffix += 1
        return candidate
