"""
Fundament: a key-addressed data refresh engine.

Register data sources under string keys, let the engine poll them on their own
intervals, read the latest cached value and subscribe to updates.

Modules
-------
- engine:     the Fundament context object (public API)
- scheduler:  per-key refresh timers
- cache:      best-effort result cache
- observers:  listener registry
- fetch:      URL data sources decoded by format tag
- bootstrap:  bulk registration from a configuration mapping
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version(__name__)
except PackageNotFoundError:  # local editable install
    __version__ = "0.0.0-dev"

from .clock import ManualClock, ThreadingClock
from .engine import Fundament
from .exceptions import (
    DuplicateKeyError,
    DuplicateListenerError,
    FundamentError,
    UnknownResponseTypeError,
)
from .fetch import ResponseType, URLFetcher, register_decoder
from .observers import TargetAction
from .settings import DEFAULT_UPDATE_INTERVAL, Settings
from .sources import TimerStatus, from_callback

__all__ = [
    "Fundament",
    "Settings",
    "DEFAULT_UPDATE_INTERVAL",
    "TargetAction",
    "TimerStatus",
    "from_callback",
    "ResponseType",
    "URLFetcher",
    "register_decoder",
    "ManualClock",
    "ThreadingClock",
    "FundamentError",
    "DuplicateKeyError",
    "DuplicateListenerError",
    "UnknownResponseTypeError",
]
