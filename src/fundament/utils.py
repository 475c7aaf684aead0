"""
Small helpers shared by the CLI and the HTTP API.
"""

from typing import Any

MAX_VALUE_WIDTH = 120


def summarise(value: Any, width: int = MAX_VALUE_WIDTH) -> str:
    """
    One-line description of a cached value.

    Tables report their shape, images their size and raw bytes their length;
    anything else is its repr, truncated to ``width`` characters.
    """
    shape = getattr(value, "shape", None)
    if shape is not None:
        return f"{type(value).__name__} shape={shape}"
    size = getattr(value, "size", None)
    if isinstance(size, tuple):
        return f"{type(value).__name__} size={size}"
    if isinstance(value, bytes):
        return f"{len(value)} bytes"

    text = repr(value)
    if len(text) > width:
        text = text[: width - 3] + "..."
    return text


def is_plain(value: Any) -> bool:
    """True for values made only of JSON-compatible containers and scalars."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, (list, tuple)):
        return all(is_plain(item) for item in value)
    if isinstance(value, dict):
        return all(
            isinstance(k, str) and is_plain(v) for k, v in value.items()
        )
    return False
