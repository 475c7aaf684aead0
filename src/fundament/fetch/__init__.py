"""
URL data sources: downloading and decoding by format tag.
"""

# Built-in decoders (auto-registered on import)
from .decoders import ResponseType
from .registry import (
    DecoderRegistry,
    decode,
    list_response_types,
    register_decoder,
)
from .url_source import URLFetcher

__all__ = [
    "ResponseType",
    "DecoderRegistry",
    "register_decoder",
    "decode",
    "list_response_types",
    "URLFetcher",
]
