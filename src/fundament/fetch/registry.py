"""
Registry of response decoders keyed by format tag.

Decoders turn the raw bytes of a response into the value that gets cached,
for example ``"json"`` -> dict/list. Plug in your own with
``register_decoder``.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import UnknownResponseTypeError

logger = logging.getLogger(__name__)

Decoder = Callable[[bytes], Any]


class DecoderRegistry:
    """
    Registry for decoder functions with decorator-based registration.
    """

    _decoders: Dict[str, Decoder] = {}

    @classmethod
    def register(cls, response_type: str, decoder: Decoder) -> None:
        """
        Register a decoder for a format tag, replacing any previous one.

        Args:
            response_type: Format tag, e.g. "json"
            decoder: Callable turning response bytes into a value
        """
        if not callable(decoder):
            raise ValueError(f"Decoder must be callable: {decoder!r}")

        cls._decoders[response_type.lower()] = decoder
        logger.debug(f"Registered decoder: {response_type} -> {decoder.__name__}")

    @classmethod
    def unregister(cls, response_type: str) -> bool:
        return cls._decoders.pop(response_type.lower(), None) is not None

    @classmethod
    def get(cls, response_type: str) -> Decoder:
        """
        Look up the decoder for a format tag.

        Raises:
            UnknownResponseTypeError: If no decoder is registered for it
        """
        try:
            return cls._decoders[str(response_type).lower()]
        except KeyError:
            raise UnknownResponseTypeError(
                str(response_type), cls.get_available_types()
            )

    @classmethod
    def get_available_types(cls) -> List[str]:
        """Get list of all registered format tags."""
        return sorted(cls._decoders)

    @classmethod
    def get_info(cls) -> Dict[str, str]:
        """Get a one-line description of every registered decoder."""
        info = {}
        for response_type, decoder in sorted(cls._decoders.items()):
            doc = (decoder.__doc__ or "No description").strip().splitlines()[0]
            info[response_type] = f"{decoder.__name__} - {doc}"
        return info


def register_decoder(response_type: str, decoder: Optional[Decoder] = None):
    """
    Decorator and function for registering decoders.

    Can be used as:
    1. Function: register_decoder("yaml", decode_yaml)
    2. Decorator: @register_decoder("yaml")
    """

    def decorator(func: Decoder) -> Decoder:
        DecoderRegistry.register(response_type, func)
        return func

    if decoder is not None:
        DecoderRegistry.register(response_type, decoder)
        return decoder
    return decorator


def decode(response_type: str, content: bytes) -> Any:
    """Decode ``content`` with the decoder registered for ``response_type``."""
    return DecoderRegistry.get(response_type)(content)


def list_response_types() -> List[str]:
    """List all available format tags."""
    return DecoderRegistry.get_available_types()
