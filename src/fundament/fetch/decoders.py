"""
Built-in decoders for the standard format tags.
"""

import io
import json
import plistlib
from enum import Enum

import pandas as pd
from PIL import Image

from .registry import register_decoder


class ResponseType(str, Enum):
    """
    Format tags understood out of the box.
    """

    JSON = "json"
    STRING = "string"
    DATA = "data"
    PLIST = "plist"
    IMAGE = "image"
    CSV = "csv"


@register_decoder(ResponseType.JSON.value)
def decode_json(content: bytes):
    """Parse a JSON document into dicts and lists."""
    return json.loads(content)


@register_decoder(ResponseType.STRING.value)
def decode_string(content: bytes) -> str:
    """Return the body as text (UTF-8, undecodable bytes replaced)."""
    return content.decode("utf-8", errors="replace")


@register_decoder(ResponseType.DATA.value)
def decode_data(content: bytes) -> bytes:
    """Return the raw body bytes."""
    return content


@register_decoder(ResponseType.PLIST.value)
def decode_plist(content: bytes):
    """Parse an XML or binary property list."""
    return plistlib.loads(content)


@register_decoder(ResponseType.IMAGE.value)
def decode_image(content: bytes) -> Image.Image:
    """Read the body as an image (any format Pillow understands)."""
    image = Image.open(io.BytesIO(content))
    image.load()
    return image


@register_decoder(ResponseType.CSV.value)
def decode_csv(content: bytes) -> pd.DataFrame:
    """Read a CSV table into a pandas DataFrame."""
    return pd.read_csv(io.BytesIO(content))
