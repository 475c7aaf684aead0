"""
HTTP/HTTPS fetch functions for URL data sources.
"""

import logging
from typing import Any, Optional, Union

import requests

from .decoders import ResponseType
from .registry import DecoderRegistry

logger = logging.getLogger(__name__)


class URLFetcher:
    """
    Fetch function downloading a URL and decoding it by format tag.

    Instances take no arguments when called, so they can be registered
    directly as a data source::

        engine.add_data_source(URLFetcher(url, "json"), key="weather")
    """

    def __init__(
        self,
        url: str,
        response_type: Union[str, ResponseType] = ResponseType.JSON,
        timeout: Optional[float] = 30,
        session: Optional[requests.Session] = None,
    ):
        if not url or not url.startswith(("http://", "https://")):
            raise ValueError(f"Unsupported URL for a data source: {url!r}")

        self.url = url
        self.response_type = (
            response_type.value
            if isinstance(response_type, ResponseType)
            else str(response_type).lower()
        )
        # Fail at registration, not on the first tick.
        self.decoder = DecoderRegistry.get(self.response_type)
        self.timeout = timeout
        self.session = session
        self.logger = logging.getLogger(
            f"{self.__class__.__module__}.{self.__class__.__name__}"
        )

    def download(self) -> bytes:
        """
        Download the URL body.

        Raises:
            requests.HTTPError: On a non-2xx response
        """
        get = self.session.get if self.session else requests.get
        response = get(self.url, timeout=self.timeout)
        response.raise_for_status()
        return response.content

    def __call__(self) -> Any:
        self.logger.debug(f"Downloading {self.url} as {self.response_type}")
        content = self.download()
        return self.decoder(content)

    def describe(self) -> str:
        return f"{self.response_type}:{self.url}"

    def __repr__(self) -> str:
        return f"URLFetcher({self.url!r}, {self.response_type!r})"
