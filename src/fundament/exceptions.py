"""
Error taxonomy for Fundament.

Registry-level conflicts are raised by the registries themselves and turned
into ``None`` results by the :class:`~fundament.engine.Fundament` facade.
"""


class FundamentError(Exception):
    """
    Base class for all Fundament errors.
    """

    pass


class DuplicateKeyError(FundamentError, ValueError):
    """
    Raised when a data source is registered under a key that is already in use.
    """

    def __init__(self, key: str):
        super().__init__(f"Data source '{key}' is already registered")
        self.key = key


class DuplicateListenerError(FundamentError, ValueError):
    """
    Raised when a listener id collides and overwriting is disabled.
    """

    def __init__(self, listener_id: str):
        super().__init__(f"Listener '{listener_id}' already exists")
        self.listener_id = listener_id


class UnknownResponseTypeError(FundamentError, ValueError):
    """
    Raised when a URL data source names a format without a registered decoder.
    """

    def __init__(self, response_type: str, available=None):
        message = f"Unknown response type '{response_type}'"
        if available:
            message += f"; available: {', '.join(available)}"
        super().__init__(message)
        self.response_type = response_type
