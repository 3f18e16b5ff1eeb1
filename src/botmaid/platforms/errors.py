"""Exception types raised by platform adapters."""

from typing import Optional


class PlatformError(Exception):
    """Base class for all platform adapter errors."""

    pass


class TransportError(PlatformError):
    """Raised when the connection to a platform fails.

    Covers refused connections, closed streams and HTTP failures. Ingestion
    loops catch it and retry after a fixed delay.
    """

    pass


class DecodeError(PlatformError):
    """Raised when a raw platform payload cannot be turned into an event."""

    pass


class APIError(PlatformError):
    """Raised when a platform answers an RPC call with a failure envelope."""

    def __init__(
        self,
        api: str,
        retcode: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        self.api = api
        self.retcode = retcode
        self.message = message
        super().__init__(
            f"API `{api}` returned failure, retcode: {retcode!r}, error: {message!r}"
        )


class EmptyResponseError(APIError):
    """Raised when a non-failed envelope carries no data."""

    def __init__(self, api: str) -> None:
        super().__init__(api)
        self.args = (f"API `{api}` returned empty data",)


class StreamClosedError(PlatformError):
    """Raised when pushing onto an event queue that was already closed."""

    pass
