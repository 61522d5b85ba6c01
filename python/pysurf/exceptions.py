"""Exception classes."""

from typing import Any


class PySurfError(Exception):
    """Base class for all pysurf errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Internally initialized."""
        super().__init__(message)
        self.message = message
        self.details = details


class RequestError(PySurfError):
    """Error while processing a request. Raised by the transport or by middleware."""


class ConnectError(RequestError):
    """Error while connecting to the server."""


class ConnectTimeoutError(ConnectError):
    """Timeout while connecting to the server."""


class ReadTimeoutError(RequestError):
    """Timeout while waiting for or reading the response."""


class StatusError(RequestError):
    """Error due to HTTP 4xx or 5xx status code. Raised when `error_for_status` is enabled."""


class RedirectError(RequestError):
    """Error while following a redirect."""


class TooManyRedirectsError(RedirectError):
    """The redirect limit was reached before a final response was received."""


class BuilderError(PySurfError, ValueError):
    """Error while building a client, config, request or response."""


class InvalidHeaderError(BuilderError):
    """Header name or value cannot be represented in an HTTP message."""


class DecodeError(PySurfError):
    """Error while decoding the response body."""


class BodyConsumedError(PySurfError, RuntimeError):
    """A single-pass body stream was already consumed."""


class ClientClosedError(PySurfError, RuntimeError):
    """The client was closed and cannot send requests."""
