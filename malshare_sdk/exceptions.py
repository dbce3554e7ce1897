"""Exception hierarchy for the MalShare SDK."""

from __future__ import annotations


class MalShareError(Exception):
    """Base exception for all MalShare SDK errors."""


class TransportError(MalShareError):
    """Raised when an HTTP round trip to the MalShare API fails.

    Covers connection failures, interrupted reads, timeouts, and status codes
    outside ``[100, 399]``.

    Attributes:
        url: The requested URL.
        status_code: The observed status code, or ``None`` when no response
            was received.
    """

    def __init__(self, message: str, url: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MalformedResponseError(MalShareError):
    """Raised when a response body does not have the shape an action expects.

    Attributes:
        action: The remote action whose response could not be decoded.
        field: The offending field or row, when one can be named.
    """

    def __init__(self, message: str, action: str = "", field: str | None = None) -> None:
        super().__init__(message)
        self.action = action
        self.field = field


class NotFoundError(MalShareError, FileNotFoundError):
    """Raised when a local path given to an upload does not exist."""
