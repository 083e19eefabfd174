"""Error types raised and reported by the console."""

from __future__ import annotations


class ConsoleError(Exception):
    """Base class for console errors."""


class FetchError(ConsoleError):
    """A request to the backend did not produce a usable payload."""


class NetworkUnreachable(FetchError):
    """The transport could not reach the backend (refused, DNS, timeout)."""


class BadResponse(FetchError):
    """The backend answered, but with a failure status or an unexpected shape."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class HttpError(BadResponse):
    """The backend returned a non-success HTTP status."""

    def __init__(self, status: int, message: str | None = None) -> None:
        super().__init__(message or f"Backend returned HTTP {status}", status=status)


class MalformedRecord(ConsoleError):
    """A single flow, device, host or log record could not be parsed."""


class SessionBusy(ConsoleError):
    """A scan was requested while another scan is still running."""
