"""Error hierarchy for requestlite.

Every failed request surfaces exactly one of these exceptions. Validation
problems are raised synchronously while constructing a request; the other
kinds are raised from ``Request.run()``.
"""

from __future__ import annotations

import http
import typing as t

if t.TYPE_CHECKING:
    from multidict import CIMultiDictProxy


class RequestLiteError(Exception):
    """Base exception for all requestlite errors.

    Also raised as-is when a request still wants to redirect after its
    redirect budget has been spent.

    Attributes:
        message: Human-readable error description.
        cause: The original exception that caused this error.
        url: The URL that was being requested when the error occurred.

    """

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize RequestLiteError.

        Args:
            message: Human-readable error description.
            cause: The original exception that caused this error.
            url: The URL that was being requested when the error occurred.

        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.url = url

    def __str__(self) -> str:
        """Return a string representation of the error."""
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")
        if self.cause:
            parts.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")
        return " | ".join(parts)


class ValidationError(RequestLiteError, TypeError):
    """Malformed request input, raised before any network activity."""


class ConnectionError(RequestLiteError):  # noqa: A001
    """The transport failed: client abort, server abort, or a socket error."""


class HTTPError(RequestLiteError):
    """The final response carried a 4xx or 5xx status.

    Attributes:
        status_code: HTTP status code of the final response.
        headers: Response headers.
        body: Response body bytes, decompressed when possible.

    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        headers: CIMultiDictProxy[str] | None = None,
        body: bytes = b"",
        cause: BaseException | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize HTTPError.

        Args:
            message: Human-readable error description.
            status_code: HTTP status code.
            headers: Response headers.
            body: Response body.
            cause: The original exception that caused this error.
            url: The URL that produced the response.

        """
        super().__init__(message, cause=cause, url=url)
        self.status_code = status_code
        self.headers = headers
        self.body = body

    @classmethod
    def from_status(cls, status_code: int, **kwargs: t.Any) -> HTTPError:
        """Build an error whose message names the status and its reason phrase."""
        try:
            reason = http.HTTPStatus(status_code).phrase
        except ValueError:
            reason = "Unknown status"
        return cls(f"HTTP error {status_code}: {reason}", status_code=status_code, **kwargs)

    def __str__(self) -> str:
        """Return a string representation of the error."""
        parts = [self.message, f"Status: {self.status_code}"]
        if self.url:
            parts.append(f"URL: {self.url}")
        return " | ".join(parts)


class ParseError(RequestLiteError):
    """The response body could not be decoded as requested.

    Attributes:
        body: The undecoded response body.

    """

    def __init__(
        self,
        message: str,
        *,
        body: bytes = b"",
        cause: BaseException | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize ParseError.

        Args:
            message: Human-readable error description.
            body: The raw response body.
            cause: The decoding exception.
            url: The URL that produced the response.

        """
        super().__init__(message, cause=cause, url=url)
        self.body = body
