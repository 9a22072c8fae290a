"""Mapping of transport outcomes and status codes onto error kinds."""

from __future__ import annotations

import typing as t

from aiohttp import hdrs

from .decoder import decompress
from .errors import ConnectionError, HTTPError, ParseError  # noqa: A004
from .transport import TransportEvent

if t.TYPE_CHECKING:
    from .transport import RawResponse, Settlement

CLIENT_ABORT_MESSAGE = "Connection failed: Client aborted the request"
SERVER_ABORT_MESSAGE = "Connection failed: Server aborted the request"


def connection_error(settlement: Settlement, url: str | None = None) -> ConnectionError:
    """Build the ConnectionError for a hop that ended without a response.

    Args:
        settlement: A non-response settlement.
        url: The URL of the hop.

    Returns:
        ConnectionError: Message distinguishes client abort, server abort,
        and other failures (which carry the cause's own message).

    """
    cause = settlement.cause
    if settlement.event is TransportEvent.ABORT:
        return ConnectionError(CLIENT_ABORT_MESSAGE, cause=cause, url=url)
    if settlement.event is TransportEvent.ABORTED:
        return ConnectionError(SERVER_ABORT_MESSAGE, cause=cause, url=url)
    detail = (str(cause) or type(cause).__name__) if cause is not None else "Unknown error"
    return ConnectionError(f"Connection failed: {detail}", cause=cause, url=url)


def is_error_status(status: int) -> bool:
    """Whether ``status`` is a 4xx or 5xx code."""
    return 400 <= status <= 599  # noqa: PLR2004


def raise_for_status(response: RawResponse) -> None:
    """Raise HTTPError if the final response has a 4xx or 5xx status.

    The error body is decompressed when possible so callers can read it.

    Raises:
        HTTPError: For error statuses.

    """
    if not is_error_status(response.status):
        return
    try:
        body = decompress(response.body, response.headers.get(hdrs.CONTENT_ENCODING))
    except ParseError:
        body = response.body
    raise HTTPError.from_status(
        response.status,
        headers=response.headers,
        body=body,
        url=str(response.url),
    )
