"""Transport layer for requestlite.

A transport performs one hop and reports how it ended through an
``Exchange``: a response, a client-side abort, a server-side abort, or an
error. The exchange accepts the first report and ignores the rest, so the
executor always sees exactly one outcome per hop.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import typing as t
from dataclasses import dataclass

import aiohttp

if t.TYPE_CHECKING:
    import ssl

    from multidict import CIMultiDictProxy
    from yarl import URL

_logger = logging.getLogger("requestlite")


class TransportEvent(enum.Enum):
    """Terminal events a hop can end with.

    Attributes:
        RESPONSE: A full response was received.
        ABORT: The client gave up on the request.
        ABORTED: The server closed the connection mid-exchange.
        ERROR: Any other transport failure.

    """

    RESPONSE = "response"
    ABORT = "abort"
    ABORTED = "aborted"
    ERROR = "error"


@dataclass(frozen=True)
class Hop:
    """One transport-level request within an exchange."""

    method: str
    url: URL
    headers: CIMultiDictProxy[str]
    payload: bytes | None = None
    ssl_context: ssl.SSLContext | None = None
    timeout: float | None = None


@dataclass(frozen=True)
class RawResponse:
    """A fully buffered, still encoded response."""

    status: int
    reason: str
    headers: CIMultiDictProxy[str]
    body: bytes
    url: URL


@dataclass(frozen=True)
class Settlement:
    """How a hop ended: the event plus its response or cause."""

    event: TransportEvent
    response: RawResponse | None = None
    cause: BaseException | None = None


class Exchange:
    """Settle-once channel between a transport and the executor."""

    def __init__(self) -> None:
        """Create the exchange on the running event loop."""
        self._future: asyncio.Future[Settlement] = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        """Whether a terminal event has already been recorded."""
        return self._future.done()

    def response(self, response: RawResponse) -> None:
        """Record a completed response."""
        self._settle(Settlement(TransportEvent.RESPONSE, response=response))

    def abort(self, cause: BaseException | None = None) -> None:
        """Record that the client aborted the request."""
        self._settle(Settlement(TransportEvent.ABORT, cause=cause))

    def aborted(self, cause: BaseException | None = None) -> None:
        """Record that the server aborted the request."""
        self._settle(Settlement(TransportEvent.ABORTED, cause=cause))

    def error(self, cause: BaseException) -> None:
        """Record any other transport failure."""
        self._settle(Settlement(TransportEvent.ERROR, cause=cause))

    def _settle(self, settlement: Settlement) -> None:
        """Record the first terminal event and ignore any later ones."""
        if self._future.done():
            _logger.debug("Ignoring %s event on a settled exchange", settlement.event.value)
            return
        self._future.set_result(settlement)

    async def wait(self) -> Settlement:
        """Wait for the terminal event."""
        return await self._future


class Transport(t.Protocol):
    """Performs a hop and reports its outcome on the exchange."""

    async def send(self, hop: Hop, exchange: Exchange) -> None:  # noqa: D102
        ...


class AiohttpTransport:
    """Transport backed by a fresh ``aiohttp.ClientSession`` per hop.

    Redirects and decompression are left to the caller: the session never
    follows redirects and hands back the body exactly as it was sent.
    """

    async def send(self, hop: Hop, exchange: Exchange) -> None:
        """Send ``hop`` and report the buffered response or the failure.

        Args:
            hop: The request to send.
            exchange: Channel receiving the outcome.

        """
        timeout = aiohttp.ClientTimeout(total=hop.timeout)
        kwargs: dict[str, t.Any] = {
            "headers": hop.headers,
            "data": hop.payload,
            "allow_redirects": False,
        }
        if hop.ssl_context is not None:
            kwargs["ssl"] = hop.ssl_context

        try:
            async with (
                aiohttp.ClientSession(auto_decompress=False, timeout=timeout) as session,
                session.request(hop.method, hop.url, **kwargs) as response,
            ):
                body = await response.read()
                raw = RawResponse(
                    status=response.status,
                    reason=response.reason or "",
                    headers=response.headers,
                    body=body,
                    url=response.url,
                )
        except asyncio.CancelledError:
            exchange.abort()
            raise
        except TimeoutError as e:
            if hop.timeout is None:
                exchange.error(e)
            else:
                exchange.error(TimeoutError(f"Request timed out after {hop.timeout:g} seconds"))
        except (aiohttp.ServerDisconnectedError, aiohttp.ClientPayloadError) as e:
            exchange.aborted(e)
        except (aiohttp.ClientError, OSError) as e:
            exchange.error(e)
        else:
            exchange.response(raw)
