"""Core requestlite implementation."""

from __future__ import annotations

import asyncio
import logging
import ssl
import typing as t

from aiohttp import hdrs
from multidict import CIMultiDict, CIMultiDictProxy

from .body import apply_content_type, encode_body
from .classifier import connection_error, is_error_status, raise_for_status
from .decoder import decode_body, decompress
from .errors import ValidationError
from .options import normalize_options
from .redirect import RedirectCoordinator
from .transport import AiohttpTransport, Exchange, Hop, TransportEvent
from .types import FullResponse

if t.TYPE_CHECKING:
    from yarl import URL

    from .transport import RawResponse, Settlement, Transport
    from .types import RequestConfig, TLSOptions

# Module-level logger for structured logging
_logger = logging.getLogger("requestlite")


def _ssl_context(tls: TLSOptions | None) -> ssl.SSLContext | None:
    """Build the client SSL context for HTTPS hops.

    Args:
        tls: Certificate settings from the request options.

    Returns:
        ssl.SSLContext or None: None when the default context will do.

    Raises:
        ValidationError: If the certificate or CA files cannot be loaded.

    """
    if tls is None:
        return None
    try:
        context = ssl.create_default_context(cafile=tls.ca)
        if tls.cert is not None:
            context.load_cert_chain(tls.cert, tls.key, password=tls.passphrase)
    except (OSError, ssl.SSLError) as e:
        msg = f"Failed to load TLS certificates: {e}"
        raise ValidationError(msg, cause=e) from e
    return context


def _settle_from_task(exchange: Exchange, task: asyncio.Task[None]) -> None:
    """Settle the exchange from the outcome of the transport task.

    A transport that exits without reporting, raises, or is cancelled still
    settles the exchange, so ``run()`` never waits forever.

    Args:
        exchange: The exchange of the hop.
        task: The finished transport task.

    """
    if task.cancelled():
        exchange.abort()
        return
    exc = task.exception()
    if exc is not None:
        exchange.error(exc)
    elif not exchange.settled:
        exchange.error(RuntimeError("Transport finished without a response"))


class Request:
    """A single HTTP(S) request, validated on construction and run on demand.

    Construction merges the layered defaults with ``options`` and validates
    the result; any problem raises ``ValidationError`` immediately. ``run()``
    then performs the exchange, following redirects, and either returns the
    decoded body (or a ``FullResponse``) or raises exactly one error.

    Attributes:
        config: The immutable request configuration.

    Example:
        ```python
        request = Request("POST", "https://api.example.com/items", {"json": True, "body": {"a": 1}})
        created = await request.run()
        ```

    """

    def __init__(
        self,
        method: str,
        url: str | URL,
        options: t.Mapping[str, t.Any] | None = None,
        *,
        transport: Transport | None = None,
    ) -> None:
        """Validate the request.

        Args:
            method: HTTP method, case-insensitive.
            url: Absolute http(s) URL.
            options: Request options, merged over the effective defaults.
            transport: Transport performing each hop. Defaults to aiohttp.

        Raises:
            ValidationError: If the method, URL or options are malformed.

        """
        self.config: RequestConfig = normalize_options(method, url, options)
        self._encoded = encode_body(self.config.body)
        self._ssl_context = _ssl_context(self.config.tls)
        self._transport: Transport = transport or AiohttpTransport()

    def _first_hop(self) -> Hop:
        """Build the initial hop from the request configuration.

        Returns:
            Hop: The first exchange to perform, with Content-Type set from the
            encoded body unless the caller provided one.

        """
        headers = CIMultiDict(self.config.headers)
        apply_content_type(headers, self._encoded)
        return Hop(
            method=self.config.method,
            url=self.config.url,
            headers=CIMultiDictProxy(headers),
            payload=self._encoded.payload if self._encoded else None,
            ssl_context=self._ssl_context,
            timeout=self.config.timeout,
        )

    def _checkpoint(self, key: str, value: t.Any) -> None:
        """Pass a diagnostic checkpoint to the sink when verbose is enabled."""
        if self.config.verbose:
            self.config.logger.debug(key, value)

    async def _send(self, hop: Hop) -> Settlement:
        """Run one hop on the transport and wait for its single outcome."""
        self._checkpoint("Request", f"{hop.method} {hop.url}")
        self._checkpoint("Headers", dict(hop.headers))
        if hop.payload is not None:
            self._checkpoint("Body", hop.payload.decode(errors="replace"))

        exchange = Exchange()
        sender = asyncio.create_task(self._transport.send(hop, exchange))
        sender.add_done_callback(lambda task: _settle_from_task(exchange, task))
        try:
            settlement = await exchange.wait()
        except asyncio.CancelledError:
            sender.cancel()
            raise
        # The next hop must not start before this one has finished
        await asyncio.wait({sender})
        return settlement

    def _result(self, response: RawResponse, method: str) -> t.Any:
        """Decode the final response into the value ``run()`` returns.

        Args:
            response: The last response of the redirect chain.
            method: Method of the hop that produced it.

        Returns:
            The decoded body, or a FullResponse wrapping it.

        Raises:
            ParseError: If the body cannot be decompressed or parsed.

        """
        url_str = str(response.url)
        data = decompress(response.body, response.headers.get(hdrs.CONTENT_ENCODING), url=url_str)
        body = decode_body(data, method=method, json_mode=self.config.json, url=url_str)
        if self.config.resolve_with_full_response:
            return FullResponse(
                status_code=response.status,
                headers=response.headers,
                body=body,
                url=response.url,
            )
        return body

    async def run(self) -> t.Any:
        """Perform the request, following 301-303 redirects.

        Returns:
            The decoded body, or a FullResponse when
            ``resolve_with_full_response`` is set.

        Raises:
            ConnectionError: If the transport aborted or failed.
            HTTPError: If the final response has a 4xx or 5xx status.
            ParseError: If the body cannot be decoded as requested.
            RequestLiteError: If the redirect limit is exceeded.

        """
        hop = self._first_hop()
        redirects = RedirectCoordinator(
            self.config.max_redirects,
            rewrite_303_to_get=self.config.rewrite_303_to_get,
        )
        _logger.debug("Starting request: %s %s", hop.method, hop.url)

        while True:
            settlement = await self._send(hop)
            if settlement.event is not TransportEvent.RESPONSE or settlement.response is None:
                error = connection_error(settlement, str(hop.url))
                _logger.warning("Request error: %s %s -> %s", hop.method, hop.url, error.message)
                raise error

            response = settlement.response
            self._checkpoint("Response", f"{response.status} {response.reason}")
            self._checkpoint("Response headers", dict(response.headers))

            next_hop = redirects.next_hop(hop, response)
            if next_hop is None:
                break
            hop = next_hop

        if is_error_status(response.status):
            _logger.warning("Non-OK response: %s %s -> %d", hop.method, hop.url, response.status)
        raise_for_status(response)

        _logger.debug("Request completed: %s %s -> %d", hop.method, hop.url, response.status)
        return self._result(response, hop.method)


async def request(
    method: str,
    url: str | URL,
    options: t.Mapping[str, t.Any] | None = None,
) -> t.Any:
    """Build and run a request in one call.

    Args:
        method: HTTP method, case-insensitive.
        url: Absolute http(s) URL.
        options: Request options.

    Returns:
        The decoded body, or a FullResponse when
        ``resolve_with_full_response`` is set.

    """
    return await Request(method, url, options).run()
