"""Redirect following."""

from __future__ import annotations

import dataclasses
import logging
import typing as t

from aiohttp import hdrs
from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from .errors import RequestLiteError
from .query import SUPPORTED_SCHEMES

if t.TYPE_CHECKING:
    from .transport import Hop, RawResponse

_logger = logging.getLogger("requestlite")

REDIRECT_STATUSES = frozenset({301, 302, 303})

# Headers that describe a body and go away with it
_BODY_HEADERS = (hdrs.CONTENT_TYPE, hdrs.CONTENT_LENGTH, hdrs.CONTENT_ENCODING)


class RedirectCoordinator:
    """Decide whether a response leads to another hop.

    Only 301, 302 and 303 responses carrying a Location header are followed.
    A 303 is re-issued as a body-less GET unless ``rewrite_303_to_get`` is
    False; 301 and 302 keep the original method and body.

    Attributes:
        remaining: Redirects that may still be followed.
        rewrite_303_to_get: Whether a 303 switches the method to GET.

    """

    def __init__(self, max_redirects: int, *, rewrite_303_to_get: bool = True) -> None:
        """Initialize the coordinator with a fresh redirect budget."""
        self.remaining = max_redirects
        self.rewrite_303_to_get = rewrite_303_to_get

    def next_hop(self, hop: Hop, response: RawResponse) -> Hop | None:
        """Return the hop to send next, or None if ``response`` is final.

        Args:
            hop: The hop that produced ``response``.
            response: The response to inspect.

        Returns:
            Hop or None: The follow-up hop for a redirect.

        Raises:
            RequestLiteError: If a redirect is requested after the budget is
                spent, or points at a non-http(s) location.

        """
        location = response.headers.get(hdrs.LOCATION)
        if response.status not in REDIRECT_STATUSES or not location:
            return None

        if self.remaining <= 0:
            msg = f"Too many redirects: {response.status} to {location} exceeds the redirect limit"
            raise RequestLiteError(msg, url=str(hop.url))
        self.remaining -= 1

        try:
            target = hop.url.join(URL(location))
        except ValueError as e:
            msg = f"Invalid redirect location: {location}"
            raise RequestLiteError(msg, cause=e, url=str(hop.url)) from e
        if target.scheme not in SUPPORTED_SCHEMES or not target.host:
            msg = f"Unsupported redirect location: {location}"
            raise RequestLiteError(msg, url=str(hop.url))

        headers = CIMultiDict(hop.headers)
        method, payload = hop.method, hop.payload
        if response.status == 303 and self.rewrite_303_to_get and method != hdrs.METH_HEAD:  # noqa: PLR2004
            method, payload = hdrs.METH_GET, None
            for name in _BODY_HEADERS:
                headers.popall(name, None)
        # Credentials stay with the origin they were given for
        if target.origin() != hop.url.origin():
            headers.popall(hdrs.AUTHORIZATION, None)

        _logger.debug(
            "Following %d redirect: %s %s -> %s %s",
            response.status,
            hop.method,
            hop.url,
            method,
            target,
        )
        return dataclasses.replace(
            hop,
            method=method,
            url=target.with_fragment(None),
            headers=CIMultiDictProxy(headers),
            payload=payload,
        )
