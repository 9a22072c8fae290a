"""Request and response types for requestlite.

This module provides the immutable request configuration produced by the
option normalizer, the tagged body variants it selects between, and the
full-response envelope returned by ``Request.run()``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from aiohttp import hdrs

if TYPE_CHECKING:
    from collections.abc import Mapping
    from os import PathLike

    from multidict import CIMultiDictProxy
    from yarl import URL

    from .sinks import DebugSink

# Methods accepted by the normalizer, spelled as aiohttp's constants
HTTP_METHODS = frozenset(
    {
        hdrs.METH_GET,
        hdrs.METH_POST,
        hdrs.METH_PUT,
        hdrs.METH_PATCH,
        hdrs.METH_DELETE,
        hdrs.METH_HEAD,
        hdrs.METH_OPTIONS,
        hdrs.METH_TRACE,
    },
)


class Compression(enum.Enum):
    """Content codings a request may ask the server to apply.

    Attributes:
        GZIP: gzip container around a deflate stream.
        DEFLATE: zlib-wrapped (or raw) deflate stream.

    """

    GZIP = "gzip"
    DEFLATE = "deflate"


@dataclass(frozen=True)
class Auth:
    """HTTP Basic credentials."""

    user: str
    password: str


@dataclass(frozen=True)
class JsonBody:
    """A body serialized as JSON."""

    value: Any


@dataclass(frozen=True)
class FormBody:
    """A body serialized as ``application/x-www-form-urlencoded``."""

    fields: Mapping[str, Any]


@dataclass(frozen=True)
class RawBody:
    """A body sent exactly as given."""

    data: bytes


Body = JsonBody | FormBody | RawBody


@dataclass(frozen=True)
class TLSOptions:
    """Client certificate and trust settings for HTTPS hops.

    Attributes:
        cert: Path to the PEM client certificate (may also hold the key).
        key: Path to the PEM private key, when separate from ``cert``.
        passphrase: Password protecting the private key.
        ca: Path to a CA bundle used instead of the system trust store.

    """

    cert: str | PathLike[str] | None = None
    key: str | PathLike[str] | None = None
    passphrase: str | None = None
    ca: str | PathLike[str] | None = None


@dataclass(frozen=True)
class RequestConfig:
    """Validated, immutable configuration for one request.

    Built once by ``normalize_options`` from the merged defaults and the
    caller's options. Every redirect hop is derived from it afresh.

    Attributes:
        method: Upper-cased HTTP method.
        url: Absolute target URL with the query string already merged in.
        headers: Outgoing headers, including derived auth/accept headers.
        body: Which encoding governs the body, or None for no body.
        auth: Basic credentials, if any.
        json: Whether the response is decoded as JSON.
        compression: Content codings requested from the server.
        max_redirects: How many 301-303 redirects may be followed.
        resolve_with_full_response: Return a FullResponse instead of the body.
        verbose: Send checkpoint diagnostics to ``logger``.
        logger: Sink receiving verbose diagnostics.
        timeout: Per-hop timeout in seconds. None means no timeout.
        tls: Client certificate settings for HTTPS.
        rewrite_303_to_get: Follow a 303 with GET and no body.

    """

    method: str
    url: URL
    headers: CIMultiDictProxy[str]
    body: Body | None
    auth: Auth | None
    json: bool
    compression: tuple[Compression, ...] | None
    max_redirects: int
    resolve_with_full_response: bool
    verbose: bool
    logger: DebugSink
    timeout: float | None = None
    tls: TLSOptions | None = None
    rewrite_303_to_get: bool = True


@dataclass(frozen=True)
class FullResponse:
    """Status, headers and decoded body of the final response.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers.
        body: Decoded body: JSON value, bytes, or None.
        url: URL of the final hop after redirects.

    """

    status_code: int
    headers: CIMultiDictProxy[str]
    body: Any
    url: URL
