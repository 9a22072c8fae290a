"""Response body decompression and parsing."""

from __future__ import annotations

import json
import logging
import typing as t
import zlib

from aiohttp import hdrs

from .errors import ParseError

_logger = logging.getLogger("requestlite")


def _gunzip(data: bytes) -> bytes:
    """Decode a gzip member."""
    # 16 + MAX_WBITS expects a gzip header and trailer
    return zlib.decompress(data, 16 + zlib.MAX_WBITS)


def _inflate(data: bytes) -> bytes:
    """Decode deflate data, zlib-wrapped or raw."""
    # Servers disagree on whether "deflate" means zlib-wrapped or raw deflate
    try:
        return zlib.decompress(data)
    except zlib.error:
        return zlib.decompress(data, -zlib.MAX_WBITS)


_DECODERS: dict[str, t.Callable[[bytes], bytes]] = {
    "gzip": _gunzip,
    "x-gzip": _gunzip,
    "deflate": _inflate,
}


def decompress(data: bytes, content_encoding: str | None, *, url: str | None = None) -> bytes:
    """Undo the content codings listed in a Content-Encoding header.

    Codings are removed in reverse order of application. ``identity`` is
    skipped; codings this module cannot decode leave the data untouched.

    Args:
        data: The body as received.
        content_encoding: Value of the Content-Encoding header.
        url: URL of the response, for error context.

    Returns:
        bytes: The decoded body.

    Raises:
        ParseError: If the body is not valid for its declared coding.

    """
    if not data or not content_encoding:
        return data
    codings = [c.strip().lower() for c in content_encoding.split(",") if c.strip()]
    for coding in reversed(codings):
        if coding == "identity":
            continue
        decoder = _DECODERS.get(coding)
        if decoder is None:
            _logger.debug("Leaving unsupported content coding %r undecoded", coding)
            return data
        try:
            data = decoder(data)
        except zlib.error as e:
            msg = f"Failed to decompress {coding} response"
            raise ParseError(msg, body=data, cause=e, url=url) from e
    return data


def decode_body(
    data: bytes,
    *,
    method: str,
    json_mode: bool,
    url: str | None = None,
) -> t.Any:
    """Turn a decompressed body into the value returned to the caller.

    Args:
        data: Decompressed response body.
        method: Method of the final hop.
        json_mode: Whether the caller asked for JSON decoding.
        url: URL of the response, for error context.

    Returns:
        None for HEAD responses and for empty bodies in JSON mode, the parsed
        JSON value in JSON mode, and the bytes otherwise.

    Raises:
        ParseError: If JSON decoding was requested and the body is not JSON.

    """
    if method == hdrs.METH_HEAD:
        return None
    if not json_mode:
        return data
    if not data.strip():
        return None
    try:
        return json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = "Failed to parse JSON response"
        raise ParseError(msg, body=data, cause=e, url=url) from e
