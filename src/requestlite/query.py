"""URL validation and query string serialization."""

from __future__ import annotations

import ipaddress
import re
import typing as t
from urllib.parse import quote

from yarl import URL

from .errors import ValidationError

SUPPORTED_SCHEMES = frozenset({"http", "https"})

_HOSTNAME_RE = re.compile(r"[A-Za-z0-9_](?:[A-Za-z0-9_-]*[A-Za-z0-9_])?(?:\.[A-Za-z0-9_](?:[A-Za-z0-9_-]*[A-Za-z0-9_])?)*\.?")

# Characters JavaScript's encodeURIComponent leaves alone
_SAFE = "!~*'()"


def _is_valid_host(host: str) -> bool:
    """Return whether ``host`` is an IP address or a syntactically valid hostname."""
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return _HOSTNAME_RE.fullmatch(host) is not None
    return True


def parse_url(raw: str | URL) -> URL:
    """Parse and validate an absolute http(s) URL.

    Args:
        raw: The URL as given by the caller.

    Returns:
        URL: The parsed URL.

    Raises:
        ValidationError: If the URL has no protocol, an unsupported protocol,
            or a malformed host.

    """
    if isinstance(raw, URL):
        url = raw
    elif isinstance(raw, str):
        try:
            url = URL(raw)
        except (TypeError, ValueError) as e:
            msg = f"Invalid URL: {raw}"
            raise ValidationError(msg, cause=e, url=raw) from e
    else:
        msg = f"url must be a string, got {type(raw).__name__}"
        raise ValidationError(msg)

    if not url.scheme:
        msg = f"Invalid URL, no protocol given: {raw}"
        raise ValidationError(msg, url=str(raw))
    if url.scheme not in SUPPORTED_SCHEMES:
        msg = f"Unsupported protocol '{url.scheme}', expected http or https"
        raise ValidationError(msg, url=str(raw))
    if not url.raw_host or not _is_valid_host(url.raw_host):
        msg = f"Invalid URL host: {raw}"
        raise ValidationError(msg, url=str(raw))
    return url


def stringify(value: t.Any) -> str:
    """Render a scalar query value the way browsers and JSON APIs expect.

    Booleans become ``true``/``false``, integral floats lose their ``.0`` and
    None becomes the empty string so the key is still sent.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def query_pairs(params: t.Mapping[str, t.Any]) -> list[tuple[str, str]]:
    """Flatten a parameter mapping into ordered key/value pairs.

    Lists and tuples expand into one pair per element, in order.

    Args:
        params: Query or form parameters.

    Returns:
        list: ``(key, value)`` string pairs.

    Raises:
        ValidationError: If a value is a mapping or a nested list, which
            have no flat string form.

    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        items = value if isinstance(value, (list, tuple)) else (value,)
        for item in items:
            if isinstance(item, (t.Mapping, list, tuple, set)):
                msg = f"Parameter {key!r} must be a scalar or a list of scalars, got {type(item).__name__}"
                raise ValidationError(msg)
            pairs.append((str(key), stringify(item)))
    return pairs


def encode_query(params: t.Mapping[str, t.Any]) -> str:
    """Serialize parameters into a percent-encoded query string."""
    return "&".join(
        f"{quote(key, safe=_SAFE)}={quote(value, safe=_SAFE)}"
        for key, value in query_pairs(params)
    )


def build_url(url: URL, qs: t.Mapping[str, t.Any] | None = None) -> URL:
    """Append serialized parameters to the URL's existing query.

    The existing raw query, valueless keys included, is kept verbatim.
    Fragments are dropped since they are never sent to the server.

    Args:
        url: A URL returned by ``parse_url``.
        qs: Parameters to append.

    Returns:
        URL: The target URL for the request.

    Raises:
        ValidationError: If the resulting URL no longer has a valid host.

    """
    extra = encode_query(qs) if qs else ""
    query = "&".join(part for part in (url.raw_query_string, extra) if part)
    base = str(url.with_query(None).with_fragment(None))
    try:
        built = URL(f"{base}?{query}" if query else base, encoded=True)
    except ValueError as e:
        msg = f"Invalid URL after adding query parameters: {base}"
        raise ValidationError(msg, cause=e, url=base) from e
    if not built.raw_host or not _is_valid_host(built.raw_host):
        msg = f"Invalid URL host: {built}"
        raise ValidationError(msg, url=str(built))
    return built
