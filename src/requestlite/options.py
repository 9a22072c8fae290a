"""Option normalization.

``normalize_options`` is the single point where loosely typed caller options
become a validated ``RequestConfig``. Every malformed input is reported here
as a ``ValidationError``, before any network activity.
"""

from __future__ import annotations

import logging
import os
import typing as t

import aiohttp
from aiohttp import hdrs
from multidict import CIMultiDict, CIMultiDictProxy

from .config import BUILTIN_DEFAULTS, canonical_keys, get_defaults, merge_layers
from .errors import ValidationError
from .query import build_url, parse_url
from .sinks import as_sink
from .types import (
    HTTP_METHODS,
    Auth,
    Compression,
    FormBody,
    JsonBody,
    RawBody,
    RequestConfig,
    TLSOptions,
)

if t.TYPE_CHECKING:
    from yarl import URL

    from .types import Body

_logger = logging.getLogger("requestlite")

OPTION_KEYS = frozenset(
    {
        "json",
        "form",
        "body",
        "qs",
        "headers",
        "auth",
        "compression",
        "max_redirects",
        "resolve_with_full_response",
        "verbose",
        "logger",
        "timeout",
        "cert",
        "key",
        "passphrase",
        "ca",
        "rewrite_303_to_get",
    },
)


def _flag(options: t.Mapping[str, t.Any], name: str, default: bool = False) -> bool:  # noqa: FBT001, FBT002
    """Read a boolean option.

    Args:
        options: Merged options.
        name: Option key.
        default: Value used when the option is absent or None.

    Returns:
        bool: The flag value.

    Raises:
        ValidationError: If the value is not a boolean.

    """
    value = options.get(name, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        msg = f"{name} must be a boolean, got {type(value).__name__}"
        raise ValidationError(msg)
    return value


def _method(method: object) -> str:
    """Upper-case and check the HTTP method.

    Args:
        method: Method as given by the caller.

    Returns:
        str: One of ``HTTP_METHODS``.

    Raises:
        ValidationError: If the method is not a supported verb.

    """
    if not isinstance(method, str):
        msg = f"method must be a string, got {type(method).__name__}"
        raise ValidationError(msg)
    upper = method.upper()
    if upper not in HTTP_METHODS:
        msg = f"Unsupported HTTP method: {method}"
        raise ValidationError(msg)
    return upper


def _mapping(options: t.Mapping[str, t.Any], name: str) -> t.Mapping[str, t.Any] | None:
    """Read an option that must be a mapping when present.

    Args:
        options: Merged options.
        name: Option key.

    Returns:
        Mapping or None: The value, or None when absent.

    Raises:
        ValidationError: If the value is not a mapping.

    """
    value = options.get(name)
    if value is None:
        return None
    if not isinstance(value, t.Mapping):
        msg = f"{name} must be a mapping, got {type(value).__name__}"
        raise ValidationError(msg)
    return value


def _auth(value: object) -> Auth | None:
    """Validate the ``auth`` option.

    Args:
        value: None or a mapping with string ``user`` and ``password``.

    Returns:
        Auth or None: The credentials.

    Raises:
        ValidationError: If either field is missing or not a string.

    """
    if value is None:
        return None
    if not isinstance(value, t.Mapping):
        msg = f"auth must be a mapping with 'user' and 'password', got {type(value).__name__}"
        raise ValidationError(msg)
    user, password = value.get("user"), value.get("password")
    if not isinstance(user, str) or not isinstance(password, str):
        msg = "auth requires string 'user' and 'password' fields"
        raise ValidationError(msg)
    return Auth(user=user, password=password)


def _compression(value: object) -> tuple[Compression, ...] | None:
    """Validate the requested content codings.

    Args:
        value: None or a list of coding names.

    Returns:
        tuple or None: The codings, in request order.

    Raises:
        ValidationError: If the value is not a list or names an unsupported
            coding.

    """
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        msg = f"compression must be a list, got {type(value).__name__}"
        raise ValidationError(msg)
    codings: list[Compression] = []
    for item in value:
        try:
            codings.append(item if isinstance(item, Compression) else Compression(item))
        except ValueError as e:
            supported = ", ".join(c.value for c in Compression)
            msg = f"Unsupported compression {item!r}, expected one of: {supported}"
            raise ValidationError(msg, cause=e) from e
    return tuple(codings)


def _max_redirects(value: object) -> int:
    """Check that the redirect budget is a non-negative integer."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        msg = f"max_redirects must be a non-negative integer, got {value!r}"
        raise ValidationError(msg)
    return value


def _timeout(value: object) -> float | None:
    """Check that the per-hop timeout is a positive number of seconds."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        msg = f"timeout must be a positive number of seconds, got {value!r}"
        raise ValidationError(msg)
    return float(value)


def _path(options: t.Mapping[str, t.Any], name: str) -> str | os.PathLike[str] | None:
    """Read an option holding a file path.

    Args:
        options: Merged options.
        name: Option key.

    Returns:
        str, PathLike or None: The path, or None when absent.

    Raises:
        ValidationError: If the value is not a path.

    """
    value = options.get(name)
    if value is None or isinstance(value, (str, os.PathLike)):
        return value
    msg = f"{name} must be a file path, got {type(value).__name__}"
    raise ValidationError(msg)


def _tls(options: t.Mapping[str, t.Any]) -> TLSOptions | None:
    """Collect the certificate options.

    Files are only checked for type here; they are loaded when the request
    builds its SSL context.

    Args:
        options: Merged options.

    Returns:
        TLSOptions or None: None when no certificate option is set.

    Raises:
        ValidationError: If a value has the wrong type or ``key`` is given
            without ``cert``.

    """
    cert, key, ca = _path(options, "cert"), _path(options, "key"), _path(options, "ca")
    passphrase = options.get("passphrase")
    if passphrase is not None and not isinstance(passphrase, str):
        msg = f"passphrase must be a string, got {type(passphrase).__name__}"
        raise ValidationError(msg)
    if cert is None and key is None and ca is None:
        return None
    if key is not None and cert is None:
        msg = "key requires cert"
        raise ValidationError(msg)
    return TLSOptions(cert=cert, key=key, passphrase=passphrase, ca=ca)


def _body(options: t.Mapping[str, t.Any], *, json_mode: bool) -> Body | None:
    """Pick the body variant.

    ``form`` wins over JSON mode and cannot be combined with ``body``. In
    JSON mode any ``body`` value is serialized; otherwise it must already be
    text or bytes.

    Args:
        options: Merged options.
        json_mode: Whether the ``json`` option is set.

    Returns:
        Body or None: The body to encode, or None.

    Raises:
        ValidationError: If the body options conflict or have the wrong type.

    """
    form = _mapping(options, "form")
    body = options.get("body")
    if form is not None:
        if body is not None:
            msg = "form and body cannot be used together"
            raise ValidationError(msg)
        return FormBody(fields=dict(form))
    if body is None:
        return None
    if json_mode:
        return JsonBody(value=body)
    if isinstance(body, (bytes, bytearray, memoryview)):
        return RawBody(data=bytes(body))
    if isinstance(body, str):
        return RawBody(data=body.encode())
    msg = f"body must be str or bytes unless json is enabled, got {type(body).__name__}"
    raise ValidationError(msg)


def _headers(
    options: t.Mapping[str, t.Any],
    *,
    auth: Auth | None,
    json_mode: bool,
    compression: tuple[Compression, ...] | None,
) -> CIMultiDictProxy[str]:
    """Build the request headers.

    Caller headers take precedence over the derived Authorization, Accept and
    Accept-Encoding headers.

    Args:
        options: Merged options.
        auth: Credentials for Basic authentication.
        json_mode: Whether to ask for a JSON response.
        compression: Content codings to accept.

    Returns:
        CIMultiDictProxy: Immutable, case-insensitive headers.

    Raises:
        ValidationError: If a header value is not a string or number, or the
            credentials cannot be encoded.

    """
    headers: CIMultiDict[str] = CIMultiDict()
    for name, value in (_mapping(options, "headers") or {}).items():
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            msg = f"header {name!r} must be a string or number, got {type(value).__name__}"
            raise ValidationError(msg)
        headers[name] = str(value)

    if auth is not None and hdrs.AUTHORIZATION not in headers:
        try:
            headers[hdrs.AUTHORIZATION] = aiohttp.encode_basic_auth(auth.user, auth.password)
        except ValueError as e:
            msg = f"Invalid auth: {e}"
            raise ValidationError(msg, cause=e) from e
    if json_mode:
        headers.setdefault(hdrs.ACCEPT, "application/json")
    # Responses are decompressed by the decoder, never by the transport
    if compression:
        headers.setdefault(hdrs.ACCEPT_ENCODING, ", ".join(c.value for c in compression))
    else:
        headers.setdefault(hdrs.ACCEPT_ENCODING, "identity")
    return CIMultiDictProxy(headers)


def normalize_options(
    method: str,
    url: str | URL,
    options: t.Mapping[str, t.Any] | None = None,
    *,
    defaults: t.Mapping[str, t.Any] | None = None,
) -> RequestConfig:
    """Validate caller options and merge them over the defaults.

    Args:
        method: HTTP method, case-insensitive.
        url: Absolute http(s) URL.
        options: Caller options. Unknown keys are rejected; ``maxRedirects``
            and ``resolveWithFullResponse`` are accepted as aliases.
        defaults: Effective defaults. Defaults to ``get_defaults()``.

    Returns:
        RequestConfig: The immutable request configuration.

    Raises:
        ValidationError: If any option is malformed.

    """
    if options is None:
        options = {}
    elif not isinstance(options, t.Mapping):
        msg = f"options must be a mapping, got {type(options).__name__}"
        raise ValidationError(msg)
    options = canonical_keys(options)
    unknown = set(options) - OPTION_KEYS
    if unknown:
        msg = f"Unknown option(s): {', '.join(sorted(map(str, unknown)))}"
        raise ValidationError(msg)

    base = get_defaults() if defaults is None else canonical_keys(defaults)
    ignored = set(base) - OPTION_KEYS
    if ignored:
        _logger.debug("Ignoring unknown default option(s): %s", ", ".join(sorted(ignored)))
    merged = merge_layers(base, options)

    normalized_method = _method(method)
    qs = _mapping(merged, "qs")
    target = build_url(parse_url(url), qs)
    json_mode = _flag(merged, "json")
    auth = _auth(merged.get("auth"))
    compression = _compression(merged.get("compression"))
    max_redirects = merged.get("max_redirects")

    return RequestConfig(
        method=normalized_method,
        url=target,
        headers=_headers(merged, auth=auth, json_mode=json_mode, compression=compression),
        body=_body(merged, json_mode=json_mode),
        auth=auth,
        json=json_mode,
        compression=compression,
        max_redirects=_max_redirects(
            BUILTIN_DEFAULTS["max_redirects"] if max_redirects is None else max_redirects,
        ),
        resolve_with_full_response=_flag(merged, "resolve_with_full_response"),
        verbose=_flag(merged, "verbose"),
        logger=as_sink(merged.get("logger")),
        timeout=_timeout(merged.get("timeout")),
        tls=_tls(merged),
        rewrite_303_to_get=_flag(merged, "rewrite_303_to_get", default=True),
    )
