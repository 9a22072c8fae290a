"""Layered default options for requestlite.

Effective defaults are computed from three layers, lowest precedence first:

1. ``BUILTIN_DEFAULTS``, fixed in this module.
2. A JSON object read from the ``REQUESTLITE_DEFAULTS`` environment variable.
3. Process-wide static defaults managed with ``set_defaults()``.

Each layer overrides the previous one key by key. ``headers`` are merged
case-insensitively instead of being replaced wholesale.
"""

from __future__ import annotations

import json
import os
import typing as t
from types import MappingProxyType

from multidict import CIMultiDict

from .errors import ValidationError

ENV_VAR = "REQUESTLITE_DEFAULTS"

BUILTIN_DEFAULTS: t.Mapping[str, t.Any] = MappingProxyType(
    {
        "json": False,
        "headers": {},
        "compression": None,
        "max_redirects": 3,
        "resolve_with_full_response": False,
        "verbose": False,
        "logger": None,
        "timeout": None,
        "rewrite_303_to_get": True,
    },
)

# camelCase spellings accepted for the snake_case option keys
OPTION_ALIASES: t.Mapping[str, str] = MappingProxyType(
    {
        "maxRedirects": "max_redirects",
        "resolveWithFullResponse": "resolve_with_full_response",
    },
)

# Static layer; empty means it has no effect on the merged defaults
_static_defaults: dict[str, t.Any] = {}


def canonical_keys(layer: t.Mapping[str, t.Any]) -> dict[str, t.Any]:
    """Rename camelCase option aliases to their snake_case keys.

    Args:
        layer: An option mapping from the caller or a defaults layer.

    Returns:
        dict: A copy of ``layer`` using canonical key names.

    Raises:
        ValidationError: If a key is given under both of its names.

    """
    canonical: dict[str, t.Any] = {}
    for key, value in layer.items():
        name = OPTION_ALIASES.get(key, key)
        if name in canonical:
            msg = f"Option {name} given more than once (as {key} and {name})"
            raise ValidationError(msg)
        canonical[name] = value
    return canonical


def merge_layers(*layers: t.Mapping[str, t.Any]) -> dict[str, t.Any]:
    """Overlay option mappings, later layers taking precedence.

    Args:
        layers: Option mappings, lowest precedence first.

    Returns:
        dict: The merged options under canonical key names. ``headers`` is a
        plain dict of the case-insensitively merged headers of every layer.

    Raises:
        ValidationError: If a layer's ``headers`` is not a mapping, or a layer
            names one option twice.

    """
    merged: dict[str, t.Any] = {}
    headers: CIMultiDict[t.Any] = CIMultiDict()
    for layer in layers:
        for key, value in canonical_keys(layer).items():
            if key != "headers":
                merged[key] = value
            elif value is not None:
                if not isinstance(value, t.Mapping):
                    msg = f"headers must be a mapping, got {type(value).__name__}"
                    raise ValidationError(msg)
                for name, header_value in value.items():
                    if not isinstance(name, str):
                        msg = f"header names must be strings, got {name!r}"
                        raise ValidationError(msg)
                    headers[name] = header_value
    merged["headers"] = dict(headers.items())
    return merged


def resolve_defaults(
    builtin: t.Mapping[str, t.Any],
    env: t.Mapping[str, t.Any],
    static: t.Mapping[str, t.Any],
) -> dict[str, t.Any]:
    """Merge the three defaults layers into one mapping.

    Args:
        builtin: Built-in defaults (lowest precedence).
        env: Defaults read from the environment.
        static: Process-wide static defaults (highest precedence).

    Returns:
        dict: Effective defaults.

    """
    return merge_layers(builtin, env, static)


def load_env_defaults(environ: t.Mapping[str, str] | None = None) -> dict[str, t.Any]:
    """Read the environment defaults layer.

    Args:
        environ: Environment to read from. Defaults to ``os.environ``.

    Returns:
        dict: The decoded object, or an empty dict if the variable is unset
        or blank.

    Raises:
        ValidationError: If the variable is not a JSON object.

    """
    environ = os.environ if environ is None else environ
    raw = environ.get(ENV_VAR, "").strip()
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        msg = f"{ENV_VAR} is not valid JSON"
        raise ValidationError(msg, cause=e) from e
    if not isinstance(value, dict):
        msg = f"{ENV_VAR} must hold a JSON object, got {type(value).__name__}"
        raise ValidationError(msg)
    return value


def get_defaults() -> dict[str, t.Any]:
    """Return the effective defaults: built-in, then environment, then static."""
    return resolve_defaults(BUILTIN_DEFAULTS, load_env_defaults(), _static_defaults)


def get_static_defaults() -> dict[str, t.Any]:
    """Return a copy of the static defaults layer.

    Unlike ``get_defaults()`` this is empty after ``reset_defaults()`` even
    when the environment layer is set.
    """
    return dict(_static_defaults)


def set_defaults(defaults: t.Mapping[str, t.Any] | None) -> None:
    """Replace the static defaults layer.

    Passing None or an empty mapping clears the static layer only; the
    environment and built-in layers beneath it stay in effect.

    Args:
        defaults: New static defaults.

    Raises:
        ValidationError: If ``defaults`` is not a mapping.

    """
    global _static_defaults  # noqa: PLW0603
    if defaults is None:
        _static_defaults = {}
        return
    if not isinstance(defaults, t.Mapping):
        msg = f"defaults must be a mapping, got {type(defaults).__name__}"
        raise ValidationError(msg)
    _static_defaults = dict(defaults)


def reset_defaults() -> None:
    """Clear the static defaults layer."""
    set_defaults(None)
