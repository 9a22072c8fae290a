"""Request body encoding."""

from __future__ import annotations

import json
import typing as t
from dataclasses import dataclass
from urllib.parse import urlencode

from aiohttp import hdrs

from .errors import ValidationError
from .query import query_pairs
from .types import FormBody, JsonBody, RawBody

if t.TYPE_CHECKING:
    from multidict import CIMultiDict

    from .types import Body

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class EncodedBody:
    """Bytes ready to send plus the media type describing them.

    Attributes:
        payload: The encoded body.
        content_type: Media type for the Content-Type header, or None for a
            raw body the caller is responsible for describing.

    """

    payload: bytes
    content_type: str | None = None


def encode_body(body: Body | None) -> EncodedBody | None:
    """Encode a body according to its variant.

    Args:
        body: The body selected by the option normalizer.

    Returns:
        EncodedBody or None: The payload, or None when there is no body.

    Raises:
        ValidationError: If a JSON body cannot be serialized.

    """
    match body:
        case None:
            return None
        case JsonBody(value=value):
            try:
                text = json.dumps(value)
            except (TypeError, ValueError) as e:
                msg = f"body is not JSON serializable: {e}"
                raise ValidationError(msg, cause=e) from e
            return EncodedBody(text.encode(), JSON_CONTENT_TYPE)
        case FormBody(fields=fields):
            return EncodedBody(urlencode(query_pairs(fields)).encode("ascii"), FORM_CONTENT_TYPE)
        case RawBody(data=data):
            return EncodedBody(data)
    msg = f"Unsupported body type: {type(body).__name__}"  # pragma: no cover
    raise ValidationError(msg)  # pragma: no cover


def apply_content_type(headers: CIMultiDict[str], encoded: EncodedBody | None) -> None:
    """Set Content-Type from the encoded body unless the caller chose one."""
    if encoded is not None and encoded.content_type is not None:
        headers.setdefault(hdrs.CONTENT_TYPE, encoded.content_type)
