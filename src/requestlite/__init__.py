"""A lightweight one-shot asynchronous HTTP(S) request client."""

from .config import get_defaults, get_static_defaults, reset_defaults, resolve_defaults, set_defaults
from .errors import (
    ConnectionError,  # noqa: A004
    HTTPError,
    ParseError,
    RequestLiteError,
    ValidationError,
)
from .request import Request, request
from .sinks import DebugSink, LoggingSink
from .transport import AiohttpTransport, Exchange, Hop, RawResponse, Transport, TransportEvent
from .types import Compression, FullResponse, RequestConfig

__all__ = [
    "AiohttpTransport",
    "Compression",
    "ConnectionError",
    "DebugSink",
    "Exchange",
    "FullResponse",
    "HTTPError",
    "Hop",
    "LoggingSink",
    "ParseError",
    "RawResponse",
    "Request",
    "RequestConfig",
    "RequestLiteError",
    "Transport",
    "TransportEvent",
    "ValidationError",
    "get_defaults",
    "get_static_defaults",
    "request",
    "reset_defaults",
    "resolve_defaults",
    "set_defaults",
]
__version__ = "0.1.0"
