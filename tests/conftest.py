"""Common test fixtures for the requestlite project."""

from __future__ import annotations

import json
import typing as t

import pytest
from multidict import CIMultiDict, CIMultiDictProxy
from werkzeug import Request as WerkzeugRequest
from werkzeug import Response
from yarl import URL

import requestlite
from requestlite import RawResponse

if t.TYPE_CHECKING:
    from collections.abc import Callable

    from pytest_httpserver import HTTPServer

    from requestlite import Exchange, Hop


def echo(request: WerkzeugRequest) -> Response:
    """Reply with a JSON description of the request, httpbin style."""
    data = request.get_data(cache=True, as_text=True)
    payload = {
        "method": request.method,
        "args": request.args.to_dict(flat=False),
        "headers": dict(request.headers),
        "form": request.form.to_dict(flat=False),
        "data": data,
    }
    return Response(json.dumps(payload), content_type="application/json")


@pytest.fixture(autouse=True)
def clean_defaults(monkeypatch: pytest.MonkeyPatch) -> t.Generator[None, None, None]:
    """Test fixture isolating each test from defaults set by another."""
    monkeypatch.delenv(requestlite.config.ENV_VAR, raising=False)
    requestlite.reset_defaults()
    yield
    requestlite.reset_defaults()


@pytest.fixture
def echo_url(httpserver: HTTPServer) -> str:
    """Test fixture providing a URL that echoes the request back as JSON."""
    httpserver.expect_request("/echo").respond_with_handler(echo)
    return httpserver.url_for("/echo")


def raw_response(
    status: int = 200,
    body: bytes = b"",
    headers: dict[str, str] | None = None,
    url: str = "http://example.com/",
) -> RawResponse:
    """Build a buffered response as a transport would report it."""
    return RawResponse(
        status=status,
        reason="",
        headers=CIMultiDictProxy(CIMultiDict(headers or {})),
        body=body,
        url=URL(url),
    )


class StubTransport:
    """Transport that replays scripted events instead of touching the network.

    Each call to ``send`` consumes the next script entry: a callable applied
    to the exchange, or a RawResponse to report.
    """

    def __init__(self, *script: Callable[[Exchange], None] | RawResponse) -> None:
        self.script = list(script)
        self.hops: list[Hop] = []

    async def send(self, hop: Hop, exchange: Exchange) -> None:
        self.hops.append(hop)
        step = self.script.pop(0)
        if isinstance(step, RawResponse):
            exchange.response(step)
        else:
            step(exchange)
