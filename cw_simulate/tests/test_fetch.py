from __future__ import annotations

import base64
import json

import httpx
import pytest

from cw_simulate.errors import ContractError, UnsupportedRequest
from cw_simulate.runtime.fetch import FetchHandler
from cw_simulate.runtime.querier import BankQuerier, ChainQuerier


def make_handler(responder) -> FetchHandler:
    client = httpx.Client(transport=httpx.MockTransport(responder))
    return FetchHandler(timeout=1.0, client=client)


def test_get_returns_base64_body_as_json_string() -> None:
    seen = []

    def responder(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"hello world")

    handler = make_handler(responder)
    out = handler({"fetch": {"url": "http://oracle.test/price"}})
    assert json.loads(out) == base64.b64encode(b"hello world").decode()
    assert seen[0].method == "GET"
    assert str(seen[0].url) == "http://oracle.test/price"


def test_post_body_and_headers() -> None:
    seen = []

    def responder(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    handler = make_handler(responder)
    handler(
        {
            "fetch": {
                "url": "http://oracle.test/submit",
                "method": "post",
                "body": '{"x":1}',
                "headers": ["Content-Type: application/json", "X-Api-Key: secret", "garbage"],
            }
        }
    )
    req = seen[0]
    assert req.method == "POST"
    assert req.content == b'{"x":1}'
    assert req.headers["content-type"] == "application/json"
    assert req.headers["x-api-key"] == "secret"


def test_http_error_becomes_contract_error() -> None:
    handler = make_handler(lambda request: httpx.Response(503, content=b"down"))
    with pytest.raises(ContractError) as ei:
        handler({"fetch": {"url": "http://oracle.test/"}})
    assert "503" in str(ei.value)


def test_transport_error_becomes_contract_error() -> None:
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    handler = make_handler(responder)
    with pytest.raises(ContractError):
        handler({"fetch": {"url": "http://oracle.test/"}})


def test_missing_url() -> None:
    handler = make_handler(lambda request: httpx.Response(200))
    with pytest.raises(ContractError):
        handler({"fetch": {"method": "GET"}})


def test_non_fetch_bodies_are_unsupported() -> None:
    handler = make_handler(lambda request: httpx.Response(200))
    with pytest.raises(UnsupportedRequest) as ei:
        handler({"price": {}})
    assert str(ei.value) == "Unsupported query type: custom.price"


def test_router_surfaces_fetch_failures_as_err() -> None:
    handler = make_handler(lambda request: httpx.Response(404))
    router = ChainQuerier(BankQuerier(), custom_handler=handler)
    result, _ = router.route(json.dumps({"custom": {"fetch": {"url": "http://oracle.test/x"}}}), 10**6)
    assert not result.is_ok
    assert "404" in result.error


def test_close_releases_client() -> None:
    handler = make_handler(lambda request: httpx.Response(200))
    handler.close()
    handler.close()
