from __future__ import annotations

import base64
import json

import pytest
from fastapi.testclient import TestClient

from cw_simulate.api import create_app
from cw_simulate.engine import Simulator, Watcher, discover_artifacts
from cw_simulate.version import __version__

from .conftest import COUNTER


def b64(obj, *, urlsafe: bool = False, strip: bool = False) -> str:
    raw = json.dumps(obj, separators=(",", ":")).encode()
    out = (base64.urlsafe_b64encode if urlsafe else base64.b64encode)(raw).decode()
    return out.rstrip("=") if strip else out


@pytest.fixture
def client(sim) -> TestClient:
    return TestClient(create_app(sim))


def test_instantiate_execute_query(client) -> None:
    r = client.get(f"/contract/counter/instantiate/{b64({'count': 3})}", params={"account": "alice"})
    assert r.status_code == 200
    assert r.json() == {"data": {"message": "instantiate succeeded"}}

    r = client.get(f"/contract/counter/execute/{b64({'increment': {}})}", params={"account": "bob"})
    assert r.json() == {"data": {"message": "execute succeeded"}}

    r = client.get(f"/contract/counter/query/{b64({'get_count': {}})}")
    assert r.json() == {"data": {"count": 4}}


def test_default_account_when_omitted(client) -> None:
    client.get(f"/contract/counter/instantiate/{b64({})}")
    r = client.get(f"/contract/counter/execute/{b64({'reset': {'count': 9}})}")
    assert r.json() == {"data": {"message": "execute succeeded"}}


def test_contract_errors_are_reported_in_body(client) -> None:
    client.get(f"/contract/counter/instantiate/{b64({})}", params={"account": "alice"})
    r = client.get(f"/contract/counter/execute/{b64({'reset': {}})}", params={"account": "bob"})
    assert r.status_code == 200
    assert r.json() == {"error": "Unauthorized"}


def test_unknown_account_and_contract(client) -> None:
    r = client.get(f"/contract/counter/instantiate/{b64({})}", params={"account": "mallory"})
    assert r.json() == {"error": "No account found: mallory"}
    r = client.get(f"/contract/ghost/query/{b64({})}")
    assert r.json() == {"error": "No such contract: ghost"}


def test_urlsafe_and_unpadded_payloads(client) -> None:
    client.get(f"/contract/counter/instantiate/{b64({'count': 1})}")
    payload = b64({"get_count": {}}, urlsafe=True, strip=True)
    r = client.get(f"/contract/counter/query/{payload}")
    assert r.json() == {"data": {"count": 1}}


def test_payload_containing_slash(client) -> None:
    client.get(f"/contract/counter/instantiate/{b64({})}")
    # runs of 0x3f bytes encode to "/" in standard base64
    msg = {"set": {"k": "???"}}
    payload = b64(msg)
    assert "/" in payload
    r = client.get(f"/contract/counter/execute/{payload}")
    assert r.json() == {"data": {"message": "execute succeeded"}}


def test_invalid_base64(client) -> None:
    r = client.get("/contract/counter/query/!!!notbase64")
    assert r.status_code == 400
    assert r.json() == {"error": "invalid base64 payload"}


def test_query_returning_plain_string(client) -> None:
    client.get(f"/contract/counter/instantiate/{b64({})}")
    r = client.get(f"/contract/counter/query/{b64({'raw': {'custom': {'echo': 'hi'}}})}")
    assert r.json() == {"data": "hi"}


def test_contracts_listing(client) -> None:
    r = client.get("/contracts")
    assert r.status_code == 200
    data = r.json()["data"]
    assert [d["address"] for d in data] == ["contract_a", "contract_b", "counter"]
    assert {"height", "gas_used", "gas_remaining", "storage_keys"} <= set(data[0])


def test_version(client) -> None:
    r = client.get("/version")
    assert r.json() == {"version": __version__, "chain_id": "Oraichain"}


def test_cors_headers(client) -> None:
    r = client.get("/contracts", headers={"Origin": "http://localhost:3000"})
    assert r.headers.get("access-control-allow-origin") == "*"

    r = client.options(
        "/contracts",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
    )
    assert r.status_code == 200
    assert "GET" in r.headers.get("access-control-allow-methods", "")


def test_watcher_runs_for_app_lifetime(chain) -> None:
    watcher = Watcher(chain, discover_artifacts(COUNTER), interval=0.05)
    watcher.load_all()
    app = create_app(Simulator(chain, contract="counter"), watcher=watcher)
    with TestClient(app) as c:
        assert watcher._thread is not None and watcher._thread.is_alive()
        assert c.get("/contracts").status_code == 200
    assert watcher._thread is None
