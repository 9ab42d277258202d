from __future__ import annotations

import json

import pytest

from cw_simulate.engine import CallResult, Chain, ContractInstance
from cw_simulate.errors import BackendError

from .conftest import COUNTER, make_settings


def msg(obj) -> bytes:
    return json.dumps(obj).encode()


@pytest.fixture
def counter(sim) -> ContractInstance:
    inst = sim.instance("counter")
    res = inst.instantiate(msg({"count": 5}), "alice")
    assert res.ok, res.error
    return inst


def query(inst: ContractInstance, obj):
    res = inst.query(msg(obj))
    assert res.ok, res.error
    return json.loads(res.to_json())


def test_instantiate_result(sim) -> None:
    inst = sim.instance("counter")
    res = inst.instantiate(msg({"count": 1}), "alice")
    assert res.to_json() == '{"message":"instantiate succeeded"}'
    assert [(a.key, a.value) for a in res.attributes] == [("action", "instantiate"), ("owner", "alice")]


def test_height_advances_only_on_state_changing_calls(counter) -> None:
    start = counter.height
    assert start == 12345 + 1
    counter.execute(msg({"increment": {}}), "alice")
    counter.execute(msg({"increment": {}}), "bob")
    assert counter.height == start + 2
    assert query(counter, {"height": {}}) == {"height": start + 2, "chain_id": "Oraichain"}
    assert counter.height == start + 2


def test_failed_call_does_not_advance_height(counter) -> None:
    start = counter.height
    res = counter.execute(msg({"reset": {"count": 0}}), "bob")
    assert not res.ok
    assert res.error == "Unauthorized"
    assert res.to_json() == '{"error":"Unauthorized"}'
    assert counter.height == start


def test_execute_gas_used(counter) -> None:
    before = counter.backend.gas_remaining()
    res = counter.execute(msg({"increment": {}}), "alice")
    # get "count" (5) + set "count"="6" (6)
    assert res.gas_used == 11
    assert counter.backend.gas_remaining() == before - 11
    assert query(counter, {"get_count": {}}) == {"count": 6}


def test_gas_accumulates_on_instance(counter) -> None:
    used = counter.gas_used
    counter.execute(msg({"increment": {}}), "alice")
    counter.query(msg({"get_count": {}}))
    assert counter.gas_used == used + 11 + 5


def test_declared_gas_limit_out_of_gas_leaves_store_untouched(counter) -> None:
    before = counter.store.items()
    res = counter.execute(msg({"set": {"key": "x" * 20}}), "alice", gas_limit=10)
    assert not res.ok
    assert "out of gas" in res.error
    assert counter.store.items() == before
    # the instance stays usable with its regular budget
    assert counter.execute(msg({"set": {"key": "x" * 20}}), "alice").ok
    assert (b"key", b"x" * 20) in counter.store.items()


def test_canonicalize_is_charged_before_any_write(counter) -> None:
    keys = len(counter.store)
    res = counter.execute(msg({"register": {}}), "alice", gas_limit=50)
    assert not res.ok
    assert len(counter.store) == keys
    assert counter.execute(msg({"register": {}}), "alice").ok
    assert len(counter.store) == keys + 1


def test_failed_execute_rolls_back_writes(counter) -> None:
    res = counter.execute(msg({"write_then_fail": {}}), "alice")
    assert res.error == "failed after write"
    assert query(counter, {"get_count": {}}) == {"count": 5}


def test_trap_is_reported_and_instance_survives(counter) -> None:
    res = counter.execute(msg({"crash": {}}), "alice")
    assert not res.ok
    assert "ZeroDivisionError" in res.error
    assert counter.execute(msg({"increment": {}}), "alice").ok


def test_invalid_payload(counter) -> None:
    res = counter.execute(b"{not json", "alice")
    assert not res.ok
    assert res.error.startswith("Error parsing into type execute message")


def test_query_storage_is_read_only(counter) -> None:
    res = counter.query(msg({"write": {}}))
    assert not res.ok
    assert "read-only" in res.error
    assert b"nope" not in counter.store


def test_range_query_releases_iterators(counter) -> None:
    counter.execute(msg({"set": {"b": "1", "a": "2", "c": "3"}}), "alice")
    asc = query(counter, {"keys": {"order": "ascending"}})["keys"]
    desc = query(counter, {"keys": {"order": "descending"}})["keys"]
    assert asc == ["a", "b", "c", "count", "owner"]
    assert desc == list(reversed(asc))
    assert query(counter, {"keys": {"start": "b", "end": "count"}})["keys"] == ["b", "c"]
    assert counter.store.open_iterators == 0


def test_bank_queries_from_contract(counter) -> None:
    assert query(counter, {"balance": {"address": "counter"}}) == {"denom": "orai", "amount": str(10**16)}
    assert query(counter, {"balance": {"address": "alice"}}) == {"denom": "orai", "amount": "100"}
    assert query(counter, {"all_balances": {"address": "nobody"}}) == []


def test_smart_query_runs_on_target_meter(counter, sim) -> None:
    target = sim.instance("contract_b")
    assert query(counter, {"smart": {"contract": "contract_b", "msg": {}}}) == {"pings": 0, "last_sender": None}
    # get "pings" (5) + get "last_sender" (11)
    assert target.gas_used == 16


def test_smart_query_to_missing_contract(counter) -> None:
    res = counter.query(msg({"smart": {"contract": "ghost", "msg": {}}}))
    assert res.error == "No such contract: ghost"


def test_custom_query(counter) -> None:
    assert query(counter, {"raw": {"custom": {"echo": "hi"}}}) == "hi"
    res = counter.query(msg({"raw": {"custom": {"boom": {}}}}))
    assert res.error == "Querier contract error: boom"


def test_query_gas_is_charged_to_caller(counter) -> None:
    before = counter.gas_used
    query(counter, {"balance": {"address": "alice"}})
    request = json.dumps({"bank": {"balance": {"address": "alice", "denom": "orai"}}}).encode()
    response = b'{"amount":{"denom":"orai","amount":"100"}}'
    assert counter.gas_used - before == len(request) + len(response)


def test_missing_backend_for_suffix(chain) -> None:
    with pytest.raises(BackendError):
        ContractInstance(chain, "wasm_thing", b"\x00asm", suffix=".wasm")


def test_bad_module_fails_to_load(chain) -> None:
    with pytest.raises(BackendError):
        ContractInstance(chain, "broken", b"def instantiate(:\n")


def test_custom_gas_limit_setting(genesis) -> None:
    with Chain(make_settings(gas_limit=20), genesis) as chain:
        inst = chain.registry.load_or_replace("counter", COUNTER.read_bytes())
        res = inst.instantiate(msg({"count": 1}), "alice")
        assert res.ok
        res = inst.execute(msg({"set": {"key": "x" * 20}}), "alice")
        assert not res.ok and "out of gas" in res.error


def test_call_result_dict() -> None:
    res = CallResult(kind="execute", ok=True, gas_used=3)
    assert res.to_dict() == {"kind": "execute", "ok": True, "attributes": [], "error": None, "gas_used": 3}


def test_state_changing_call_without_message_info_fails_cleanly(counter) -> None:
    before = counter.height
    res = counter._call("execute", msg({"increment": {}}), None, None, 0)
    assert not res.ok
    assert res.error == "execute needs message info"
    assert counter.height == before
    assert query(counter, {"get_count": {}}) == {"count": 5}


SELF_QUERY = (
    b"def query(deps, env, msg):\n"
    b"    if msg.get('leaf'):\n"
    b"        deps.storage.get(b'some-key')\n"
    b"        return {'ok': True}\n"
    b"    return deps.querier.query_wasm_smart(env.contract_address, msg.get('next', {}))\n"
)


def test_self_smart_query_charges_only_query_bytes(sim) -> None:
    inst = sim.chain.registry.load_or_replace("selfq", SELF_QUERY)
    request = json.dumps({"wasm": {"smart": {"contract_addr": "selfq", "msg": {"leaf": True}}}}).encode()
    response = b'{"ok":true}'

    before = inst.backend.gas_remaining()
    res = inst.query(msg({"next": {"leaf": True}}))
    assert res.ok, res.error
    assert res.data == response
    assert res.gas_used == len(request) + len(response)
    assert inst.backend.gas_remaining() == before - res.gas_used


def test_self_smart_query_loop_hits_depth_limit(genesis) -> None:
    with Chain(make_settings(max_call_depth=3), genesis) as chain:
        inst = chain.registry.load_or_replace("selfq", SELF_QUERY)
        res = inst.query(msg({}))
    assert not res.ok
    assert res.error.endswith("Recursion limit exceeded: depth 4 > 3")
    assert res.error.count("Querier contract error: ") == 4
