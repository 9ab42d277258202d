"""Counter contract used by the test-suite."""

from cw_simulate.sdk import ContractError, Response, bank_send, coin, from_binary, wasm_execute

COUNT = b"count"
OWNER = b"owner"


def _count(deps):
    raw = deps.storage.get(COUNT)
    return int(raw) if raw is not None else 0


def _store_count(deps, n):
    deps.storage.set(COUNT, str(n).encode())


def instantiate(deps, env, info, msg):
    deps.storage.set(OWNER, info.sender.encode())
    _store_count(deps, int(msg.get("count", 0)))
    return Response().add_attribute("action", "instantiate").add_attribute("owner", info.sender)


def execute(deps, env, info, msg):
    if "increment" in msg:
        n = _count(deps) + 1
        _store_count(deps, n)
        return Response().add_attribute("action", "increment").add_attribute("count", str(n))
    if "reset" in msg:
        owner = deps.storage.get(OWNER)
        if owner is None or owner.decode() != info.sender:
            raise ContractError("Unauthorized")
        _store_count(deps, int(msg["reset"].get("count", 0)))
        return Response().add_attribute("action", "reset")
    if "register" in msg:
        # canonicalize first, then write
        canonical = deps.api.addr_canonicalize(info.sender)
        deps.storage.set(b"member:" + canonical, b"1")
        return Response().add_attribute("action", "register")
    if "write_then_fail" in msg:
        _store_count(deps, 999)
        raise ContractError("failed after write")
    if "set" in msg:
        for key, value in msg["set"].items():
            deps.storage.set(key.encode(), value.encode())
        return Response()
    if "remove" in msg:
        deps.storage.remove(msg["remove"].encode())
        return Response()
    if "loop" in msg:
        return Response().add_message(wasm_execute(env.contract_address, {"loop": {}}))
    if "pay" in msg:
        return Response().add_message(bank_send(msg["pay"]["to"], [coin(msg["pay"]["amount"], "orai")]))
    if "crash" in msg:
        return 1 // 0
    raise ContractError(f"unknown execute message: {sorted(msg)}")


def query(deps, env, msg):
    if "get_count" in msg:
        return {"count": _count(deps)}
    if "height" in msg:
        return {"height": env.block.height, "chain_id": env.block.chain_id}
    if "keys" in msg:
        order = msg["keys"].get("order", "ascending")
        start = msg["keys"].get("start")
        end = msg["keys"].get("end")
        return {
            "keys": [
                k.decode()
                for k, _ in deps.storage.range(
                    start.encode() if start else None,
                    end.encode() if end else None,
                    order,
                )
            ]
        }
    if "balance" in msg:
        coin = deps.querier.query_balance(msg["balance"]["address"], msg["balance"].get("denom", "orai"))
        return coin.to_json()
    if "all_balances" in msg:
        return [c.to_json() for c in deps.querier.query_all_balances(msg["all_balances"]["address"])]
    if "smart" in msg:
        return deps.querier.query_wasm_smart(msg["smart"]["contract"], msg["smart"]["msg"])
    if "raw" in msg:
        return from_binary(deps.querier.query_raw(msg["raw"]))
    if "write" in msg:
        deps.storage.set(b"nope", b"1")
        return {}
    raise ContractError(f"unknown query message: {sorted(msg)}")
