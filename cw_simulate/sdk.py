"""
Helpers for writing simulator contracts in Python.

A contract is a module exporting up to three entry points::

    from cw_simulate.sdk import ContractError, Response, to_binary

    def instantiate(deps, env, info, msg):
        deps.storage.set(b"owner", info.sender.encode())
        return Response().add_attribute("action", "instantiate")

    def execute(deps, env, info, msg):
        ...

    def query(deps, env, msg):
        return to_binary({"owner": deps.storage.get(b"owner").decode()})

``msg`` arrives already parsed from JSON. ``query`` may return bytes or any
JSON-serializable value.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Union

from .errors import ContractError
from .runtime.types import (
    Attribute,
    BankSend,
    Coin,
    Env,
    MessageInfo,
    Opaque,
    Response,
    WasmExecute,
)


def to_binary(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def from_binary(data: Union[bytes, str]) -> Any:
    return json.loads(data)


def coin(amount: int, denom: str) -> Coin:
    return Coin(denom=denom, amount=amount)


def wasm_execute(contract_addr: str, msg: Any, funds: Iterable[Coin] = ()) -> WasmExecute:
    """Outbound message executing `contract_addr` with the JSON `msg`."""
    raw = msg if isinstance(msg, bytes) else to_binary(msg)
    return WasmExecute(contract_addr=contract_addr, msg=raw, funds=tuple(funds))


def bank_send(to_address: str, amount: Iterable[Coin]) -> BankSend:
    return BankSend(to_address=to_address, amount=tuple(amount))


__all__ = [
    "Attribute",
    "BankSend",
    "Coin",
    "ContractError",
    "Env",
    "MessageInfo",
    "Opaque",
    "Response",
    "WasmExecute",
    "bank_send",
    "coin",
    "from_binary",
    "to_binary",
    "wasm_execute",
]
