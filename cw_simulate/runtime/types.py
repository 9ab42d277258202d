"""
cw_simulate.runtime.types — chain data passed between the engine and contracts.

Plain dataclasses mirroring the CosmWasm JSON shapes the simulator speaks:

- Coin, BlockInfo, Env, MessageInfo: the execution context of a call.
- Attribute, Response: what a state-changing call returns.
- CosmosMsg: closed union of outbound messages
  (WasmExecute | BankSend | Opaque), parsed from CosmWasm JSON.
- ContractResult: Ok(value) | Err(message).

Amounts are Python ints internally and decimal strings on the wire. Binary
payloads are bytes internally and base64 strings on the wire.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from ..errors import BackendError, ContractError

T = TypeVar("T")


# ----------------------------- helpers ----------------------------- #

def b64encode(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def b64decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise BackendError(f"invalid base64: {e}") from e


def _require_amount(v: Any) -> int:
    if isinstance(v, bool):
        raise BackendError(f"invalid coin amount: {v!r}")
    try:
        n = int(v)
    except (TypeError, ValueError) as e:
        raise BackendError(f"invalid coin amount: {v!r}") from e
    if n < 0:
        raise BackendError(f"coin amount must be non-negative, got {n}")
    return n


# ------------------------------ coins ------------------------------ #

@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _require_amount(self.amount))

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "Coin":
        if not isinstance(d, dict) or "denom" not in d:
            raise BackendError(f"invalid coin: {d!r}")
        return cls(denom=str(d["denom"]), amount=_require_amount(d.get("amount", 0)))

    def to_json(self) -> Dict[str, str]:
        return {"denom": self.denom, "amount": str(self.amount)}


def coins_from_json(items: Optional[Iterable[Dict[str, Any]]]) -> Tuple[Coin, ...]:
    return tuple(Coin.from_json(c) for c in (items or ()))


def coins_to_json(coins: Iterable[Coin]) -> List[Dict[str, str]]:
    return [c.to_json() for c in coins]


# ---------------------------- environment ---------------------------- #

@dataclass(frozen=True)
class BlockInfo:
    height: int
    time: int
    chain_id: str

    def to_json(self) -> Dict[str, Any]:
        return {"height": self.height, "time": self.time, "chain_id": self.chain_id}


@dataclass(frozen=True)
class Env:
    """
    Execution environment of one contract instance.

    Only ``block.height`` ever changes during a run; the instance replaces
    its Env with ``env.next_block()`` after a successful state-changing call.
    """
    block: BlockInfo
    contract_address: str

    def next_block(self) -> "Env":
        return replace(self, block=replace(self.block, height=self.block.height + 1))

    def with_height(self, height: int) -> "Env":
        return replace(self, block=replace(self.block, height=height))

    def to_json(self) -> Dict[str, Any]:
        return {"block": self.block.to_json(), "contract": {"address": self.contract_address}}


@dataclass(frozen=True)
class MessageInfo:
    sender: str
    funds: Tuple[Coin, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {"sender": self.sender, "funds": coins_to_json(self.funds)}


# ---------------------------- messages ----------------------------- #

@dataclass(frozen=True)
class WasmExecute:
    contract_addr: str
    msg: bytes
    funds: Tuple[Coin, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            "wasm": {
                "execute": {
                    "contract_addr": self.contract_addr,
                    "msg": b64encode(self.msg),
                    "funds": coins_to_json(self.funds),
                }
            }
        }


@dataclass(frozen=True)
class BankSend:
    to_address: str
    amount: Tuple[Coin, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {"bank": {"send": {"to_address": self.to_address, "amount": coins_to_json(self.amount)}}}


@dataclass(frozen=True)
class Opaque:
    """Any outbound message the core does not resolve itself."""
    kind: str
    body: Any = None

    def to_json(self) -> Dict[str, Any]:
        return {self.kind: self.body}


CosmosMsg = Union[WasmExecute, BankSend, Opaque]


def parse_cosmos_msg(obj: Any) -> CosmosMsg:
    """Parse a CosmWasm-style message object into the CosmosMsg union."""
    if isinstance(obj, (WasmExecute, BankSend, Opaque)):
        return obj
    if not isinstance(obj, dict) or len(obj) != 1:
        raise BackendError(f"invalid cosmos message: {obj!r}")
    (kind, body), = obj.items()

    if kind == "wasm" and isinstance(body, dict) and "execute" in body:
        ex = body["execute"]
        if not isinstance(ex, dict) or "contract_addr" not in ex:
            raise BackendError(f"invalid wasm execute message: {ex!r}")
        msg = ex.get("msg", "")
        raw = b64decode(msg) if isinstance(msg, str) else json.dumps(msg).encode("utf-8")
        # older message versions call the attached coins "send"
        funds = coins_from_json(ex.get("funds", ex.get("send")))
        return WasmExecute(contract_addr=str(ex["contract_addr"]), msg=raw, funds=funds)

    if kind == "bank" and isinstance(body, dict) and "send" in body:
        send = body["send"]
        if not isinstance(send, dict) or "to_address" not in send:
            raise BackendError(f"invalid bank send message: {send!r}")
        return BankSend(to_address=str(send["to_address"]), amount=coins_from_json(send.get("amount")))

    return Opaque(kind=str(kind), body=body)


# ---------------------------- responses ---------------------------- #

@dataclass(frozen=True)
class Attribute:
    key: str
    value: str

    def to_json(self) -> Dict[str, str]:
        return {"key": self.key, "value": self.value}


@dataclass
class Response:
    """Result of a successful instantiate/execute."""
    attributes: List[Attribute] = field(default_factory=list)
    messages: List[CosmosMsg] = field(default_factory=list)
    data: Optional[bytes] = None

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append(Attribute(str(key), value if isinstance(value, str) else json.dumps(value)))
        return self

    def add_message(self, msg: Any) -> "Response":
        self.messages.append(parse_cosmos_msg(msg))
        return self

    def set_data(self, data: bytes) -> "Response":
        self.data = bytes(data)
        return self

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "Response":
        if not isinstance(d, dict):
            raise BackendError(f"invalid response: {d!r}")
        attrs = [Attribute(str(a["key"]), str(a["value"])) for a in d.get("attributes") or ()]
        msgs = [parse_cosmos_msg(m) for m in d.get("messages") or ()]
        data = d.get("data")
        return cls(attributes=attrs, messages=msgs, data=b64decode(data) if data else None)

    def to_json(self) -> Dict[str, Any]:
        return {
            "attributes": [a.to_json() for a in self.attributes],
            "messages": [m.to_json() for m in self.messages],
            "data": b64encode(self.data) if self.data is not None else None,
        }


@dataclass(frozen=True)
class ContractResult(Generic[T]):
    """Ok(value) | Err(message)."""
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "ContractResult[T]":
        return cls(value=value)

    @classmethod
    def err(cls, message: str) -> "ContractResult[T]":
        return cls(error=str(message))

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise ContractError(self.error)
        return self.value  # type: ignore[return-value]


__all__ = [
    "Coin",
    "BlockInfo",
    "Env",
    "MessageInfo",
    "WasmExecute",
    "BankSend",
    "Opaque",
    "CosmosMsg",
    "parse_cosmos_msg",
    "Attribute",
    "Response",
    "ContractResult",
    "coins_from_json",
    "coins_to_json",
    "b64encode",
    "b64decode",
]
