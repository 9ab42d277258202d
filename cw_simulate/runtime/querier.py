"""
cw_simulate.runtime.querier — the mocked chain's query router.

Contracts issue CosmWasm-style JSON query requests
(``{"bank": {"balance": {...}}}``, ``{"wasm": {"smart": {...}}}``, ...). They
are parsed into a closed union of request dataclasses and answered by
:class:`ChainQuerier.route`:

- bank      -> BankQuerier (account table; unknown addresses read as empty)
- staking   -> StakingQuerier (static tables loaded at startup)
- wasm.smart-> the target contract's own ``query`` (its own gas, not ours);
              nested smart queries deeper than ``max_depth`` answer Err
- wasm.raw  -> UnsupportedRequest
- custom    -> pluggable synchronous handler

Every route charges ``len(request) + len(response)`` and raises OutOfGas if
that exceeds the caller's remaining gas, before any data is handed back.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Union

from ..errors import BackendError, ContractError, NoSuchContract, OutOfGas, RecursionLimitExceeded, UnsupportedRequest
from .types import Coin, ContractResult, b64decode, coins_to_json

log = logging.getLogger(__name__)


# ------------------------------------------------------------------------- #
# Request union
# ------------------------------------------------------------------------- #

@dataclass(frozen=True)
class BankBalance:
    address: str
    denom: str


@dataclass(frozen=True)
class BankAllBalances:
    address: str


@dataclass(frozen=True)
class StakingBondedDenom:
    pass


@dataclass(frozen=True)
class StakingAllValidators:
    pass


@dataclass(frozen=True)
class StakingValidator:
    address: str


@dataclass(frozen=True)
class StakingAllDelegations:
    delegator: str


@dataclass(frozen=True)
class StakingDelegation:
    delegator: str
    validator: str


@dataclass(frozen=True)
class WasmSmart:
    contract_addr: str
    msg: bytes


@dataclass(frozen=True)
class WasmRaw:
    contract_addr: str
    key: bytes


@dataclass(frozen=True)
class Custom:
    body: Any


QueryRequest = Union[
    BankBalance,
    BankAllBalances,
    StakingBondedDenom,
    StakingAllValidators,
    StakingValidator,
    StakingAllDelegations,
    StakingDelegation,
    WasmSmart,
    WasmRaw,
    Custom,
]


def _field(body: Any, name: str, kind: str) -> Any:
    if not isinstance(body, dict) or name not in body:
        raise BackendError(f"invalid {kind} query: missing field {name!r}")
    return body[name]


def parse_query_request(raw: Union[bytes, str, Dict[str, Any]]) -> QueryRequest:
    """Parse CosmWasm query JSON into a QueryRequest."""
    if isinstance(raw, (bytes, bytearray, str)):
        try:
            obj = json.loads(raw)
        except ValueError as e:
            raise BackendError(f"Error parsing into type QueryRequest: {e}") from e
    else:
        obj = raw
    if not isinstance(obj, dict) or len(obj) != 1:
        raise BackendError("Error parsing into type QueryRequest: expected a single-key object")
    (family, inner), = obj.items()

    if family == "custom":
        return Custom(body=inner)
    if not isinstance(inner, dict) or len(inner) != 1:
        raise UnsupportedRequest(str(family))
    (kind, body), = inner.items()

    if family == "bank":
        if kind == "balance":
            return BankBalance(str(_field(body, "address", "bank")), str(_field(body, "denom", "bank")))
        if kind == "all_balances":
            return BankAllBalances(str(_field(body, "address", "bank")))
    elif family == "staking":
        if kind == "bonded_denom":
            return StakingBondedDenom()
        if kind == "all_validators":
            return StakingAllValidators()
        if kind == "validator":
            return StakingValidator(str(_field(body, "address", "staking")))
        if kind == "all_delegations":
            return StakingAllDelegations(str(_field(body, "delegator", "staking")))
        if kind == "delegation":
            return StakingDelegation(
                str(_field(body, "delegator", "staking")),
                str(_field(body, "validator", "staking")),
            )
    elif family == "wasm":
        if kind == "smart":
            msg = _field(body, "msg", "wasm")
            raw_msg = b64decode(msg) if isinstance(msg, str) else json.dumps(msg).encode("utf-8")
            return WasmSmart(str(_field(body, "contract_addr", "wasm")), raw_msg)
        if kind == "raw":
            key = _field(body, "key", "wasm")
            return WasmRaw(str(_field(body, "contract_addr", "wasm")), b64decode(key) if isinstance(key, str) else b"")
    raise UnsupportedRequest(f"{family}.{kind}")


# ------------------------------------------------------------------------- #
# Bank
# ------------------------------------------------------------------------- #

class BankQuerier:
    """Account balance table. Addresses without an entry read as empty."""

    def __init__(self, balances: Optional[Dict[str, Sequence[Coin]]] = None) -> None:
        self._balances: Dict[str, List[Coin]] = {a: list(c) for a, c in (balances or {}).items()}
        self._lock = threading.RLock()

    def balance(self, address: str, denom: str) -> Coin:
        with self._lock:
            for coin in self._balances.get(address, ()):
                if coin.denom == denom:
                    return coin
        return Coin(denom=denom, amount=0)

    def all_balances(self, address: str) -> List[Coin]:
        with self._lock:
            return list(self._balances.get(address, ()))

    def update_balance(self, address: str, coins: Iterable[Coin]) -> List[Coin]:
        """Replace the balance of `address`; returns the previous balance."""
        with self._lock:
            prev = self._balances.get(address, [])
            self._balances[address] = list(coins)
        return list(prev)

    def accounts(self) -> List[str]:
        with self._lock:
            return sorted(self._balances)

    def __contains__(self, address: object) -> bool:
        return address in self._balances


# ------------------------------------------------------------------------- #
# Staking
# ------------------------------------------------------------------------- #

@dataclass(frozen=True)
class Validator:
    address: str
    commission: str = "0"
    max_commission: str = "0"
    max_change_rate: str = "0"

    def to_json(self) -> Dict[str, str]:
        return {
            "address": self.address,
            "commission": self.commission,
            "max_commission": self.max_commission,
            "max_change_rate": self.max_change_rate,
        }


@dataclass(frozen=True)
class FullDelegation:
    delegator: str
    validator: str
    amount: Coin
    can_redelegate: Optional[Coin] = None
    accumulated_rewards: Tuple[Coin, ...] = ()

    def to_short_json(self) -> Dict[str, Any]:
        return {"delegator": self.delegator, "validator": self.validator, "amount": self.amount.to_json()}

    def to_json(self) -> Dict[str, Any]:
        out = self.to_short_json()
        out["can_redelegate"] = (self.can_redelegate or Coin(self.amount.denom, 0)).to_json()
        out["accumulated_rewards"] = coins_to_json(self.accumulated_rewards)
        return out


@dataclass
class StakingQuerier:
    bonded_denom: str = ""
    validators: List[Validator] = field(default_factory=list)
    delegations: List[FullDelegation] = field(default_factory=list)

    def validator(self, address: str) -> Optional[Validator]:
        return next((v for v in self.validators if v.address == address), None)

    def all_delegations(self, delegator: str) -> List[FullDelegation]:
        return [d for d in self.delegations if d.delegator == delegator]

    def delegation(self, delegator: str, validator: str) -> Optional[FullDelegation]:
        return next(
            (d for d in self.delegations if d.delegator == delegator and d.validator == validator),
            None,
        )


# ------------------------------------------------------------------------- #
# Router
# ------------------------------------------------------------------------- #

class QueryTarget(Protocol):
    """Anything that can answer a smart query (a contract instance)."""

    def query_raw(self, msg: bytes) -> ContractResult[bytes]: ...


Resolver = Callable[[str], Optional[QueryTarget]]
CustomHandler = Callable[[Any], bytes]


def _no_custom_handler(body: Any) -> bytes:
    raise UnsupportedRequest("custom")


def _encode(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


class ChainQuerier:
    """
    Multiplexes query requests onto the bank/staking tables, other contracts
    and the custom handler.
    """

    def __init__(
        self,
        bank: BankQuerier,
        staking: Optional[StakingQuerier] = None,
        *,
        resolve: Optional[Resolver] = None,
        custom_handler: Optional[CustomHandler] = None,
        max_depth: int = 64,
    ) -> None:
        self.bank = bank
        self.max_depth = max_depth
        self._depth = 0
        self.staking = staking or StakingQuerier()
        self._resolve: Resolver = resolve or (lambda _addr: None)
        self.custom_handler: CustomHandler = custom_handler or _no_custom_handler

    def route(self, request: Union[bytes, str], gas_limit: int) -> Tuple[ContractResult[bytes], int]:
        """
        Answer one raw JSON request. Returns (result, gas). System failures
        (NoSuchContract, UnsupportedRequest, malformed request, OutOfGas) are
        raised; contract-level failures of a smart query come back as Err.
        """
        raw = request.encode("utf-8") if isinstance(request, str) else bytes(request)
        parsed = parse_query_request(raw)
        result = self.answer(parsed)

        payload = result.value if result.is_ok else (result.error or "").encode("utf-8")
        gas = len(raw) + len(payload or b"")
        if gas > gas_limit:
            raise OutOfGas(
                f"out of gas: query costs {gas}, remaining {gas_limit}",
                data={"need": gas, "remaining": gas_limit},
            )
        return result, gas

    def answer(self, request: QueryRequest) -> ContractResult[bytes]:
        """Answer a parsed request without gas accounting."""
        if isinstance(request, BankBalance):
            return ContractResult.ok(_encode({"amount": self.bank.balance(request.address, request.denom).to_json()}))
        if isinstance(request, BankAllBalances):
            return ContractResult.ok(_encode({"amount": coins_to_json(self.bank.all_balances(request.address))}))
        if isinstance(request, StakingBondedDenom):
            return ContractResult.ok(_encode({"denom": self.staking.bonded_denom}))
        if isinstance(request, StakingAllValidators):
            return ContractResult.ok(_encode({"validators": [v.to_json() for v in self.staking.validators]}))
        if isinstance(request, StakingValidator):
            v = self.staking.validator(request.address)
            return ContractResult.ok(_encode({"validator": v.to_json() if v else None}))
        if isinstance(request, StakingAllDelegations):
            ds = self.staking.all_delegations(request.delegator)
            return ContractResult.ok(_encode({"delegations": [d.to_short_json() for d in ds]}))
        if isinstance(request, StakingDelegation):
            d = self.staking.delegation(request.delegator, request.validator)
            return ContractResult.ok(_encode({"delegation": d.to_json() if d else None}))
        if isinstance(request, WasmSmart):
            target = self._resolve(request.contract_addr)
            if target is None:
                raise NoSuchContract(request.contract_addr)
            if self._depth >= self.max_depth:
                err = RecursionLimitExceeded(self._depth + 1, self.max_depth)
                log.warning("smart query to %s too deep: %s", request.contract_addr, err)
                return ContractResult.err(str(err))
            self._depth += 1
            try:
                return target.query_raw(request.msg)
            finally:
                self._depth -= 1
        if isinstance(request, WasmRaw):
            raise UnsupportedRequest("wasm.raw")
        if isinstance(request, Custom):
            try:
                return ContractResult.ok(self.custom_handler(request.body))
            except ContractError as e:
                log.info("custom query failed: %s", e)
                return ContractResult.err(str(e))
        raise UnsupportedRequest(type(request).__name__)


__all__ = [
    "BankBalance",
    "BankAllBalances",
    "StakingBondedDenom",
    "StakingAllValidators",
    "StakingValidator",
    "StakingAllDelegations",
    "StakingDelegation",
    "WasmSmart",
    "WasmRaw",
    "Custom",
    "QueryRequest",
    "parse_query_request",
    "BankQuerier",
    "StakingQuerier",
    "Validator",
    "FullDelegation",
    "ChainQuerier",
    "QueryTarget",
    "CustomHandler",
]
