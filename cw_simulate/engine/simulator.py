"""
cw_simulate.engine.simulator — the ``call(kind, payload, account)`` boundary.

Front ends (CLI, REPL, REST) drive contracts only through :class:`Simulator`.
Nothing raised below this layer escapes it: every failure becomes an
``{"error": ...}`` result.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

from ..errors import NoSuchContract, SimError, error_payload
from ..logging import bind_call_context, clear_call_context, get_logger
from ..runtime.types import Coin
from .chain import Chain
from .instance import KIND_EXECUTE, KIND_INSTANTIATE, KIND_QUERY, CallResult, ContractInstance

log = get_logger(__name__)

KINDS = (KIND_INSTANTIATE, KIND_EXECUTE, KIND_QUERY)

Payload = Union[bytes, bytearray, str]


class Simulator:
    """
    Orchestrates lifecycle calls against the contracts of one Chain.

    ``contract`` is the address used when a call does not name one (the
    artifact the CLI was started with).
    """

    def __init__(self, chain: Chain, contract: Optional[str] = None) -> None:
        self.chain = chain
        self.contract = contract

    def call(
        self,
        kind: str,
        payload: Payload,
        account: Optional[str] = None,
        *,
        contract: Optional[str] = None,
        gas_limit: Optional[int] = None,
    ) -> str:
        """Run one call and return its JSON string result."""
        return self.run(kind, payload, account, contract=contract, gas_limit=gas_limit).to_json()

    def run(
        self,
        kind: str,
        payload: Payload,
        account: Optional[str] = None,
        *,
        contract: Optional[str] = None,
        gas_limit: Optional[int] = None,
        funds: Sequence[Coin] = (),
    ) -> CallResult:
        """Like :meth:`call` but returns the full CallResult (attributes, gas)."""
        kind = (kind or "").strip().lower()
        address = contract or self.contract or ""
        bind_call_context(contract=address, kind=kind)
        try:
            with self.chain.lock:
                return self._run(kind, payload, account, address, gas_limit, funds)
        except Exception as e:
            if isinstance(e, SimError):
                log.info("call_rejected", error=error_payload(e)["error"], code=e.code)
            else:
                log.exception("call_crashed")
            return CallResult.failure(kind or "call", e)
        finally:
            clear_call_context("contract", "kind")

    def _run(
        self,
        kind: str,
        payload: Payload,
        account: Optional[str],
        address: str,
        gas_limit: Optional[int],
        funds: Sequence[Coin],
    ) -> CallResult:
        if kind not in KINDS:
            raise SimError(f"Unknown call kind: {kind!r} (expected one of {', '.join(KINDS)})", code="UNKNOWN_KIND")
        instance = self.instance(address)
        raw = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)

        if kind == KIND_QUERY:
            return instance.query(raw, gas_limit=gas_limit)
        sender = self.chain.resolve_account(account)
        if kind == KIND_INSTANTIATE:
            result = instance.instantiate(raw, sender, funds, gas_limit=gas_limit)
        else:
            result = instance.execute(raw, sender, funds, gas_limit=gas_limit)
        for attr in result.attributes:
            log.info("attribute", key=attr.key, value=attr.value)
        return result

    def instance(self, address: Optional[str] = None) -> ContractInstance:
        address = address or self.contract or ""
        inst = self.chain.registry.get(address)
        if inst is None:
            raise NoSuchContract(address)
        return inst


__all__ = ["Simulator", "KINDS"]
