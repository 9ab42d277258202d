"""
cw_simulate.engine.instance — one loaded contract bound to one address.

A ContractInstance owns its Env, its GasMeteredStore and its execution
backend. Every lifecycle call follows the same steps:

1. snapshot the backend's remaining gas, capping it to the call's declared
   gas limit if one is given;
2. invoke the backend with (Env, MessageInfo, payload);
3. on success, hand outbound messages to the chain's Dispatcher and append
   the attributes it reports after the contract's own;
4. on success of instantiate/execute, advance block height by one;
5. report gas used = before - after.

Failures never leave the instance: they come back as a failed CallResult,
the store is rolled back for state-changing calls, and the instance stays
ready for the next call. Iterators opened during a call are released when it
returns.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..errors import BackendError, SimError
from ..logging import get_logger
from ..runtime.backend import ExecutionBackend, create_backend
from ..runtime.storage import GasMeteredStore
from ..runtime.types import Attribute, BlockInfo, Coin, ContractResult, Env, MessageInfo

if TYPE_CHECKING:  # pragma: no cover
    from .chain import Chain

log = get_logger(__name__)

KIND_INSTANTIATE = "instantiate"
KIND_EXECUTE = "execute"
KIND_QUERY = "query"
STATE_CHANGING = (KIND_INSTANTIATE, KIND_EXECUTE)


def compact_json(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"))


@dataclass
class CallResult:
    """Outcome of one lifecycle call."""
    kind: str
    ok: bool
    attributes: List[Attribute] = field(default_factory=list)
    data: Optional[bytes] = None
    error: Optional[str] = None
    gas_used: int = 0

    @classmethod
    def failure(cls, kind: str, err: BaseException, *, gas_used: int = 0) -> "CallResult":
        return cls(kind=kind, ok=False, error=str(err) or err.__class__.__name__, gas_used=gas_used)

    def to_json(self) -> str:
        """
        ``{"message":"<kind> succeeded"}`` for state-changing calls, the raw
        query bytes for queries, ``{"error":"..."}`` on failure.
        """
        if not self.ok:
            return compact_json({"error": self.error})
        if self.kind == KIND_QUERY:
            return (self.data or b"").decode("utf-8", errors="replace")
        return compact_json({"message": f"{self.kind} succeeded"})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "ok": self.ok,
            "attributes": [a.to_json() for a in self.attributes],
            "error": self.error,
            "gas_used": self.gas_used,
        }


class ContractInstance:
    def __init__(
        self,
        chain: "Chain",
        address: str,
        code: bytes,
        *,
        suffix: str = ".py",
        store: Optional[GasMeteredStore] = None,
        height: Optional[int] = None,
    ) -> None:
        settings = chain.settings
        self.chain = chain
        self.address = address
        self.code = bytes(code)
        self.suffix = suffix
        self.store = store if store is not None else GasMeteredStore()
        self.store.observer = self._observe
        self.env = Env(
            block=BlockInfo(
                height=settings.block_height if height is None else height,
                time=settings.block_time,
                chain_id=settings.chain_id,
            ),
            contract_address=address,
        )
        self.gas_limit = settings.gas_limit
        self.gas_used = 0
        self.backend: ExecutionBackend = create_backend(
            self.code,
            suffix=suffix,
            name=address,
            storage=self.store,
            api=chain.codec,
            querier=chain.querier,
            gas_limit=self.gas_limit,
        )

    @property
    def height(self) -> int:
        return self.env.block.height

    # ------------------------------ lifecycle ------------------------------ #

    def instantiate(
        self,
        payload: bytes,
        sender: str,
        funds: Sequence[Coin] = (),
        *,
        gas_limit: Optional[int] = None,
        depth: int = 0,
    ) -> CallResult:
        info = MessageInfo(sender=sender, funds=tuple(funds))
        return self._call(KIND_INSTANTIATE, payload, info, gas_limit, depth)

    def execute(
        self,
        payload: bytes,
        sender: str,
        funds: Sequence[Coin] = (),
        *,
        gas_limit: Optional[int] = None,
        depth: int = 0,
    ) -> CallResult:
        info = MessageInfo(sender=sender, funds=tuple(funds))
        return self._call(KIND_EXECUTE, payload, info, gas_limit, depth)

    def query(self, payload: bytes, *, gas_limit: Optional[int] = None) -> CallResult:
        return self._call(KIND_QUERY, payload, None, gas_limit, 0)

    def query_raw(self, msg: bytes) -> ContractResult[bytes]:
        """
        Smart-query entry used by the router. The query is metered and counted
        in ``gas_used`` but leaves the remaining budget where it was, so a
        contract querying itself is charged only for the query bytes.
        """
        remaining = self.backend.gas_remaining()
        try:
            res = self.query(msg)
        finally:
            self.backend.set_gas_remaining(remaining)
        return ContractResult.ok(res.data or b"") if res.ok else ContractResult.err(res.error or "")

    # ------------------------------- internals ------------------------------ #

    def _call(
        self,
        kind: str,
        payload: bytes,
        info: Optional[MessageInfo],
        gas_limit: Optional[int],
        depth: int,
    ) -> CallResult:
        with self.chain.lock:
            before = self.backend.gas_remaining()
            budget = before if gas_limit is None else max(0, min(gas_limit, before))
            self.backend.set_gas_remaining(budget)
            checkpoint = self.store.checkpoint() if kind in STATE_CHANGING else None
            first_iterator = self.store.next_iterator_id
            result: Optional[CallResult] = None
            log.debug("call_started", contract=self.address, kind=kind, depth=depth, gas_budget=budget)
            try:
                result = self._invoke(kind, payload, info, depth)
                return result
            finally:
                used = budget - self.backend.gas_remaining()
                self.backend.set_gas_remaining(max(0, before - used))
                self.gas_used += used
                self.store.release_iterators(since=first_iterator)
                if checkpoint is not None and (result is None or not result.ok):
                    self.store.restore(checkpoint)
                if result is not None:
                    result.gas_used = used
                    log.info(
                        "call_finished",
                        contract=self.address,
                        kind=kind,
                        ok=result.ok,
                        gas_used=used,
                        height=self.height,
                        error=result.error,
                    )

    def _invoke(self, kind: str, payload: bytes, info: Optional[MessageInfo], depth: int) -> CallResult:
        try:
            if kind == KIND_QUERY:
                q = self.backend.query(self.env, payload)
                if not q.is_ok:
                    return CallResult(kind=kind, ok=False, error=q.error)
                return CallResult(kind=kind, ok=True, data=q.value)

            if info is None:
                raise BackendError(f"{kind} needs message info")
            if kind == KIND_INSTANTIATE:
                res = self.backend.instantiate(self.env, info, payload)
            else:
                res = self.backend.execute(self.env, info, payload)
        except SimError as e:
            return CallResult.failure(kind, e)

        if not res.is_ok:
            return CallResult(kind=kind, ok=False, error=res.error)

        response = res.value
        attributes = list(response.attributes)
        if response.messages:
            attributes.extend(self.chain.dispatcher.dispatch(self.address, response.messages, depth))
        self.env = self.env.next_block()
        return CallResult(kind=kind, ok=True, attributes=attributes, data=response.data)

    def _observe(self, op: str, key: bytes, value: Optional[bytes]) -> None:
        log.debug(
            "storage_write",
            contract=self.address,
            op=op,
            key=key.hex(),
            value_len=None if value is None else len(value),
        )

    def describe(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "height": self.height,
            "gas_used": self.gas_used,
            "gas_remaining": self.backend.gas_remaining(),
            "storage_keys": len(self.store),
        }


__all__ = [
    "CallResult",
    "ContractInstance",
    "KIND_INSTANTIATE",
    "KIND_EXECUTE",
    "KIND_QUERY",
    "compact_json",
]
