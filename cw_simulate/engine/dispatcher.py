"""
cw_simulate.engine.dispatcher — resolve outbound messages of a Response.

Only ``WasmExecute`` is resolved here: the target is looked up in the
registry and executed synchronously with ``sender = current contract`` and
the message's funds. Its result JSON string becomes an attribute keyed by
the target address. Every other message kind is handed to a reporter that
turns it into attributes.

Failures never abort the outer call:

- missing target      -> (target, {"error":"No such contract: <addr>"})
- depth over the limit-> (target, {"error":"Recursion limit exceeded: ..."})
- reporter failure    -> (message kind, {"error":"<reporter error>"})

Depth is an explicit counter: the top-level call runs at depth 0 and each
dispatched execute runs one level deeper.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Callable, List, Sequence

from ..errors import BackendError, NoSuchContract, RecursionLimitExceeded, error_payload
from ..logging import get_logger
from ..runtime.types import Attribute, BankSend, CosmosMsg, Opaque, WasmExecute

if TYPE_CHECKING:  # pragma: no cover
    from .chain import Chain

log = get_logger(__name__)

Reporter = Callable[[CosmosMsg], List[Attribute]]


def _compact(obj: object) -> str:
    return json.dumps(obj, separators=(",", ":"))


def report_message(msg: CosmosMsg) -> List[Attribute]:
    """Default reporter: one attribute describing the unresolved message."""
    if isinstance(msg, BankSend):
        return [Attribute("bank.send", _compact(msg.to_json()["bank"]["send"]))]
    if isinstance(msg, Opaque):
        return [Attribute(msg.kind, _compact(msg.body))]
    raise BackendError(f"cannot report message {type(msg).__name__}")


class Dispatcher:
    def __init__(self, chain: "Chain", *, max_depth: int = 64, report: Reporter = report_message) -> None:
        self.chain = chain
        self.max_depth = max_depth
        self.report = report

    def dispatch(self, sender: str, messages: Sequence[CosmosMsg], depth: int = 0) -> List[Attribute]:
        out: List[Attribute] = []
        for msg in messages:
            if isinstance(msg, WasmExecute):
                out.append(self._execute(sender, msg, depth))
            elif isinstance(msg, (BankSend, Opaque)):
                out.extend(self._report(msg))
            else:
                raise BackendError(f"unknown message type {type(msg).__name__}")
        return out

    def _report(self, msg: CosmosMsg) -> List[Attribute]:
        try:
            return list(self.report(msg))
        except Exception as e:
            key = msg.kind if isinstance(msg, Opaque) else "bank.send"
            log.warning("dispatch_report_failed", kind=key, error=str(e), exc_info=True)
            return [Attribute(key, _compact(error_payload(e)))]

    def _execute(self, sender: str, msg: WasmExecute, depth: int) -> Attribute:
        target_addr = msg.contract_addr
        next_depth = depth + 1
        if next_depth > self.max_depth:
            err = RecursionLimitExceeded(next_depth, self.max_depth)
            log.warning("dispatch_depth_exceeded", sender=sender, target=target_addr, depth=next_depth)
            return Attribute(target_addr, _compact(error_payload(err)))

        target = self.chain.registry.get(target_addr)
        if target is None:
            log.info("dispatch_missing_target", sender=sender, target=target_addr)
            return Attribute(target_addr, _compact(error_payload(NoSuchContract(target_addr))))

        result = target.execute(msg.msg, sender=sender, funds=msg.funds, depth=next_depth)
        log.info("dispatch_result", sender=sender, target=target_addr, depth=next_depth, ok=result.ok)
        return Attribute(target_addr, result.to_json())


__all__ = ["Dispatcher", "report_message", "Reporter"]
