"""
cw_simulate.engine.registry — address -> ContractInstance.

``load_or_replace`` builds the new instance first and only then installs it,
all under the chain lock: a module that fails to load leaves the previous
instance in place. Replacing an instance copies the old store (a full,
independent copy) and block height into the new one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from ..logging import get_logger
from .instance import ContractInstance

if TYPE_CHECKING:  # pragma: no cover
    from .chain import Chain

log = get_logger(__name__)


class Registry:
    def __init__(self, chain: "Chain") -> None:
        self._chain = chain
        self._instances: Dict[str, ContractInstance] = {}

    def load_or_replace(self, address: str, code: bytes, *, suffix: str = ".py") -> ContractInstance:
        with self._chain.lock:
            prev = self._instances.get(address)
            inst = ContractInstance(
                self._chain,
                address,
                code,
                suffix=suffix,
                store=prev.store.copy() if prev is not None else None,
                height=prev.height if prev is not None else None,
            )
            self._instances[address] = inst
            if prev is None:
                self._chain.seed_contract_balance(address)
                log.info("contract_loaded", address=address, suffix=suffix, code_size=len(inst.code))
            else:
                log.info(
                    "contract_replaced",
                    address=address,
                    suffix=suffix,
                    code_size=len(inst.code),
                    storage_keys=len(inst.store),
                    height=inst.height,
                )
            return inst

    def get(self, address: str) -> Optional[ContractInstance]:
        with self._chain.lock:
            return self._instances.get(address)

    def addresses(self) -> List[str]:
        with self._chain.lock:
            return sorted(self._instances)

    def __contains__(self, address: object) -> bool:
        return address in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[ContractInstance]:
        with self._chain.lock:
            items = [self._instances[a] for a in sorted(self._instances)]
        return iter(items)


__all__ = ["Registry"]
