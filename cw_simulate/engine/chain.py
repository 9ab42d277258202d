"""
cw_simulate.engine.chain — the lock-guarded service object of a simulation run.

One :class:`Chain` owns everything shared between contracts:

- the re-entrant lock serializing every call (recursive dispatch and smart
  queries re-enter it from the same thread);
- the account table (bank) and static staking tables from genesis;
- the contract registry;
- the query router and the dispatcher.

Components receive the Chain explicitly; there is no module-level state.

Custom ``fetch`` queries run while the lock is held. The blocking window is
bounded by ``Settings.fetch_timeout``.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional, Sequence

from ..config import Genesis, Settings, get_settings
from ..errors import NoAccountFound
from ..logging import get_logger
from ..runtime.address import AddressCodec
from ..runtime.fetch import FetchHandler
from ..runtime.querier import BankQuerier, ChainQuerier, CustomHandler
from ..runtime.types import Attribute, Coin, CosmosMsg
from .dispatcher import Dispatcher, report_message
from .registry import Registry

log = get_logger(__name__)


class Chain:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        genesis: Optional[Genesis] = None,
        *,
        custom_handler: Optional[CustomHandler] = None,
        report: Optional[Callable[[CosmosMsg], List[Attribute]]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.genesis = genesis or self.settings.genesis()
        self.lock = threading.RLock()

        self.codec = AddressCodec(self.settings.canonical_length)
        self.bank = BankQuerier(
            {a.address: [c.to_coin() for c in a.balance] for a in self.genesis.accounts}
        )
        self.staking = self.genesis.staking.to_querier()

        self._fetch: Optional[FetchHandler] = None
        if custom_handler is None:
            self._fetch = FetchHandler(timeout=self.settings.fetch_timeout)
            custom_handler = self._fetch

        self.registry = Registry(self)
        self.querier = ChainQuerier(
            self.bank,
            self.staking,
            resolve=self.registry.get,
            custom_handler=custom_handler,
            max_depth=self.settings.max_call_depth,
        )
        self.dispatcher = Dispatcher(
            self, max_depth=self.settings.max_call_depth, report=report or report_message
        )
        log.debug(
            "chain_ready",
            chain_id=self.settings.chain_id,
            accounts=len(self.genesis.accounts),
            validators=len(self.staking.validators),
        )

    # ------------------------------ accounts ------------------------------ #

    def accounts(self) -> List[str]:
        return sorted(a.address for a in self.genesis.accounts)

    def default_account(self) -> str:
        return self.genesis.default_account()

    def resolve_account(self, account: Optional[str]) -> str:
        """
        Default to the first configured account. Anything else must be a
        genesis account or a loaded contract.
        """
        if not account:
            return self.default_account()
        if account not in self.bank:
            raise NoAccountFound(f"No account found: {account}", address=account)
        return account

    def seed_contract_balance(self, address: str) -> None:
        """Give a freshly loaded contract the configured native balance."""
        with self.lock:
            if address in self.bank:
                return
            self.bank.update_balance(
                address, [Coin(self.settings.denom, self.settings.contract_balance)]
            )

    def update_balance(self, address: str, coins: Sequence[Coin]) -> List[Coin]:
        with self.lock:
            return self.bank.update_balance(address, coins)

    # ------------------------------ lifecycle ----------------------------- #

    def close(self) -> None:
        if self._fetch is not None:
            self._fetch.close()

    def __enter__(self) -> "Chain":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


__all__ = ["Chain"]
