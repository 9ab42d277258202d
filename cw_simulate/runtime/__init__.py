"""
cw_simulate.runtime — leaf components of the mocked chain.

Address codec, gas meter, gas-metered store, chain types, query router and
execution backends. Nothing here knows about the registry or the engine.
"""

from .address import AddressCodec
from .backend import ExecutionBackend, PythonContractBackend, create_backend, register_backend
from .gasmeter import GasMeter
from .querier import BankQuerier, ChainQuerier, StakingQuerier
from .storage import GasMeteredStore, Order

__all__ = [
    "AddressCodec",
    "ExecutionBackend",
    "PythonContractBackend",
    "create_backend",
    "register_backend",
    "GasMeter",
    "BankQuerier",
    "ChainQuerier",
    "StakingQuerier",
    "GasMeteredStore",
    "Order",
]
