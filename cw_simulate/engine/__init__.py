"""
cw_simulate.engine — chain service object, contract instances, registry,
recursive dispatch, the simulation boundary and hot reload.
"""

from .chain import Chain
from .dispatcher import Dispatcher
from .instance import CallResult, ContractInstance
from .registry import Registry
from .simulator import KINDS, Simulator
from .watcher import Artifact, Watcher, discover_artifacts

__all__ = [
    "Chain",
    "Dispatcher",
    "CallResult",
    "ContractInstance",
    "Registry",
    "KINDS",
    "Simulator",
    "Artifact",
    "Watcher",
    "discover_artifacts",
]
