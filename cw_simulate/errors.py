"""
cw_simulate.errors — exceptions for the simulation engine and mocked chain.

Every failure inside the simulator is a *typed exception* that is converted
into an ``{"error": ...}`` payload at the Simulation Engine boundary. These
classes are dependency-free so they can be imported from the lowest layers
(gas meter, store, address codec) without cycles.

Hierarchy
---------
SimError (base)
 ├─ ConfigError            : bad genesis file / settings; fatal at startup
 ├─ AddressError           : canonicalize/humanize rejected an address
 ├─ NoSuchContract         : registry lookup failed
 ├─ IteratorNotFound       : store cursor id is unknown
 ├─ NoAccountFound         : sender/account could not be resolved
 ├─ UnsupportedRequest     : query kind the mock chain does not answer
 ├─ OutOfGas               : gas meter would exceed its limit
 ├─ ContractError          : the contract itself returned an error
 │   └─ RecursionLimitExceeded : cross-contract dispatch went too deep
 └─ BackendError           : execution backend failure (trap, bad module, bad payload)

Notes
-----
* ``OutOfGas``, ``ContractError`` and ``BackendError`` are recoverable: the
  contract instance stays usable for the next call.
* ``ConfigError`` is the only class that is expected to abort a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class SimError(Exception):
    """
    Base simulator error.

    Attributes:
        message: Human-readable explanation (surfaced verbatim to callers).
        code:    Stable machine code string (e.g., 'OUT_OF_GAS').
        data:    Optional structured details (kept JSON-serializable).
    """
    message: str = "simulation error"
    code: str = "SIM_ERROR"
    data: Optional[Dict[str, Any]] = field(default=None)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict for logs and REST errors."""
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


class ConfigError(SimError):
    def __init__(self, message: str = "invalid configuration", *, data: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="CONFIG_ERROR", data=data)


class AddressError(SimError):
    """
    Address codec failure.

    ``reason`` is one of: TooShort, TooLong, LengthMismatch, Malformed.
    """
    def __init__(self, message: str, *, reason: str, data: Optional[Dict[str, Any]] = None):
        d: Dict[str, Any] = dict(data or {})
        d.setdefault("reason", reason)
        super().__init__(message=message, code="ADDRESS_ERROR", data=d)
        self.reason = reason


class NoSuchContract(SimError):
    def __init__(self, address: str):
        super().__init__(
            message=f"No such contract: {address}",
            code="NO_SUCH_CONTRACT",
            data={"address": address},
        )


class IteratorNotFound(SimError):
    def __init__(self, iterator_id: int):
        super().__init__(
            message=f"Iterator {iterator_id} not found",
            code="ITERATOR_NOT_FOUND",
            data={"id": iterator_id},
        )


class NoAccountFound(SimError):
    def __init__(self, message: str = "No account found", *, address: Optional[str] = None):
        super().__init__(
            message=message,
            code="NO_ACCOUNT_FOUND",
            data={"address": address} if address is not None else None,
        )


class UnsupportedRequest(SimError):
    def __init__(self, kind: str):
        super().__init__(
            message=f"Unsupported query type: {kind}",
            code="UNSUPPORTED_REQUEST",
            data={"kind": kind},
        )


class OutOfGas(SimError):
    """
    Gas exhaustion.

    Typical triggers:
      - GasMeter.consume would exceed the limit
      - query request+response bytes exceed the caller's remaining gas
    """
    def __init__(self, message: str = "out of gas", *, data: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="OUT_OF_GAS", data=data)


class ContractError(SimError):
    """
    Error returned by contract logic. Contracts raise this (usually through
    ``cw_simulate.sdk.ContractError``) to fail a call with a message that is
    surfaced to the caller verbatim.
    """
    def __init__(self, message: str = "contract error", *, data: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="CONTRACT_ERROR", data=data)


class RecursionLimitExceeded(ContractError):
    def __init__(self, depth: int, limit: int):
        super().__init__(
            f"Recursion limit exceeded: depth {depth} > {limit}",
            data={"depth": depth, "limit": limit},
        )
        self.code = "RECURSION_LIMIT_EXCEEDED"


class BackendError(SimError):
    """
    Infrastructure failure inside the execution backend: a module that does not
    load, a payload that does not parse, or a trap raised while running.
    """
    def __init__(self, message: str = "backend error", *, data: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="BACKEND_ERROR", data=data)


def error_payload(err: BaseException) -> Dict[str, Any]:
    """Map any exception to the ``{"error": ...}`` shape used at the boundary."""
    return {"error": str(err) or err.__class__.__name__}


__all__ = [
    "SimError",
    "ConfigError",
    "AddressError",
    "NoSuchContract",
    "IteratorNotFound",
    "NoAccountFound",
    "UnsupportedRequest",
    "OutOfGas",
    "ContractError",
    "RecursionLimitExceeded",
    "BackendError",
    "error_payload",
]
