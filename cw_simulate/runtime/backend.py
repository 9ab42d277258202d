"""
cw_simulate.runtime.backend — execution backends for contract code.

The engine talks to contract code only through :class:`ExecutionBackend`:

    instantiate(env, info, msg) -> ContractResult[Response]
    execute(env, info, msg)     -> ContractResult[Response]
    query(env, msg)             -> ContractResult[bytes]
    gas_remaining()             -> int
    set_gas_remaining(gas)      -> None

Backends are chosen by artifact suffix through a small registry
(:func:`register_backend` / :func:`create_backend`). The built-in backend for
``.py`` artifacts is :class:`PythonContractBackend`: it loads a Python module
exporting ``instantiate(deps, env, info, msg)``, ``execute(deps, env, info, msg)``
and ``query(deps, env, msg)`` and hands it gas-metered host imports:

- ``deps.storage`` : get / set / remove / range over the instance's store
- ``deps.api``     : addr_validate / addr_canonicalize / addr_humanize
- ``deps.querier`` : raw and typed chain queries through the router

Contract errors (``ContractError`` raised by the contract, address codec
rejections) come back as ``ContractResult.err``. OutOfGas and other simulator
errors propagate. Any other exception is a trap and becomes ``BackendError``.
"""

from __future__ import annotations

import importlib.abc
import importlib.util
import json
import logging
import types as _pytypes
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

from ..errors import AddressError, BackendError, ContractError, SimError
from .address import CANONICALIZE_GAS, HUMANIZE_GAS, AddressCodec
from .gasmeter import GasMeter
from .storage import GasMeteredStore, Order
from .types import Coin, ContractResult, Env, MessageInfo, Response

log = logging.getLogger(__name__)


# ------------------------------------------------------------------------- #
# Interfaces
# ------------------------------------------------------------------------- #

class QueryRouter(Protocol):
    def route(self, request: Union[bytes, str], gas_limit: int) -> Tuple[ContractResult[bytes], int]: ...


@runtime_checkable
class ExecutionBackend(Protocol):
    def instantiate(self, env: Env, info: MessageInfo, msg: bytes) -> ContractResult[Response]: ...
    def execute(self, env: Env, info: MessageInfo, msg: bytes) -> ContractResult[Response]: ...
    def query(self, env: Env, msg: bytes) -> ContractResult[bytes]: ...
    def gas_remaining(self) -> int: ...
    def set_gas_remaining(self, gas: int) -> None: ...


BackendFactory = Callable[..., ExecutionBackend]

_BACKENDS: Dict[str, BackendFactory] = {}


def register_backend(suffix: str, factory: BackendFactory) -> None:
    """Register `factory` for artifacts ending in `suffix` (e.g. ".py")."""
    if not suffix.startswith("."):
        suffix = "." + suffix
    _BACKENDS[suffix.lower()] = factory


def registered_suffixes() -> List[str]:
    return sorted(_BACKENDS)


def create_backend(
    code: bytes,
    *,
    suffix: str,
    name: str,
    storage: GasMeteredStore,
    api: AddressCodec,
    querier: QueryRouter,
    gas_limit: int,
) -> ExecutionBackend:
    factory = _BACKENDS.get(suffix.lower())
    if factory is None:
        raise BackendError(
            f"no execution backend for {suffix!r} artifacts (available: {', '.join(registered_suffixes())})"
        )
    return factory(code, name=name, storage=storage, api=api, querier=querier, gas_limit=gas_limit)


# ------------------------------------------------------------------------- #
# Host imports handed to Python contracts
# ------------------------------------------------------------------------- #

class Storage:
    """Contract view of the instance store. Every access is charged."""

    def __init__(self, store: GasMeteredStore, meter: GasMeter, *, readonly: bool = False) -> None:
        self._store = store
        self._meter = meter
        self._readonly = readonly

    def get(self, key: bytes) -> Optional[bytes]:
        value, gas = self._store.get(key)
        self._meter.consume(gas)
        return value

    def set(self, key: bytes, value: bytes) -> None:
        self._check_writable()
        self._meter.ensure(len(key) + len(value))
        _, gas = self._store.set(key, value)
        self._meter.consume(gas)

    def remove(self, key: bytes) -> None:
        self._check_writable()
        self._meter.ensure(len(key))
        _, gas = self._store.remove(key)
        self._meter.consume(gas)

    def range(
        self,
        start: Optional[bytes] = None,
        end: Optional[bytes] = None,
        order: Union[Order, int, str] = Order.ASCENDING,
    ) -> Iterator[Tuple[bytes, bytes]]:
        iterator_id, gas = self._store.scan(start, end, order)
        self._meter.consume(gas)
        return self._drain(iterator_id)

    def _drain(self, iterator_id: int) -> Iterator[Tuple[bytes, bytes]]:
        while True:
            item, gas = self._store.next(iterator_id)
            self._meter.consume(gas)
            if item is None:
                return
            yield item

    def _check_writable(self) -> None:
        if self._readonly:
            raise BackendError("storage is read-only during query")


class Api:
    def __init__(self, codec: AddressCodec, meter: GasMeter) -> None:
        self._codec = codec
        self._meter = meter

    def addr_canonicalize(self, human: str) -> bytes:
        self._meter.ensure(CANONICALIZE_GAS)
        canonical, gas = self._codec.canonicalize(human)
        self._meter.consume(gas)
        return canonical

    def addr_humanize(self, canonical: bytes) -> str:
        self._meter.ensure(HUMANIZE_GAS)
        human, gas = self._codec.humanize(canonical)
        self._meter.consume(gas)
        return human

    def addr_validate(self, human: str) -> str:
        back = self.addr_humanize(self.addr_canonicalize(human))
        if back != human:
            raise AddressError(f"Invalid input: address not normalized: {human}", reason="Malformed")
        return back


class Querier:
    def __init__(self, router: QueryRouter, meter: GasMeter) -> None:
        self._router = router
        self._meter = meter

    def query_raw(self, request: Union[bytes, str, Dict[str, Any]]) -> bytes:
        raw = request if isinstance(request, (bytes, str)) else json.dumps(request).encode("utf-8")
        result, gas = self._router.route(raw, self._meter.remaining)
        self._meter.consume(gas)
        if not result.is_ok:
            raise ContractError(f"Querier contract error: {result.error}")
        return result.value or b""

    def query(self, request: Union[bytes, str, Dict[str, Any]]) -> Any:
        return json.loads(self.query_raw(request))

    def query_balance(self, address: str, denom: str) -> Coin:
        res = self.query({"bank": {"balance": {"address": address, "denom": denom}}})
        return Coin.from_json(res["amount"])

    def query_all_balances(self, address: str) -> List[Coin]:
        res = self.query({"bank": {"all_balances": {"address": address}}})
        return [Coin.from_json(c) for c in res["amount"]]

    def query_wasm_smart(self, contract_addr: str, msg: Any) -> Any:
        return self.query({"wasm": {"smart": {"contract_addr": contract_addr, "msg": msg}}})


class Deps:
    __slots__ = ("storage", "api", "querier")

    def __init__(self, storage: Storage, api: Api, querier: Querier) -> None:
        self.storage = storage
        self.api = api
        self.querier = querier


# ------------------------------------------------------------------------- #
# Python contract backend
# ------------------------------------------------------------------------- #

def _parse_msg(entry: str, msg: bytes) -> Any:
    try:
        return json.loads(bytes(msg).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise BackendError(f"Error parsing into type {entry} message: {e}") from e


def _to_response(value: Any) -> Response:
    if value is None:
        return Response()
    if isinstance(value, Response):
        return value
    if isinstance(value, dict):
        return Response.from_json(value)
    raise BackendError(f"contract returned {type(value).__name__}, expected Response")


def _to_binary(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


class _ContractSourceLoader(importlib.abc.InspectLoader):
    """In-memory loader for contract source; the module is never put in sys.modules."""

    def __init__(self, code: bytes) -> None:
        self._code = bytes(code)

    def get_source(self, fullname: str) -> str:
        return self._code.decode("utf-8")

    def is_package(self, fullname: str) -> bool:
        return False


class PythonContractBackend:
    """Runs a contract written as a plain Python module."""

    ENTRY_POINTS = ("instantiate", "execute", "query")

    def __init__(
        self,
        code: bytes,
        *,
        name: str,
        storage: GasMeteredStore,
        api: AddressCodec,
        querier: QueryRouter,
        gas_limit: int,
    ) -> None:
        self.name = name
        self._store = storage
        self._codec = api
        self._router = querier
        self._meter = GasMeter(limit=gas_limit)
        self._module = self._load(code, name)

    @staticmethod
    def _load(code: bytes, name: str) -> _pytypes.ModuleType:
        loader = _ContractSourceLoader(code)
        spec = importlib.util.spec_from_loader(f"cw_contract_{name}", loader, origin=f"<contract {name}>")
        if spec is None:
            raise BackendError(f"failed to load contract {name}: no module spec")
        module = importlib.util.module_from_spec(spec)
        try:
            loader.exec_module(module)
        except Exception as e:
            raise BackendError(f"failed to load contract {name}: {type(e).__name__}: {e}") from e
        exported = [ep for ep in PythonContractBackend.ENTRY_POINTS if callable(getattr(module, ep, None))]
        log.debug("loaded python contract %s exports=%s", name, exported)
        return module

    # --------------------------- interface --------------------------- #

    def instantiate(self, env: Env, info: MessageInfo, msg: bytes) -> ContractResult[Response]:
        res = self._invoke("instantiate", env, info, msg, readonly=False)
        return ContractResult.ok(_to_response(res.value)) if res.is_ok else ContractResult.err(res.error or "")

    def execute(self, env: Env, info: MessageInfo, msg: bytes) -> ContractResult[Response]:
        res = self._invoke("execute", env, info, msg, readonly=False)
        return ContractResult.ok(_to_response(res.value)) if res.is_ok else ContractResult.err(res.error or "")

    def query(self, env: Env, msg: bytes) -> ContractResult[bytes]:
        res = self._invoke("query", env, None, msg, readonly=True)
        return ContractResult.ok(_to_binary(res.value)) if res.is_ok else ContractResult.err(res.error or "")

    def gas_remaining(self) -> int:
        return self._meter.remaining

    def set_gas_remaining(self, gas: int) -> None:
        self._meter.set_remaining(gas)

    # ---------------------------- helpers ---------------------------- #

    def _invoke(
        self,
        entry: str,
        env: Env,
        info: Optional[MessageInfo],
        msg: bytes,
        *,
        readonly: bool,
    ) -> ContractResult[Any]:
        fn = getattr(self._module, entry, None)
        if not callable(fn):
            raise BackendError(f"contract {self.name} does not export {entry!r}")
        parsed = _parse_msg(entry, msg)
        deps = Deps(
            Storage(self._store, self._meter, readonly=readonly),
            Api(self._codec, self._meter),
            Querier(self._router, self._meter),
        )
        args = (deps, env, parsed) if info is None else (deps, env, info, parsed)
        try:
            return ContractResult.ok(fn(*args))
        except (ContractError, AddressError) as e:
            return ContractResult.err(str(e))
        except SimError:
            raise
        except Exception as e:
            raise BackendError(f"contract {self.name} trapped in {entry}: {type(e).__name__}: {e}") from e


register_backend(".py", PythonContractBackend)


__all__ = [
    "ExecutionBackend",
    "QueryRouter",
    "BackendFactory",
    "register_backend",
    "registered_suffixes",
    "create_backend",
    "PythonContractBackend",
    "Deps",
    "Storage",
    "Api",
    "Querier",
]
