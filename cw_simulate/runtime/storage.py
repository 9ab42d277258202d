"""
cw_simulate.runtime.storage — per-contract key/value store with gas reporting.

Each contract instance owns exactly one GasMeteredStore. Every operation
returns ``(result, gas)``; the caller (the execution backend's host imports)
charges the gas against its own meter.

Gas schedule
------------
- get(key)           : len(key)
- set(key, value)    : len(key) + len(value)
- remove(key)        : len(key)
- scan(start, end)   : GAS_COST_RANGE (flat)
- next(iterator_id)  : len(key) + len(value) while items remain,
                       GAS_COST_LAST_ITERATION once exhausted

Iterators
---------
Scans snapshot the matching entries at creation time; later writes never
affect an open iterator. Iterator ids are strictly increasing for the life
of the store and are never reused, even after ``release_iterators()``.

Observer
--------
An optional ``observer(op, key, value)`` callable is notified after every
write (``op`` is ``"set"`` or ``"remove"``). Observer failures are logged and
never fail the write.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import IteratorNotFound, SimError

log = logging.getLogger(__name__)

GAS_COST_RANGE = 11
GAS_COST_LAST_ITERATION = 37

Observer = Callable[[str, bytes, Optional[bytes]], None]
KV = Tuple[bytes, bytes]


class Order(enum.IntEnum):
    ASCENDING = 1
    DESCENDING = 2

    @classmethod
    def parse(cls, v: "Order | int | str") -> "Order":
        if isinstance(v, Order):
            return v
        if isinstance(v, str):
            try:
                return cls[v.strip().upper()]
            except KeyError:
                raise SimError(f"unknown scan order: {v!r}") from None
        try:
            return cls(int(v))
        except ValueError:
            raise SimError(f"unknown scan order: {v!r}") from None


@dataclass
class _Cursor:
    entries: List[KV]
    position: int = 0


@dataclass(frozen=True)
class StoreCheckpoint:
    data: Dict[bytes, bytes]


def _check_bytes(v: bytes, what: str) -> bytes:
    if not isinstance(v, (bytes, bytearray, memoryview)):
        raise SimError(f"storage {what} must be bytes, got {type(v).__name__}")
    return bytes(v)


class GasMeteredStore:
    """In-memory ordered key/value store with cursor scans."""

    def __init__(
        self,
        data: Optional[Dict[bytes, bytes]] = None,
        *,
        observer: Optional[Observer] = None,
    ) -> None:
        self._data: Dict[bytes, bytes] = dict(data or {})
        self._iterators: Dict[int, _Cursor] = {}
        self._next_iterator_id = 1
        self._lock = threading.RLock()
        self.observer = observer

    # ------------------------------ kv ops ------------------------------ #

    def get(self, key: bytes) -> Tuple[Optional[bytes], int]:
        key = _check_bytes(key, "key")
        with self._lock:
            return self._data.get(key), len(key)

    def set(self, key: bytes, value: bytes) -> Tuple[None, int]:
        key = _check_bytes(key, "key")
        value = _check_bytes(value, "value")
        with self._lock:
            self._data[key] = value
        self._notify("set", key, value)
        return None, len(key) + len(value)

    def remove(self, key: bytes) -> Tuple[None, int]:
        key = _check_bytes(key, "key")
        with self._lock:
            self._data.pop(key, None)
        self._notify("remove", key, None)
        return None, len(key)

    # ------------------------------ scans ------------------------------- #

    def scan(
        self,
        start: Optional[bytes] = None,
        end: Optional[bytes] = None,
        order: "Order | int | str" = Order.ASCENDING,
    ) -> Tuple[int, int]:
        """
        Open a cursor over ``start <= key < end`` (either bound optional).
        Returns (iterator_id, gas). Inverted or empty ranges give an empty cursor.
        """
        order = Order.parse(order)
        lo = _check_bytes(start, "range start") if start is not None else None
        hi = _check_bytes(end, "range end") if end is not None else None
        with self._lock:
            if lo is not None and hi is not None and lo >= hi:
                entries: List[KV] = []
            else:
                entries = [
                    (k, self._data[k])
                    for k in sorted(self._data)
                    if (lo is None or k >= lo) and (hi is None or k < hi)
                ]
            if order is Order.DESCENDING:
                entries.reverse()
            iterator_id = self._next_iterator_id
            self._next_iterator_id += 1
            self._iterators[iterator_id] = _Cursor(entries)
        return iterator_id, GAS_COST_RANGE

    def next(self, iterator_id: int) -> Tuple[Optional[KV], int]:
        with self._lock:
            cursor = self._iterators.get(iterator_id)
            if cursor is None:
                raise IteratorNotFound(iterator_id)
            if cursor.position >= len(cursor.entries):
                return None, GAS_COST_LAST_ITERATION
            k, v = cursor.entries[cursor.position]
            cursor.position += 1
        return (k, v), len(k) + len(v)

    def release_iterators(self, since: Optional[int] = None) -> int:
        """
        Drop open cursors (only those with id >= `since` when given).
        Returns how many were released.
        """
        with self._lock:
            doomed = [i for i in self._iterators if since is None or i >= since]
            for i in doomed:
                del self._iterators[i]
        return len(doomed)

    @property
    def open_iterators(self) -> int:
        return len(self._iterators)

    @property
    def next_iterator_id(self) -> int:
        """Id the next scan will receive."""
        return self._next_iterator_id

    # ---------------------------- lifecycle ----------------------------- #

    def copy(self, *, observer: Optional[Observer] = None) -> "GasMeteredStore":
        """Independent store holding the same entries; no open iterators."""
        with self._lock:
            return GasMeteredStore(dict(self._data), observer=observer)

    def checkpoint(self) -> StoreCheckpoint:
        with self._lock:
            return StoreCheckpoint(dict(self._data))

    def restore(self, cp: StoreCheckpoint) -> None:
        with self._lock:
            self._data = dict(cp.data)

    def items(self) -> List[KV]:
        with self._lock:
            return sorted(self._data.items())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    # ----------------------------- helpers ------------------------------ #

    def _notify(self, op: str, key: bytes, value: Optional[bytes]) -> None:
        if self.observer is None:
            return
        try:
            self.observer(op, key, value)
        except Exception:
            log.warning("storage observer failed op=%s key=%s", op, key.hex(), exc_info=True)


__all__ = [
    "GasMeteredStore",
    "Order",
    "StoreCheckpoint",
    "GAS_COST_RANGE",
    "GAS_COST_LAST_ITERATION",
]
