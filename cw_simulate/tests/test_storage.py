"""
Gas-metered store:
- get/set/remove laws and their gas costs
- scan ordering, bounds, snapshot semantics and iterator ids
- checkpoints, copies and the write observer
"""
from __future__ import annotations

import logging

import pytest
from hypothesis import given, settings, strategies as st

from cw_simulate.errors import IteratorNotFound, SimError
from cw_simulate.runtime.storage import GAS_COST_LAST_ITERATION, GAS_COST_RANGE, GasMeteredStore, Order


def drain(store: GasMeteredStore, iterator_id: int):
    out = []
    while True:
        item, _ = store.next(iterator_id)
        if item is None:
            return out
        out.append(item)


keys = st.binary(min_size=0, max_size=8)
values = st.binary(min_size=0, max_size=16)


@settings(max_examples=100, deadline=None)
@given(st.dictionaries(keys, values, max_size=20), keys, values)
def test_set_then_get(initial, k, v) -> None:
    store = GasMeteredStore(initial)
    store.set(k, v)
    assert store.get(k) == (v, len(k))


@settings(max_examples=100, deadline=None)
@given(st.dictionaries(keys, values, max_size=20), keys)
def test_remove_then_get(initial, k) -> None:
    store = GasMeteredStore(initial)
    store.remove(k)
    assert store.get(k)[0] is None
    assert k not in store


@settings(max_examples=100, deadline=None)
@given(st.dictionaries(keys, values, max_size=20))
def test_full_scan_is_sorted_both_ways(data) -> None:
    store = GasMeteredStore(data)
    asc, _ = store.scan(None, None, Order.ASCENDING)
    desc, _ = store.scan(None, None, Order.DESCENDING)
    assert drain(store, asc) == sorted(data.items())
    assert drain(store, desc) == sorted(data.items(), reverse=True)


def test_gas_costs() -> None:
    store = GasMeteredStore()
    assert store.set(b"key", b"value") == (None, 8)
    assert store.get(b"key") == (b"value", 3)
    assert store.get(b"missing") == (None, 7)
    assert store.remove(b"key") == (None, 3)
    assert store.remove(b"never") == (None, 5)


def test_scan_order_and_next_gas() -> None:
    store = GasMeteredStore()
    for k in (b"b", b"a", b"c"):
        store.set(k, b"1")

    it, gas = store.scan(None, None, "ascending")
    assert gas == GAS_COST_RANGE
    assert [store.next(it) for _ in range(4)] == [
        ((b"a", b"1"), 2),
        ((b"b", b"1"), 2),
        ((b"c", b"1"), 2),
        (None, GAS_COST_LAST_ITERATION),
    ]
    # exhausted iterators keep reporting the end
    assert store.next(it) == (None, GAS_COST_LAST_ITERATION)

    it, _ = store.scan(None, None, 2)
    assert [k for k, _ in drain(store, it)] == [b"c", b"b", b"a"]


def test_scan_bounds_are_half_open() -> None:
    store = GasMeteredStore({b"a": b"", b"b": b"", b"c": b"", b"d": b""})
    it, _ = store.scan(b"b", b"d")
    assert [k for k, _ in drain(store, it)] == [b"b", b"c"]
    it, _ = store.scan(b"b", None, Order.DESCENDING)
    assert [k for k, _ in drain(store, it)] == [b"d", b"c", b"b"]


@pytest.mark.parametrize("start, end", [(b"c", b"a"), (b"b", b"b")])
def test_inverted_or_empty_range(start, end) -> None:
    store = GasMeteredStore({b"a": b"1", b"b": b"2", b"c": b"3"})
    it, gas = store.scan(start, end)
    assert gas == GAS_COST_RANGE
    assert store.next(it) == (None, GAS_COST_LAST_ITERATION)


def test_iterator_is_a_snapshot() -> None:
    store = GasMeteredStore({b"a": b"1", b"b": b"2"})
    it, _ = store.scan()
    store.set(b"c", b"3")
    store.remove(b"a")
    assert drain(store, it) == [(b"a", b"1"), (b"b", b"2")]


def test_iterator_ids_increase_and_are_not_reused() -> None:
    store = GasMeteredStore()
    first, _ = store.scan()
    second, _ = store.scan()
    assert (first, second) == (1, 2)
    assert store.release_iterators() == 2
    assert store.open_iterators == 0
    third, _ = store.scan()
    assert third == 3


def test_unknown_iterator() -> None:
    store = GasMeteredStore()
    with pytest.raises(IteratorNotFound) as ei:
        store.next(42)
    assert "42" in str(ei.value)


def test_release_since_keeps_older_iterators() -> None:
    store = GasMeteredStore({b"a": b"1"})
    old, _ = store.scan()
    watermark = store.next_iterator_id
    store.scan()
    store.scan()
    assert store.release_iterators(since=watermark) == 2
    assert store.next(old) == ((b"a", b"1"), 2)
    with pytest.raises(IteratorNotFound):
        store.next(watermark)


def test_unknown_order() -> None:
    with pytest.raises(SimError):
        GasMeteredStore().scan(order="sideways")
    with pytest.raises(SimError):
        GasMeteredStore().scan(order=7)


def test_non_bytes_rejected() -> None:
    store = GasMeteredStore()
    with pytest.raises(SimError):
        store.set("key", b"v")  # type: ignore[arg-type]
    with pytest.raises(SimError):
        store.get(1)  # type: ignore[arg-type]


def test_checkpoint_restore() -> None:
    store = GasMeteredStore({b"a": b"1"})
    cp = store.checkpoint()
    store.set(b"a", b"2")
    store.set(b"b", b"3")
    store.restore(cp)
    assert store.items() == [(b"a", b"1")]


def test_copy_is_independent() -> None:
    store = GasMeteredStore({b"a": b"1"})
    store.scan()
    clone = store.copy()
    clone.set(b"b", b"2")
    assert b"b" not in store
    assert len(clone) == 2
    assert clone.open_iterators == 0


def test_observer_sees_writes() -> None:
    seen = []
    store = GasMeteredStore(observer=lambda op, k, v: seen.append((op, k, v)))
    store.set(b"k", b"v")
    store.remove(b"k")
    store.get(b"k")
    assert seen == [("set", b"k", b"v"), ("remove", b"k", None)]


def test_observer_failure_does_not_fail_write(caplog) -> None:
    def broken(op, key, value):
        raise RuntimeError("observer down")

    store = GasMeteredStore(observer=broken)
    with caplog.at_level(logging.WARNING, logger="cw_simulate.runtime.storage"):
        assert store.set(b"k", b"v") == (None, 2)
    assert store.get(b"k")[0] == b"v"
    assert any("observer failed" in r.getMessage() for r in caplog.records)
