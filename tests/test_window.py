from __future__ import annotations

import threading
from typing import List

from hypothesis import given, settings
from hypothesis import strategies as st

from beadroad.core.records import Record
from beadroad.core.rules import Rule, is_aligned
from beadroad.core.window import Window


STEP1 = Rule(id="1", step=1)


def mk(height: int) -> Record:
    value = height % 10
    return Record(
        height=height,
        hash=f"0x{height:064x}",
        result_value=value,
        type="EVEN" if value % 2 == 0 else "ODD",
        size_type="BIG" if value >= 5 else "SMALL",
        timestamp="2024-01-01 00:00:00",
    )


def heights(window: Window) -> List[int]:
    return [r.height for r in window.snapshot()]


def assert_invariants(window: Window, rule: Rule) -> None:
    hs = heights(window)
    assert len(hs) <= window.capacity
    assert all(a > b for a, b in zip(hs, hs[1:]))
    assert len(set(hs)) == len(hs)
    assert all(is_aligned(h, rule) for h in hs)


def test_insert_puts_newest_first() -> None:
    w = Window(capacity=5)
    for h in (1, 2, 3):
        assert w.insert(mk(h))
    assert heights(w) == [3, 2, 1]
    assert w.head().height == 3


def test_duplicate_insert_is_noop() -> None:
    w = Window(capacity=5)
    w.insert(mk(7))
    assert not w.insert(mk(7))
    assert heights(w) == [7]


def test_out_of_order_insert_is_rejected() -> None:
    w = Window(capacity=5)
    w.insert(mk(10))
    assert not w.insert(mk(4))
    assert heights(w) == [10]


def test_capacity_evicts_smallest_height() -> None:
    w = Window(capacity=264)
    for h in range(1, 265):
        w.insert(mk(h))
    assert len(w) == 264
    w.insert(mk(265))
    assert len(w) == 264
    assert heights(w)[0] == 265
    assert heights(w)[-1] == 2
    assert 1 not in w


def test_ingest_skips_misaligned() -> None:
    rule = Rule(id="20", step=20)
    w = Window(capacity=10)
    assert not w.ingest(mk(21), rule)
    assert w.ingest(mk(40), rule)
    assert heights(w) == [40]


def test_rebuild_keeps_newest_aligned() -> None:
    w = Window(capacity=264)
    w.rebuild([mk(h) for h in range(1, 266)], STEP1)
    hs = heights(w)
    assert len(hs) == 264
    assert hs[0] == 265 and hs[-1] == 2


def test_rebuild_filters_dedupes_and_resizes() -> None:
    rule = Rule(id="x", step=3, offset=1)
    backlog = [mk(h) for h in range(0, 40)] + [mk(10), mk(13)]
    w = Window(capacity=100)
    w.rebuild(backlog, rule, capacity=4)
    assert w.capacity == 4
    assert heights(w) == [37, 34, 31, 28]


def test_rebuild_replaces_previous_contents() -> None:
    w = Window(capacity=10)
    for h in range(1, 6):
        w.insert(mk(h))
    w.rebuild([mk(20), mk(40), mk(41)], Rule(id="20", step=20))
    assert heights(w) == [40, 20]


def test_rebuild_without_capacity_keeps_latest_resize() -> None:
    w = Window(capacity=10)
    w.rebuild([mk(h) for h in range(1, 30)], STEP1, capacity=4)
    w.rebuild([mk(h) for h in range(1, 30)], STEP1)
    assert w.capacity == 4
    assert heights(w) == [29, 28, 27, 26]


def test_concurrent_rebuilds_respect_capacity() -> None:
    w = Window(capacity=8)
    backlog = [mk(h) for h in range(1, 200)]

    def resizer() -> None:
        for i in range(300):
            w.rebuild(backlog, STEP1, capacity=3 + i % 5)

    def refresher() -> None:
        for _ in range(300):
            w.rebuild(backlog, STEP1)

    threads = [threading.Thread(target=resizer), threading.Thread(target=refresher)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # refreshes never change capacity, so the last resize (3 + 299 % 5) stands
    assert w.capacity == 7
    assert len(w) == 7
    assert_invariants(w, STEP1)


@settings(max_examples=50)
@given(st.lists(st.integers(min_value=0, max_value=400), max_size=300))
def test_rebuild_is_deterministic(raw: List[int]) -> None:
    rule = Rule(id="3", step=3)
    backlog = [mk(h) for h in raw]
    a, b = Window(capacity=30), Window(capacity=30)
    a.rebuild(backlog, rule)
    b.rebuild(backlog, rule)
    assert a.snapshot() == b.snapshot()
    assert_invariants(a, rule)


@settings(max_examples=50)
@given(
    st.lists(
        st.one_of(
            st.tuples(st.just("insert"), st.integers(min_value=0, max_value=500)),
            st.tuples(st.just("rebuild"), st.integers(min_value=1, max_value=7)),
        ),
        max_size=120,
    )
)
def test_invariants_hold_under_any_operation_sequence(ops) -> None:  # noqa: ANN001
    rule = STEP1
    w = Window(capacity=12)
    seen: List[Record] = []
    for op, arg in ops:
        if op == "insert":
            rec = mk(arg)
            seen.append(rec)
            w.ingest(rec, rule)
        else:
            rule = Rule(id=str(arg), step=arg)
            w.rebuild(seen, rule)
        assert_invariants(w, rule)
