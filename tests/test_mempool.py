from dataclasses import dataclass

import pytest

from feesim.mempool import MempoolState, prune_low_fee, simify_mempool


@dataclass
class _Entry:
    fee: int
    size: int = 100
    time: int = 0
    parents: tuple = ()
    high_priority: bool = False

    def fee_rate(self):
        return self.fee

    def depends(self):
        return list(self.parents)

    def is_high_priority(self):
        return self.high_priority


def _graph():
    return {
        "low": _Entry(1000),
        "child": _Entry(9000, parents=("low",)),
        "grandchild": _Entry(9000, parents=("child",)),
        "high": _Entry(9000),
        "highchild": _Entry(8000, parents=("high",)),
        "mix": _Entry(9000, parents=("high", "child")),
        "lowleaf": _Entry(4999, parents=("high",)),
    }


def _has_low_ancestor(txid, entries, thresh):
    entry = entries[txid]
    if entry.fee_rate() < thresh:
        return True
    return any(_has_low_ancestor(p, entries, thresh) for p in entry.depends())


def test_prune_low_fee_removes_descendants():
    entries = _graph()
    prune_low_fee(entries, 5000)
    assert set(entries) == {"high", "highchild"}


def test_prune_low_fee_invariants():
    original = _graph()
    pruned = dict(original)
    prune_low_fee(pruned, 5000)
    for txid in original:
        assert _has_low_ancestor(txid, original, 5000) == (txid not in pruned)


def test_prune_low_fee_keeps_all_above_threshold():
    entries = _graph()
    prune_low_fee(entries, 1000)
    assert len(entries) == 7


def test_copy_is_independent():
    state = MempoolState(5, {"a": _Entry(1000)}, 10, 1000)
    clone = state.copy()
    del clone.entries["a"]
    assert "a" in state.entries
    assert clone.height == 5 and clone.min_fee_rate == 1000


def test_sub():
    a, b, c = _Entry(1), _Entry(2), _Entry(3)
    s = MempoolState(10, {"a": a, "b": b}, 100)
    t = MempoolState(8, {"b": b, "c": c}, 40)
    diff = s.sub(t)
    assert diff.entries == {"a": a}
    assert diff.height == 2
    assert diff.time == 60


def test_str():
    state = MempoolState(5, {"a": _Entry(1), "b": _Entry(2)}, 0, 1000)
    assert str(state) == "MempoolState{height: 5, entries: 2, minfeerate: 1000}"


def test_size_fn():
    state = MempoolState(
        1, {"a": _Entry(1000, 100), "b": _Entry(1000, 50), "c": _Entry(2000, 200)}
    )
    fn = state.size_fn()
    assert fn.fee_rates == (1000.0, 2000.0)
    assert fn.sizes == (350.0, 200.0)
    assert fn.evaluate(500) == 350
    assert fn.evaluate(1000) == 350
    assert fn.evaluate(1500) == 200
    assert fn.evaluate(2001) == 0


def test_simify_mempool_orders_and_links():
    entries = {
        "b": _Entry(2000, 20, parents=("a",)),
        "a": _Entry(1000, 10),
        "c": _Entry(3000, 30, parents=("a", "b")),
    }
    txs = simify_mempool(entries)
    assert [(t.fee_rate, t.size) for t in txs] == [(1000, 10), (2000, 20), (3000, 30)]
    a, b, c = txs
    assert b.parents[0] is a
    assert c.parents[0] is a and c.parents[1] is b
    assert a.parents == []


def test_simify_mempool_not_closed():
    with pytest.raises(ValueError, match="mempool not closed"):
        simify_mempool({"a": _Entry(1000, parents=("missing",))})