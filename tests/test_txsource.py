import itertools
import random

import pytest

from feesim.records import Tx
from feesim.txsource import (
    MultiTxSourceConfig,
    TxWindowError,
    UniTxSourceConfig,
    UniTxSourceEstimator,
    multi_tx_source,
    round_random,
)

TX_RATE = 1.5
WINDOW = 7200

POOL = [(20000, 250)] * 5 + [(10000, 500)] * 3 + [(5000, 1000)] * 2

XREF = [-1, 4999, 5000, 5001, 9999, 10000, 10001, 19999, 20000, 20001]
YREF = [712.5, 712.5, 712.5, 412.5, 412.5, 412.5, 187.5, 187.5, 187.5, 0]


class TxMemDB:
    def __init__(self, txs):
        self.txs = list(txs)

    def get(self, start, end):
        return [tx for tx in self.txs if start <= tx.time <= end]


@pytest.fixture
def db():
    count = int(WINDOW * TX_RATE)
    return TxMemDB(
        Tx(fee_rate=f, size=s, time=int(i / TX_RATE))
        for i, (f, s) in zip(range(count), itertools.cycle(POOL))
    )


def test_multi_tx_source_rates(db):
    tm = db.txs[-1].time
    cfg = MultiTxSourceConfig(min_window=600, max_window=WINDOW, halflife=3600, max_txs=10000)
    src = multi_tx_source(tm, cfg, db)
    assert src.tx_rate == pytest.approx(TX_RATE, rel=0.02)
    for x, y in zip(XREF, YREF):
        assert src.byte_rate(x) == pytest.approx(y, rel=0.02)


def test_multi_tx_source_window_too_small(db):
    tm = db.txs[-1].time
    cfg = MultiTxSourceConfig(min_window=7201, max_window=WINDOW, halflife=3600, max_txs=10000)
    with pytest.raises(TxWindowError) as info:
        multi_tx_source(tm, cfg, db)
    assert info.value.window == tm
    assert info.value.min_window == 7201


def test_multi_tx_source_no_txs():
    cfg = MultiTxSourceConfig(min_window=600, max_window=WINDOW, halflife=3600, max_txs=10)
    with pytest.raises(TxWindowError) as info:
        multi_tx_source(100, cfg, TxMemDB([]))
    assert info.value.window == 0


def test_multi_tx_source_max_txs_keeps_latest(db):
    tm = db.txs[-1].time
    full = multi_tx_source(tm, MultiTxSourceConfig(600, WINDOW, 3600, 100000), db)
    capped = multi_tx_source(tm, MultiTxSourceConfig(600, WINDOW, 3600, 100), db)
    assert len(capped.fee_rates) == len(capped.weights) == 100
    assert capped.weights == full.weights[-100:]
    assert capped.tx_rate == full.tx_rate


def test_uni_tx_source(db):
    cfg = UniTxSourceConfig(min_window=600, max_window=WINDOW, halflife=600)
    estimator = UniTxSourceEstimator(db, cfg, random.Random(0))
    middle = db.txs[len(db.txs) // 2].time
    latest = db.txs[-1].time
    for tm in range(middle, latest + 1, 60):
        src = estimator.estimate(tm)
        assert src.tx_rate == pytest.approx(TX_RATE, rel=0.03)
        for x, y in zip(XREF, YREF):
            assert src.byte_rate(x) == pytest.approx(y, rel=0.1)


def test_uni_tx_source_window_too_small(db):
    cfg = UniTxSourceConfig(min_window=5000, max_window=WINDOW, halflife=600)
    estimator = UniTxSourceEstimator(db, cfg, random.Random(0))
    middle = db.txs[len(db.txs) // 2].time
    with pytest.raises(TxWindowError) as info:
        estimator.estimate(middle)
    assert info.value.window == middle
    assert info.value.min_window == 5000


def test_round_random_is_unbiased():
    f = 9.99
    n = 10000
    rng = random.Random(0)
    total = sum(round_random(f, rng) for _ in range(n))
    assert total / n == pytest.approx(f, rel=0.001)


def test_round_random_only_adjacent_integers():
    rng = random.Random(1)
    results = {round_random(3.25, rng) for _ in range(1000)}
    assert results == {3, 4}


def test_window_error_message():
    err = TxWindowError(min_window=600, window=120)
    assert str(err) == "Tx estimation window size was 120s, should be at least 600s"