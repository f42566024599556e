import pytest

from feesim.records import BlockStat, Tx
from feesim.sfr import SFRStat
from feesim.storage import BlockStatDB, DatabaseLockedError, TxDB

TXS_REF = [
    Tx(fee_rate=5000, size=1000, time=0),
    Tx(fee_rate=10000, size=500, time=1),
    Tx(fee_rate=20000, size=250, time=2),
]

STATS_REF = [
    BlockStat(
        height=0,
        size=250000,
        sfr_stat=SFRStat(sfr=10000, ak=20, an=20, bk=10, bn=10),
        mempool_size=100000,
        mempool_size_remain=1,
        time=1,
        num_hashes=100,
    ),
    BlockStat(
        height=1,
        size=251100,
        sfr_stat=SFRStat(sfr=10100, ak=21, an=22, bk=9, bn=14),
        mempool_size=100001,
        mempool_size_remain=2,
        time=2,
        num_hashes=200,
    ),
    BlockStat(
        height=2,
        size=251122,
        sfr_stat=SFRStat(sfr=10120, ak=30, an=22, bk=8, bn=17),
        mempool_size=100001,
        mempool_size_remain=9,
        time=3,
        num_hashes=300,
    ),
]


def test_tx_db(tmp_path):
    dbfile = str(tmp_path / ".tx.db")
    d = TxDB(dbfile)

    with pytest.raises(DatabaseLockedError) as excinfo:
        TxDB(dbfile)
    assert str(excinfo.value) == "timeout"

    d.close()
    d = TxDB(dbfile)

    d.put(TXS_REF)
    assert d.get(0, 2) == TXS_REF
    assert d.get(1, 2) == TXS_REF[1:]

    d.delete(0, 1)
    assert d.get(0, 3) == TXS_REF[2:]
    d.close()


def test_tx_db_same_time_keeps_sorted_insertion(tmp_path):
    with TxDB(tmp_path / "t.db") as d:
        d.put([Tx(fee_rate=3, size=20, time=5), Tx(fee_rate=9, size=10, time=5)])
        d.put([Tx(fee_rate=1, size=1, time=5)])
        assert d.get(5, 5) == [
            Tx(fee_rate=9, size=10, time=5),
            Tx(fee_rate=3, size=20, time=5),
            Tx(fee_rate=1, size=1, time=5),
        ]


def test_tx_db_persists_across_reopen(tmp_path):
    path = tmp_path / "t.db"
    with TxDB(path) as d:
        d.put(TXS_REF)
    with TxDB(path) as d:
        assert d.get(0, 10) == TXS_REF


def test_tx_db_negative_start_wraps(tmp_path):
    with TxDB(tmp_path / "t.db") as d:
        d.put(TXS_REF)
        assert d.get(-1, 2) == []


def test_block_stat_db(tmp_path):
    dbfile = str(tmp_path / ".blockstat.db")
    d = BlockStatDB(dbfile)

    with pytest.raises(DatabaseLockedError) as excinfo:
        BlockStatDB(dbfile)
    assert str(excinfo.value) == "timeout"

    d.close()
    d = BlockStatDB(dbfile)

    d.put(STATS_REF)
    assert d.get(0, 2) == STATS_REF
    assert d.get(1, 2) == STATS_REF[1:]

    d.delete(0, 1)
    assert d.get(0, 3) == STATS_REF[2:]
    d.close()


def test_block_stat_db_put_replaces_height(tmp_path):
    with BlockStatDB(tmp_path / "b.db") as d:
        d.put(STATS_REF)
        replacement = BlockStat(height=1, size=7, num_hashes=1.5)
        d.put([replacement])
        assert d.get(1, 1) == [replacement]
        assert len(d.get(0, 2)) == 3


def test_closed_store_releases_lock(tmp_path):
    path = tmp_path / "b.db"
    first = BlockStatDB(path)
    first.close()
    with BlockStatDB(path) as second:
        second.put(STATS_REF[:1])
        assert second.get(0, 0) == STATS_REF[:1]