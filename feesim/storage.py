"""File-backed stores of recorded transactions and block statistics.

Each store holds an exclusive lock on its file while open; opening a file
that is already open fails after one second.
"""

from __future__ import annotations

import os
import sqlite3
import struct
import threading
from typing import Iterable

from filelock import FileLock, Timeout

from feesim.records import BlockStat, Tx
from feesim.sfr import SFRStat

_LOCK_TIMEOUT = 1.0
_UINT64_MASK = 2**64 - 1
_KEY = struct.Struct(">Q")
_TX = struct.Struct(">qqqq")
_STAT = struct.Struct(">qqqqqqqqqqd")


class DatabaseLockedError(Exception):
    """The database file is held open by another store."""


def _key(value: int) -> bytes:
    """8-byte big-endian key; negative values wrap as unsigned."""
    return _KEY.pack(value & _UINT64_MASK)


class _Store:
    _SCHEMA = ""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        path = os.fspath(path)
        self._file_lock = FileLock(path + ".lock", timeout=_LOCK_TIMEOUT)
        try:
            self._file_lock.acquire()
        except Timeout:
            raise DatabaseLockedError("timeout") from None
        try:
            os.close(os.open(path, os.O_CREAT | os.O_RDWR, 0o600))
            self._conn = sqlite3.connect(path, check_same_thread=False)
            with self._conn:
                self._conn.executescript(self._SCHEMA)
        except BaseException:
            self._file_lock.release()
            raise
        self._mutex = threading.Lock()

    def _close(self) -> None:
        with self._mutex:
            self._conn.close()
        self._file_lock.release()

    def close(self) -> None:
        """Close the database and release its lock."""
        self._close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class TxDB(_Store):
    """Transactions keyed by their entry time."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS txs (
            time_key BLOB NOT NULL,
            seq INTEGER NOT NULL,
            data BLOB NOT NULL,
            PRIMARY KEY (time_key, seq)
        );
    """

    def get(self, start: int, end: int) -> list[Tx]:
        """All txs with time in [start, end], ordered by time then insertion."""
        with self._mutex:
            rows = self._conn.execute(
                "SELECT data FROM txs WHERE time_key >= ? AND time_key <= ? "
                "ORDER BY time_key, seq",
                (_key(start), _key(end)),
            ).fetchall()
        return [Tx(*_TX.unpack(data)) for (data,) in rows]

    def put(self, txs: Iterable[Tx]) -> None:
        """Store the txs, each under its time."""
        ordered = sorted(txs, key=lambda tx: (tx.time, tx.size, tx.fee_rate))
        with self._mutex, self._conn:
            for tx in ordered:
                time_key = _key(tx.time)
                (seq,) = self._conn.execute(
                    "SELECT COALESCE(MAX(seq), 0) + 1 FROM txs WHERE time_key = ?",
                    (time_key,),
                ).fetchone()
                self._conn.execute(
                    "INSERT INTO txs (time_key, seq, data) VALUES (?, ?, ?)",
                    (time_key, seq, _TX.pack(tx.fee_rate, tx.size, tx.time, tx.type)),
                )

    def delete(self, start: int, end: int) -> None:
        """Delete all txs with time in [start, end]."""
        with self._mutex, self._conn:
            self._conn.execute(
                "DELETE FROM txs WHERE time_key >= ? AND time_key <= ?",
                (_key(start), _key(end)),
            )

    def close(self) -> None:
        """Close the database and release its lock."""
        self._close()


def _pack_stat(stat: BlockStat) -> bytes:
    s = stat.sfr_stat
    return _STAT.pack(
        stat.height, stat.size, s.sfr, s.ak, s.an, s.bk, s.bn,
        stat.mempool_size, stat.mempool_size_remain, stat.time, stat.num_hashes,
    )


def _unpack_stat(data: bytes) -> BlockStat:
    height, size, sfr, ak, an, bk, bn, mempool_size, remain, time, num_hashes = _STAT.unpack(data)
    return BlockStat(
        height=height,
        size=size,
        sfr_stat=SFRStat(sfr=sfr, ak=ak, an=an, bk=bk, bn=bn),
        mempool_size=mempool_size,
        mempool_size_remain=remain,
        time=time,
        num_hashes=num_hashes,
    )


class BlockStatDB(_Store):
    """Block statistics keyed by block height."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS blockstats (
            height_key BLOB PRIMARY KEY,
            data BLOB NOT NULL
        );
    """

    def get(self, start: int, end: int) -> list[BlockStat]:
        """Stats for heights in [start, end], sorted by height."""
        with self._mutex:
            rows = self._conn.execute(
                "SELECT data FROM blockstats WHERE height_key >= ? AND height_key <= ? "
                "ORDER BY height_key",
                (_key(start), _key(end)),
            ).fetchall()
        return [_unpack_stat(data) for (data,) in rows]

    def put(self, stats: Iterable[BlockStat]) -> None:
        """Store the stats, replacing any already held for the same height."""
        with self._mutex, self._conn:
            self._conn.executemany(
                "INSERT OR REPLACE INTO blockstats (height_key, data) VALUES (?, ?)",
                [(_key(stat.height), _pack_stat(stat)) for stat in stats],
            )

    def delete(self, start: int, end: int) -> None:
        """Delete the stats for heights in [start, end]."""
        with self._mutex, self._conn:
            self._conn.execute(
                "DELETE FROM blockstats WHERE height_key >= ? AND height_key <= ?",
                (_key(start), _key(end)),
            )

    def close(self) -> None:
        """Close the database and release its lock."""
        self._close()