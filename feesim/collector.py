"""Background polling of the mempool and recording of new txs and blocks."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from feesim.mempool import Block, MempoolState
from feesim.processblock import process_block
from feesim.records import BlockStat, Tx

_log = logging.getLogger(__name__)


class _TxSink(Protocol):
    def put(self, txs: Sequence[Tx]) -> None: ...


class _BlockStatSink(Protocol):
    def put(self, stats: Sequence[BlockStat]) -> None: ...


@dataclass
class CollectorConfig:
    """``poll_period`` is in seconds; the getters raise on failure."""

    poll_period: float = 10
    get_state: Callable[[], MempoolState] | None = None
    get_block: Callable[[int], Block] | None = None
    logger: logging.Logger | None = None


def get_new_txs(prev: MempoolState, curr: MempoolState) -> list[Tx]:
    """Txs present in ``curr`` but not in ``prev``."""
    return [
        Tx(fee_rate=entry.fee_rate(), size=entry.size, time=entry.time)
        for entry in curr.sub(prev).entries.values()
    ]


class Collector:
    """Polls the mempool state and stores new txs and block statistics.

    Results are published on the ``states``, ``blocks`` and ``errors``
    queues; each receives ``None`` when the collector stops.
    """

    def __init__(self, tx_db: _TxSink, block_db: _BlockStatSink, config: CollectorConfig) -> None:
        self._tx_db = tx_db
        self._block_db = block_db
        self._config = config
        self._logger = config.logger or _log
        self._state: MempoolState | None = None
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self.states: queue.Queue = queue.Queue()
        self.blocks: queue.Queue = queue.Queue()
        self.errors: queue.Queue = queue.Queue()

    @property
    def state(self) -> MempoolState | None:
        """The latest mempool state, or None if the last poll failed."""
        with self._lock:
            return self._state

    def _set_state(self, state: MempoolState | None) -> None:
        with self._lock:
            self._state = state

    def run(self) -> None:
        """Fetch the initial state, then start polling in the background."""
        self._set_state(self._config.get_state())
        self._thread = threading.Thread(target=self._loop, name="feesim-collector", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop polling and wait for the background thread to finish."""
        if self._done.is_set():
            return
        self._done.set()
        if self._thread is not None:
            self._thread.join()

    def _loop(self) -> None:
        try:
            while not self._done.wait(self._config.poll_period):
                if not self._poll():
                    break
        finally:
            self._set_state(None)
            for q in (self.states, self.blocks, self.errors):
                q.put(None)

    def _report(self, where: str, exc: Exception) -> None:
        error = RuntimeError(f"{where}: {exc}")
        error.__cause__ = exc
        self.errors.put(error)

    def _poll(self) -> bool:
        try:
            curr = self._config.get_state()
        except Exception as exc:
            self._report("GetState", exc)
            self._set_state(None)
            return True

        prev = self.state
        self._set_state(curr)
        if prev is None:
            return True
        if prev.height > curr.height:
            self.errors.put(RuntimeError("Block height decreased!"))
            return False

        new_txs = get_new_txs(prev, curr)
        self._logger.debug("%d new txs, %s", len(new_txs), curr)
        try:
            self._tx_db.put(new_txs)
        except Exception as exc:
            self._report("TxDB.Put", exc)
            return True

        self.states.put(curr)
        if prev.height == curr.height:
            return True

        try:
            stats, blocks = process_block(prev, curr, self._config.get_block, self._logger)
        except Exception as exc:
            self._report("processBlock", exc)
            return True
        self.blocks.put(blocks)

        try:
            self._block_db.put(stats)
        except Exception as exc:
            self._report("BlockStatDB.Put", exc)
        return True