"""Estimation of transaction source models from recent mempool arrivals."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Protocol, Sequence

from feesim.records import Tx


class TxSource(Protocol):
    def get(self, start: int, end: int) -> Sequence[Tx]:
        """Return the txs with time in [start, end], sorted by time."""


class TxWindowError(Exception):
    """The estimation window is shorter than required."""

    def __init__(self, min_window: int, window: int = 0) -> None:
        self.window = window
        self.min_window = min_window
        super().__init__(
            f"Tx estimation window size was {window}s, should be at least {min_window}s"
        )


def _decayed_rate(weight_sum: float, a: float, window: int) -> float:
    """Arrival rate given an exponentially weighted count over ``window``."""
    numerator = weight_sum * math.log(a)
    denominator = a**window - 1
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, -numerator)
    return numerator / denominator


@dataclass(frozen=True)
class MultiTxSourceConfig:
    """Windows and half-life in seconds; ``max_txs`` caps the sample."""

    min_window: int
    max_window: int
    halflife: int
    max_txs: int


@dataclass(frozen=True)
class MultiTxSource:
    """Weighted sample of transactions arriving at ``tx_rate`` per second."""

    fee_rates: tuple[int, ...]
    sizes: tuple[int, ...]
    weights: tuple[float, ...]
    tx_rate: float

    def byte_rate(self, fee_rate: float) -> float:
        """Bytes per second arriving with fee rate at least ``fee_rate``."""
        total = sum(self.weights)
        if not total:
            return 0.0
        above = sum(
            w * s for f, s, w in zip(self.fee_rates, self.sizes, self.weights) if f >= fee_rate
        )
        return self.tx_rate * above / total


def multi_tx_source(t: int, config: MultiTxSourceConfig, db: TxSource) -> MultiTxSource:
    """Estimate a weighted tx source from txs in [t - max_window, t]."""
    txs = list(db.get(t - config.max_window, t))
    if not txs:
        raise TxWindowError(config.min_window)

    window = t - txs[0].time
    if window < config.min_window:
        raise TxWindowError(config.min_window, window)

    a = 0.5 ** (1 / config.halflife)
    weights = [a ** (t - tx.time) for tx in txs]
    tx_rate = _decayed_rate(sum(weights), a, window)

    cutoff = max(len(txs) - config.max_txs, 0)
    kept = txs[cutoff:]
    return MultiTxSource(
        fee_rates=tuple(tx.fee_rate for tx in kept),
        sizes=tuple(tx.size for tx in kept),
        weights=tuple(weights[cutoff:]),
        tx_rate=tx_rate,
    )


@dataclass(frozen=True)
class UniTxSourceConfig:
    """Windows and half-life in seconds."""

    min_window: int
    max_window: int
    halflife: int


@dataclass(frozen=True)
class UniTxSource:
    """Uniformly weighted sample of transactions arriving at ``tx_rate``."""

    fee_rates: tuple[int, ...]
    sizes: tuple[int, ...]
    tx_rate: float

    def byte_rate(self, fee_rate: float) -> float:
        """Bytes per second arriving with fee rate at least ``fee_rate``."""
        if not self.sizes:
            return 0.0
        above = sum(s for f, s in zip(self.fee_rates, self.sizes) if f >= fee_rate)
        return self.tx_rate * above / len(self.sizes)


def round_random(f: float, rng: random.Random) -> int:
    """Round ``f`` down or up at random so the expected value is ``f``."""
    fraction = f - math.floor(f)
    if rng.random() > fraction:
        return int(f)
    return int(f) + 1


class UniTxSourceEstimator:
    """Incrementally maintains a uniformly weighted sample of recent txs.

    Older txs are discarded at random so that each tx survives with
    probability decaying by half every ``halflife`` seconds.
    """

    def __init__(self, db: TxSource, config: UniTxSourceConfig, rng: random.Random | None = None) -> None:
        self._db = db
        self._config = config
        self._rng = rng if rng is not None else random.Random()
        self._a = 0.5 ** (1 / config.halflife)
        self._txs: list[Tx] = []
        self._prev_time: int | None = None
        self._window = 0
        self._r = 0.0

    def estimate(self, curr_time: int) -> UniTxSource:
        """Update the sample up to ``curr_time`` and return the estimate.

        Successive calls must have non-decreasing ``curr_time``.
        """
        if self._prev_time is None:
            txs = list(self._db.get(curr_time - self._config.max_window, curr_time))
            self._prev_time = txs[0].time if txs else curr_time
        else:
            txs = list(self._db.get(self._prev_time + 1, curr_time))

        for tx in txs:
            self._add(tx)

        if self._window < self._config.min_window:
            raise TxWindowError(self._config.min_window, self._window)

        return UniTxSource(
            fee_rates=tuple(tx.fee_rate for tx in self._txs),
            sizes=tuple(tx.size for tx in self._txs),
            tx_rate=_decayed_rate(self._r, self._a, self._window),
        )

    def _add(self, tx: Tx) -> None:
        delta = tx.time - self._prev_time
        self._window += delta
        p = self._a**delta
        self._r = self._r * p + 1
        for _ in range(round_random((1 - p) * len(self._txs), self._rng)):
            self._pop_random()
        self._txs.append(tx)
        self._prev_time = tx.time

    def _pop_random(self) -> None:
        i = self._rng.randrange(len(self._txs))
        self._txs[i] = self._txs[-1]
        self._txs.pop()