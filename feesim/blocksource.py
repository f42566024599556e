"""Estimation of the independent block source model from block statistics."""

from __future__ import annotations

from dataclasses import dataclass
from operator import itemgetter
from typing import Protocol, Sequence

from feesim.records import BlockStat
from feesim.sfr import MAX_FEE_RATE

DIFF_ADJ_INTERVAL = 2016  # Difficulty adjustment interval in blocks


class BlockStatSource(Protocol):
    def get(self, start: int, end: int) -> Sequence[BlockStat]:
        """Return the stats for heights in [start, end], sorted by height."""


class InsufficientBlocksError(Exception):
    """Too few usable blocks to estimate the block source."""

    def __init__(self) -> None:
        super().__init__("too few blocks to estimate blocksource")


class BlockCoverageError(Exception):
    """Too few blocks in the estimation window."""

    def __init__(self, cov: float, min_cov: float, window: int) -> None:
        self.cov = cov
        self.min_cov = min_cov
        self.window = window
        super().__init__(
            f"Block coverage was only {int(cov * window)}/{window}, "
            f"should be at least {int(min_cov * window)}/{window}."
        )


@dataclass(frozen=True)
class IndBlockSourceConfig:
    window: int
    min_cov: float
    guard_interval: int
    tail_pct: float


@dataclass(frozen=True)
class IndBlockSource:
    """Blocks whose min fee rate and max size are drawn independently."""

    min_fee_rates: tuple[int, ...]
    max_block_sizes: tuple[int, ...]
    block_rate: float

    def capacity_rate(self, fee_rate: float) -> float:
        """Expected block capacity (bytes/s) available to txs at ``fee_rate``."""
        if not self.min_fee_rates or not self.max_block_sizes:
            return 0.0
        accepting = sum(1 for m in self.min_fee_rates if m <= fee_rate)
        mean_size = sum(self.max_block_sizes) / len(self.max_block_sizes)
        return self.block_rate * accepting / len(self.min_fee_rates) * mean_size


def _calc_stats(
    height: int, config: IndBlockSourceConfig, db: BlockStatSource
) -> tuple[list[int], list[int], float]:
    blocks = list(db.get(height - config.window + 1, height))
    cov = len(blocks) / config.window
    if cov < config.min_cov:
        raise BlockCoverageError(cov, config.min_cov, config.window)

    total_hashes = 0.0
    prev: BlockStat | None = None
    size_data: list[tuple[int, int]] = []
    sfr_data: list[tuple[int, int]] = []
    for block in blocks:
        total_hashes += block.num_hashes
        if prev is None:
            prev = block
            continue
        if block.height == prev.height + 1:
            if block.time - prev.time > config.guard_interval:
                size_data.append((block.mempool_size - prev.mempool_size_remain, block.size))
                sfr_data.append((block.mempool_size, block.sfr_stat.sfr))
        else:
            # Account for the hashes of the blocks missing from the window.
            for missing in range(prev.height + 1, block.height):
                if missing // DIFF_ADJ_INTERVAL == prev.height // DIFF_ADJ_INTERVAL:
                    total_hashes += prev.num_hashes
                else:
                    total_hashes += block.num_hashes
        prev = block

    if not sfr_data:
        raise InsufficientBlocksError()
    size_data.sort(key=itemgetter(0))
    sfr_data.sort(key=itemgetter(0))
    tail = int(config.tail_pct * len(sfr_data)) + 1
    max_block_sizes = [size for _, size in size_data[len(size_data) - tail:]]
    min_fee_rates = [sfr for _, sfr in sfr_data[:tail]]

    hash_rate = total_hashes / (blocks[-1].time - blocks[0].time)
    block_rate = hash_rate / blocks[-1].num_hashes
    return min_fee_rates, max_block_sizes, block_rate


def ind_block_source(height: int, config: IndBlockSourceConfig, db: BlockStatSource) -> IndBlockSource:
    """Estimate the block source from stats at heights [height-window+1, height]."""
    min_fee_rates, max_block_sizes, block_rate = _calc_stats(height, config, db)
    return IndBlockSource(tuple(min_fee_rates), tuple(max_block_sizes), block_rate)


def ind_block_source_smfr(height: int, config: IndBlockSourceConfig, db: BlockStatSource) -> IndBlockSource:
    """Like ``ind_block_source`` but with every min fee rate set to the lowest one.

    Constantly full blocks inflate the min fee rate estimates; using the
    lowest observed stranding fee rate avoids that.
    """
    min_fee_rates, max_block_sizes, block_rate = _calc_stats(height, config, db)
    lowest = min(min_fee_rates, default=MAX_FEE_RATE)
    return IndBlockSource(
        tuple(lowest for _ in min_fee_rates), tuple(max_block_sizes), block_rate
    )