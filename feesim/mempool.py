"""Mempool snapshots and the operations the collector performs on them."""

from __future__ import annotations

from bisect import bisect_left
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Protocol


class MempoolEntry(Protocol):
    """A transaction waiting in the mempool."""

    size: int
    time: int

    def fee_rate(self) -> int:
        """Fee rate in satoshis per kB."""

    def depends(self) -> list[str]:
        """Txids of the unconfirmed parents of this tx."""

    def is_high_priority(self) -> bool:
        """Whether the tx could be mined regardless of its fee rate."""


class Block(Protocol):
    """A block as reported by the node."""

    height: int
    size: int

    def txids(self) -> list[str]:
        """Txids of the transactions in the block."""

    def num_hashes(self) -> float:
        """Expected number of hashes needed to solve the block."""


@dataclass(frozen=True)
class SizeFn:
    """Mempool bytes at or above each fee rate, as a step function."""

    fee_rates: tuple[float, ...]
    sizes: tuple[float, ...]

    def evaluate(self, fee_rate: float) -> float:
        """Total size of entries with fee rate at least ``fee_rate``."""
        i = bisect_left(self.fee_rates, fee_rate)
        return self.sizes[i] if i < len(self.sizes) else 0.0


@dataclass
class MempoolStateDiff:
    height: int
    entries: dict[str, MempoolEntry]
    time: int


@dataclass
class MempoolState:
    """The mempool at a point in time."""

    height: int
    entries: dict[str, MempoolEntry]
    time: int = 0
    min_fee_rate: int = 0

    def copy(self) -> "MempoolState":
        """Return a copy whose entry mapping can be changed independently."""
        return MempoolState(self.height, dict(self.entries), self.time, self.min_fee_rate)

    def sub(self, other: "MempoolState") -> MempoolStateDiff:
        """Entries in this state but not in ``other``, with height and time deltas."""
        entries = {txid: e for txid, e in self.entries.items() if txid not in other.entries}
        return MempoolStateDiff(self.height - other.height, entries, self.time - other.time)

    def size_fn(self) -> SizeFn:
        """Cumulative mempool size as a function of fee rate."""
        totals: dict[float, float] = defaultdict(float)
        for entry in self.entries.values():
            totals[float(entry.fee_rate())] += float(entry.size)
        fee_rates = sorted(totals)
        sizes: list[float] = []
        running = 0.0
        for rate in reversed(fee_rates):
            running += totals[rate]
            sizes.append(running)
        sizes.reverse()
        return SizeFn(tuple(fee_rates), tuple(sizes))

    def __str__(self) -> str:
        return (
            f"MempoolState{{height: {self.height}, entries: {len(self.entries)}, "
            f"minfeerate: {self.min_fee_rate}}}"
        )


@dataclass(eq=False)
class SimTx:
    """A mempool tx in the form the simulator takes; parents are shared objects."""

    fee_rate: int = 0
    size: int = 0
    parents: list["SimTx"] = field(default_factory=list)


def simify_mempool(entries: dict[str, MempoolEntry]) -> list[SimTx]:
    """Convert mempool entries to linked sim txs, ordered by txid.

    Raises ValueError if a parent of some entry is not itself in ``entries``.
    """
    nodes = {txid: SimTx() for txid in entries}
    for txid, entry in entries.items():
        node = nodes[txid]
        node.fee_rate, node.size = entry.fee_rate(), entry.size
        for parent in entry.depends():
            if parent not in entries:
                raise ValueError("mempool not closed")
            node.parents.append(nodes[parent])
    return [nodes[txid] for txid in sorted(entries)]


def prune_low_fee(entries: dict[str, MempoolEntry], thresh: int) -> None:
    """Remove, in place, entries with fee rate below ``thresh`` and all their descendants."""
    children: dict[str, list[str]] = defaultdict(list)
    for txid, entry in entries.items():
        for parent in entry.depends():
            children[parent].append(txid)

    for txid in list(entries):
        entry = entries.get(txid)
        if entry is None or entry.fee_rate() >= thresh:
            continue
        stack = [txid]
        while stack:
            removed = stack.pop()
            stack.extend(children.pop(removed, ()))
            entries.pop(removed, None)