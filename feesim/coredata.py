"""Mempool entries and blocks as returned by the node's JSON-RPC interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PRIORITY_THRESH = 57600000
COIN = 100000000


@dataclass(frozen=True)
class CoreMempoolEntry:
    """A verbose ``getrawmempool`` entry. ``fee`` is in BTC, ``size`` in vbytes."""

    size: int = 0
    time: int = 0
    parents: tuple[str, ...] = ()
    fee: float = 0.0
    current_priority: float = 0.0

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "CoreMempoolEntry":
        return cls(
            size=int(data.get("vsize", 0)),
            time=int(data.get("time", 0)),
            parents=tuple(data.get("depends") or ()),
            fee=float(data.get("fee", 0.0)),
            current_priority=float(data.get("currentpriority", 0.0)),
        )

    def fee_rate(self) -> int:
        """Fee rate in satoshis per kB; raises ZeroDivisionError for size 0."""
        return int(self.fee * COIN * 1000) // self.size

    def depends(self) -> list[str]:
        """A fresh list of the parent txids."""
        return list(self.parents)

    def is_high_priority(self) -> bool:
        """Always False: the node no longer has a notion of priority."""
        return False


@dataclass(frozen=True)
class CoreBlock:
    """A verbose ``getblock`` result."""

    height: int = 0
    weight: int = 0
    tx_ids: tuple[str, ...] = ()
    difficulty: float = 0.0

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "CoreBlock":
        return cls(
            height=int(data.get("height", 0)),
            weight=int(data.get("weight", 0)),
            tx_ids=tuple(data.get("tx") or ()),
            difficulty=float(data.get("difficulty", 0.0)),
        )

    @property
    def size(self) -> int:
        """Virtual block size, i.e. weight / 4."""
        return self.weight // 4

    def txids(self) -> list[str]:
        """A fresh list of the block's txids."""
        return list(self.tx_ids)

    def num_hashes(self) -> float:
        """Expected number of hashes needed to solve this block."""
        return self.difficulty * 4295032833.000015