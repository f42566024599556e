"""Transaction and block statistics records used by the estimators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from feesim.sfr import SFRStat


@dataclass(frozen=True)
class Tx:
    """A transaction as seen entering the mempool.

    ``time`` is Unix time in seconds. ``type`` is reserved.
    """

    fee_rate: int
    size: int
    time: int = 0
    type: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"feerate": self.fee_rate, "size": self.size, "time": self.time}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tx":
        return cls(fee_rate=int(data["feerate"]), size=int(data["size"]), time=int(data["time"]))


@dataclass(frozen=True)
class BlockStat:
    """Statistics gathered about one block.

    ``mempool_size`` is measured just before the block was found and
    ``mempool_size_remain`` just after. ``time`` is the local time the block
    was seen, and ``num_hashes`` the expected hashes needed to solve it.
    """

    height: int
    size: int = 0
    sfr_stat: SFRStat = SFRStat()
    mempool_size: int = 0
    mempool_size_remain: int = 0
    time: int = 0
    num_hashes: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "height": self.height,
            "size": self.size,
            "sfrstat": self.sfr_stat.to_dict(),
            "mempoolsize": self.mempool_size,
            "mempoolsizeremain": self.mempool_size_remain,
            "time": self.time,
            "numhashes": self.num_hashes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BlockStat":
        return cls(
            height=int(data["height"]),
            size=int(data["size"]),
            sfr_stat=SFRStat.from_dict(data["sfrstat"]),
            mempool_size=int(data["mempoolsize"]),
            mempool_size_remain=int(data["mempoolsizeremain"]),
            time=int(data["time"]),
            num_hashes=float(data["numhashes"]),
        )