"""Stranding fee rate calculations."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import groupby
from typing import Any, Iterable

MAX_FEE_RATE = 2**63 - 1


@dataclass(frozen=True)
class SFRStat:
    """Stranding fee rate with the above/below in-block counts."""

    sfr: int = 0
    ak: int = 0
    an: int = 0
    bk: int = 0
    bn: int = 0

    def __str__(self) -> str:
        return f"{self.sfr} SFR, {self.ak}/{self.an} AKN, {self.bk}/{self.bn} BKN"

    def to_dict(self) -> dict[str, int]:
        return {"sfr": self.sfr, "ak": self.ak, "an": self.an, "bk": self.bk, "bn": self.bn}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SFRStat":
        return cls(
            sfr=int(data["sfr"]),
            ak=int(data["ak"]),
            an=int(data["an"]),
            bk=int(data["bk"]),
            bn=int(data["bn"]),
        )


@dataclass(frozen=True)
class SFRTx:
    """A mempool transaction and whether it made it into the block."""

    fee_rate: int
    in_block: bool = False


def abkn(txs: Iterable[SFRTx], sfr: int) -> tuple[int, int, int, int]:
    """Count (ak, an, bk, bn) relative to the fee rate ``sfr``.

    ``an``/``ak``: txs at or above ``sfr``, and those of them in the block.
    ``bn``/``bk``: txs below ``sfr``, and those of them not in the block.
    """
    ak = an = bk = bn = 0
    for tx in txs:
        if tx.fee_rate >= sfr:
            an += 1
            ak += tx.in_block
        else:
            bn += 1
            bk += not tx.in_block
    return ak, an, bk, bn


def stranding_fee_rate(txs: Iterable[SFRTx], min_relay_fee: int) -> SFRStat:
    """Compute the stranding fee rate of a block.

    Raises ValueError if any tx has a fee rate below ``min_relay_fee``.
    """
    ordered = sorted(txs, key=lambda tx: tx.fee_rate, reverse=True)
    if not ordered:
        return SFRStat(sfr=MAX_FEE_RATE)

    lowest = ordered[-1].fee_rate
    if lowest < min_relay_fee:
        raise ValueError("SFR: tx has fee rate lower than the minimum relay fee")

    k = max_k = 0
    sfr = MAX_FEE_RATE
    for fee_rate, group in groupby(ordered, key=lambda tx: tx.fee_rate):
        for tx in group:
            k += 1 if tx.in_block else -1
        if k > max_k:
            max_k = k
            sfr = fee_rate

    if sfr == lowest:
        # Smooth the result when the SFR is the lowest observed fee rate.
        sfr = min_relay_fee

    ak, an, bk, bn = abkn(ordered, sfr)
    return SFRStat(sfr=sfr, ak=ak, an=an, bk=bk, bn=bn)