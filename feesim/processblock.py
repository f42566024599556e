"""Turning the mempool change across new blocks into block statistics."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from feesim.mempool import Block, MempoolState
from feesim.records import BlockStat
from feesim.sfr import SFRTx, stranding_fee_rate

_log = logging.getLogger(__name__)


def process_block(
    prev: MempoolState,
    curr: MempoolState,
    get_block: Callable[[int], Block],
    logger: logging.Logger | None = None,
) -> tuple[list[BlockStat], list[Block]]:
    """Compute a BlockStat for each block between ``prev`` and ``curr``.

    ``prev`` is not modified. Raises ValueError unless ``curr`` is higher
    than ``prev``; errors from ``get_block`` propagate.
    """
    if curr.height <= prev.height:
        raise ValueError("process_block: curr.height must exceed prev.height")
    logger = logger or _log
    prev = prev.copy()

    stats: list[BlockStat] = []
    shortlists: list[dict[str, SFRTx]] = []
    blocks: list[Block] = []
    lead_times: list[int] = []
    for height in range(prev.height + 1, curr.height + 1):
        block = get_block(height)
        mempool_size = sum(entry.size for entry in prev.entries.values())
        block_txids = set(block.txids())

        shortlist: dict[str, SFRTx] = {}
        cutoff = 0
        in_block_size = 0
        for txid, entry in list(prev.entries.items()):
            in_block = txid in block_txids
            if in_block:
                cutoff = max(cutoff, entry.time)
                in_block_size += entry.size
                del prev.entries[txid]
            # Only txs with no mempool parents and no priority exemption count.
            if entry.depends() or entry.is_high_priority():
                continue
            shortlist[txid] = SFRTx(entry.fee_rate(), in_block)

        # Txs arriving after the latest included tx may not yet have been
        # eligible: miners refresh their templates only periodically.
        shortlist = {
            txid: stx
            for txid, stx in shortlist.items()
            if stx.in_block or prev.entries[txid].time <= cutoff
        }

        stats.append(
            BlockStat(
                height=height,
                size=block.size,
                mempool_size=mempool_size,
                mempool_size_remain=mempool_size - in_block_size,
                time=prev.time,
                num_hashes=block.num_hashes(),
            )
        )
        shortlists.append(shortlist)
        blocks.append(block)
        lead_times.append(prev.time - cutoff)

    # Txs that left the mempool without being mined were conflicts.
    conflicts = prev.sub(curr).entries
    conflict_size = 0
    for txid, entry in conflicts.items():
        for shortlist in shortlists:
            shortlist.pop(txid, None)
        conflict_size += entry.size
    if conflict_size > 0:
        logger.info(
            "Block %d: %d conflicts (%d bytes) removed",
            prev.height + 1, len(conflicts), conflict_size,
        )

    result = []
    for stat, shortlist, block, lead_time in zip(stats, shortlists, blocks, lead_times):
        stat = replace(stat, sfr_stat=stranding_fee_rate(shortlist.values(), prev.min_fee_rate))
        logger.info(
            "Block %d: %d S, %d RS, %d MSR, %d MLT, %s",
            stat.height, block.size, stat.mempool_size - stat.mempool_size_remain,
            stat.mempool_size_remain, lead_time, stat.sfr_stat,
        )
        result.append(stat)
    return result, blocks


def printable(text: str | bytes) -> str:
    """Drop unprintable characters and undecodable UTF-8 from ``text``."""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return "".join(ch for ch in text if ch != "\ufffd" and ch.isprintable())