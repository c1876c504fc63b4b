"""Block-by-block scan: fetch traces, attribute gas, fold stats, checkpoint.

Everything runs on the calling thread. A block is fully folded into the stats
before the next one is fetched, and retries are plain sleeps.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from ..errors import FallbackFailed, GasStatsError, TraceFetchError
from ..on_chain.schema import TxTrace
from ..progress import ProgressBar
from ..variables import BLOCK_TRACE_ATTEMPTS, BLOCK_TRACE_RETRY_DELAY, MAX_BLOCK_TX_TRACES
from .aggregator import OpcodeStats
from .attribution import AttributionMode, GasAttributor, attribute_declared
from .checkpoint import CheckpointManager, ScanState

logger = logging.getLogger(__name__)


class TraceSource(Protocol):
    def trace_block(self, block_num: int) -> List[TxTrace]: ...

    def block_tx_hashes(self, block_num: int) -> List[str]: ...

    def trace_transaction(self, tx_hash: str) -> TxTrace: ...


@dataclass
class ScanResult:
    stats: OpcodeStats
    first_block: int
    last_block: int
    resumed: bool = False
    bulk_blocks: int = 0
    fallback_blocks: int = 0
    transactions: int = 0
    unresolved_calls: int = 0
    checkpoints: List[int] = field(default_factory=list)


class ScanDriver:
    def __init__(
        self,
        source: TraceSource,
        checkpoints: CheckpointManager,
        mode: AttributionMode = AttributionMode.SINGLE_SLOT,
        attempts: int = BLOCK_TRACE_ATTEMPTS,
        retry_delay: float = BLOCK_TRACE_RETRY_DELAY,
        progress: bool = False,
    ):
        self.source = source
        self.checkpoints = checkpoints
        self.attributor = GasAttributor(mode)
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.progress = progress

    def try_block(self, block_num: int) -> List[TxTrace]:
        """One bulk attempt; transient failures surface as TraceFetchError."""
        try:
            return self.source.trace_block(block_num)
        except GasStatsError as exc:
            if exc.fatal:
                raise
            raise TraceFetchError(block_num, exc) from exc

    def fetch_block(self, block_num: int) -> Optional[List[TxTrace]]:
        """Bulk-trace ``block_num``; ``None`` once the attempt budget is spent."""
        tries_left = self.attempts
        while tries_left > 0:
            try:
                return self.try_block(block_num)
            except TraceFetchError as exc:
                tries_left -= 1
                logger.warning("%s (%d attempt(s) left)", exc, tries_left)
                if tries_left > 0:
                    time.sleep(self.retry_delay)
        return None

    def fetch_block_fallback(self, block_num: int) -> List[TxTrace]:
        try:
            tx_hashes = self.source.block_tx_hashes(block_num)
        except GasStatsError as exc:
            raise FallbackFailed(block_num, f"cannot list transactions: {exc}") from exc

        traces = []
        for tx_hash in tx_hashes:
            try:
                traces.append(self.source.trace_transaction(tx_hash))
            except GasStatsError as exc:
                raise FallbackFailed(block_num, f"cannot trace {tx_hash}: {exc}") from exc
        return traces

    def process_block(self, block_num: int, stats: OpcodeStats, result: ScanResult) -> None:
        traces = self.fetch_block(block_num)
        if traces is not None:
            for trace in traces[:MAX_BLOCK_TX_TRACES]:
                stats.record_all(self.attributor.attribute(trace.struct_logs, tx_hash=trace.tx_hash))
                result.transactions += 1
            result.bulk_blocks += 1
            return

        logger.warning(
            "Failed to trace block %d after %d tries, using tx traces instead", block_num, self.attempts
        )
        # call-type opcodes keep their declared (allocated) cost on this path
        for trace in self.fetch_block_fallback(block_num):
            stats.record_all(attribute_declared(trace.struct_logs))
            result.transactions += 1
        result.fallback_blocks += 1

    def run(self, checkpoint_block: Optional[int] = None) -> ScanResult:
        """Scan the checkpoint manager's block range, resuming from ``checkpoint_block`` if given."""
        end_block = self.checkpoints.end_block
        stats, first_block = self.checkpoints.begin(checkpoint_block)
        resumed = self.checkpoints.state is ScanState.RESUMED
        result = ScanResult(stats=stats, first_block=first_block, last_block=first_block - 1, resumed=resumed)

        bar = ProgressBar(end_block - first_block + 1) if self.progress else None
        try:
            for block_num in range(first_block, end_block + 1):
                logger.debug("Processing block %d", block_num)
                # the loaded checkpoint already describes this boundary
                if self.checkpoints.should_checkpoint(block_num) and not (resumed and block_num == first_block):
                    self.checkpoints.save(stats, block_num)
                    result.checkpoints.append(block_num)

                self.process_block(block_num, stats, result)
                result.last_block = block_num
                if bar is not None:
                    bar.render(block_num - first_block + 1, label=str(block_num))
        finally:
            if bar is not None:
                bar.finish()

        result.unresolved_calls = self.attributor.unresolved_calls
        self.checkpoints.finish(stats)
        logger.info(
            "Scanned blocks %d..%d: %d bulk, %d fallback, %d txs, %d opcodes",
            first_block, end_block, result.bulk_blocks, result.fallback_blocks,
            result.transactions, len(stats),
        )
        return result

