"""Error hierarchy for trace fetching, attribution and snapshot handling.

Every error carries a ``fatal`` flag. Transient errors are retried by the scan
driver within its fixed budget; fatal ones end the scan, leaving the last
checkpoint on disk as the only partial result.
"""

from __future__ import annotations

from typing import Any, Optional


class GasStatsError(Exception):
    """Base class for every error raised by opcode_gas_stats."""

    fatal = True


class ConfigurationError(GasStatsError):
    """Missing endpoint, unknown chain, bad block range or unreachable node."""


class RpcError(GasStatsError):
    """Transport, HTTP or JSON-RPC level failure talking to the node."""

    fatal = False

    def __init__(self, method: str, message: str):
        super().__init__(f"{method}: {message}")
        self.method = method


class TraceFetchError(GasStatsError):
    """A bulk block trace attempt failed; the driver retries then falls back."""

    fatal = False

    def __init__(self, block_num: int, cause: Exception):
        super().__init__(f"failed to trace block {block_num}: {cause}")
        self.block_num = block_num
        self.cause = cause


class FallbackFailed(GasStatsError):
    """Fetching the transaction list or a single transaction trace failed."""

    def __init__(self, block_num: int, message: str):
        super().__init__(f"fallback tracing of block {block_num} failed: {message}")
        self.block_num = block_num


class MalformedTrace(GasStatsError):
    """A trace payload does not have the expected shape."""

    def __init__(self, path: str, reason: str, value: Any = None):
        super().__init__(f"malformed trace at {path}: {reason} (got {value!r})")
        self.path = path
        self.reason = reason
        self.value = value


class InvariantViolation(GasStatsError):
    """A call-type opcode resolved to a negative gas cost."""

    def __init__(self, operation: str, cost: int, preceding: Any, current: Any, tx_hash: Optional[str] = None):
        where = f" in tx {tx_hash}" if tx_hash else ""
        super().__init__(
            f"negative gas cost {cost} attributed to {operation}{where}; "
            f"preceding entry {preceding!r}, current entry {current!r}"
        )
        self.operation = operation
        self.cost = cost
        self.preceding = preceding
        self.current = current
        self.tx_hash = tx_hash


class SnapshotError(GasStatsError):
    """Base class for snapshot persistence failures."""


class SnapshotNotFound(SnapshotError):
    pass


class SnapshotCorrupt(SnapshotError):
    pass


class SnapshotIOError(SnapshotError):
    pass
