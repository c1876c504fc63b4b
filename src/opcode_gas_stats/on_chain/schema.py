"""Typed struct-log trace records and the decoders that build them from node payloads.

Payload shapes follow geth's ``debug_trace*`` default struct logger:

    debug_traceTransaction   -> {"gas", "failed", "returnValue", "structLogs": [...]}
    debug_traceBlockByNumber -> [{"txHash", "result": <as above>} | {"error"}, ...]
    struct log               -> {"pc", "op", "gas", "gasCost", "depth", "error"?,
                                 "stack"?, "memory"?, "storage"?}

Anything that does not fit raises MalformedTrace with the JSON path of the
offending value instead of failing later with a KeyError or TypeError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from eth_utils import is_0x_prefixed, to_int

from ..errors import MalformedTrace, RpcError


@dataclass(frozen=True)
class LogEntry:
    """One executed instruction. ``gas`` is the gas remaining before it ran."""
    pc: int
    op: str
    gas: int
    gas_cost: int
    depth: int
    error: Optional[str] = None
    stack: Tuple[str, ...] = field(default=(), repr=False, compare=False)
    memory: Tuple[str, ...] = field(default=(), repr=False, compare=False)
    storage: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class TxTrace:
    """Struct logs of one transaction, in execution order."""
    struct_logs: Tuple[LogEntry, ...]
    tx_hash: Optional[str] = None
    gas: Optional[int] = None
    failed: bool = False
    return_value: str = ""


def quantity(value: Any, path: str) -> int:
    """Decode a JSON number or a 0x-prefixed hex quantity into a non-negative int."""
    if isinstance(value, bool):
        raise MalformedTrace(path, "expected an integer", value)
    if isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    elif isinstance(value, str) and is_0x_prefixed(value):
        try:
            result = to_int(hexstr=value)
        except ValueError as exc:
            raise MalformedTrace(path, f"invalid hex quantity ({exc})", value) from exc
    else:
        raise MalformedTrace(path, "expected an integer", value)
    if result < 0:
        raise MalformedTrace(path, "expected a non-negative integer", value)
    return result


def _require(raw: Mapping[str, Any], key: str, path: str) -> Any:
    if key not in raw:
        raise MalformedTrace(f"{path}.{key}", "missing field")
    return raw[key]


def _string_list(value: Any, path: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise MalformedTrace(path, "expected a list", value)
    return tuple(str(v) for v in value)


def decode_log_entry(raw: Any, path: str = "structLogs[0]") -> LogEntry:
    if not isinstance(raw, dict):
        raise MalformedTrace(path, "expected an object", raw)

    op = _require(raw, "op", path)
    if not isinstance(op, str) or not op:
        raise MalformedTrace(f"{path}.op", "expected an opcode name", op)

    error = raw.get("error")
    if error is not None and not isinstance(error, str):
        error = str(error)

    storage = raw.get("storage") or {}
    if not isinstance(storage, dict):
        raise MalformedTrace(f"{path}.storage", "expected an object", storage)

    return LogEntry(
        pc=quantity(_require(raw, "pc", path), f"{path}.pc"),
        op=op,
        gas=quantity(_require(raw, "gas", path), f"{path}.gas"),
        gas_cost=quantity(_require(raw, "gasCost", path), f"{path}.gasCost"),
        depth=quantity(_require(raw, "depth", path), f"{path}.depth"),
        error=error or None,
        stack=_string_list(raw.get("stack"), f"{path}.stack"),
        memory=_string_list(raw.get("memory"), f"{path}.memory"),
        storage=storage,
    )


def decode_tx_trace(raw: Any, path: str = "result", tx_hash: Optional[str] = None) -> TxTrace:
    """Decode a ``debug_traceTransaction`` result."""
    if not isinstance(raw, dict):
        raise MalformedTrace(path, "expected an object", raw)
    logs = _require(raw, "structLogs", path)
    if not isinstance(logs, list):
        raise MalformedTrace(f"{path}.structLogs", "expected a list", logs)

    entries = tuple(
        decode_log_entry(entry, f"{path}.structLogs[{i}]") for i, entry in enumerate(logs)
    )
    gas = raw.get("gas")
    return TxTrace(
        struct_logs=entries,
        tx_hash=tx_hash,
        gas=quantity(gas, f"{path}.gas") if gas is not None else None,
        failed=bool(raw.get("failed", False)),
        return_value=str(raw.get("returnValue") or ""),
    )


def decode_block_trace(raw: Any, limit: Optional[int] = None) -> List[TxTrace]:
    """Decode a ``debug_traceBlockByNumber`` result into per-transaction traces.

    Only the first ``limit`` items are looked at when ``limit`` is given; later
    items are neither decoded nor checked for tracer errors.

    A per-transaction ``error`` member means the node's tracer gave up on that
    transaction; it is reported as an RpcError so the caller can retry the block
    or fall back to tracing transactions one by one.
    """
    if not isinstance(raw, list):
        raise MalformedTrace("result", "expected a list of transaction traces", raw)

    traces: List[TxTrace] = []
    if limit is not None:
        raw = raw[:limit]
    for i, item in enumerate(raw):
        path = f"result[{i}]"
        if not isinstance(item, dict):
            raise MalformedTrace(path, "expected an object", item)
        tx_hash = item.get("txHash")
        if "result" not in item:
            if "error" in item:
                raise RpcError("debug_traceBlockByNumber", f"tx {tx_hash or i}: {item['error']}")
            raise MalformedTrace(f"{path}.result", "missing field")
        traces.append(decode_tx_trace(item["result"], f"{path}.result", tx_hash=tx_hash))
    return traces


def decode_block_tx_hashes(raw: Any, block_num: int) -> List[str]:
    """Extract transaction hashes from an ``eth_getBlockByNumber`` result."""
    if raw is None:
        raise MalformedTrace("result", f"block {block_num} not found", raw)
    if not isinstance(raw, dict):
        raise MalformedTrace("result", "expected a block object", raw)
    txs = _require(raw, "transactions", "result")
    if not isinstance(txs, list):
        raise MalformedTrace("result.transactions", "expected a list", txs)

    hashes: List[str] = []
    for i, tx in enumerate(txs):
        # full transaction objects when the block was fetched with full=true
        if isinstance(tx, dict):
            tx = tx.get("hash")
        if not isinstance(tx, str) or not is_0x_prefixed(tx):
            raise MalformedTrace(f"result.transactions[{i}]", "expected a transaction hash", tx)
        hashes.append(tx)
    return hashes
