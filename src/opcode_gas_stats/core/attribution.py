"""Turn one transaction's struct logs into per-opcode gas contributions.

For ordinary opcodes the tracer's ``gasCost`` is the real charge. For CALL,
DELEGATECALL and STATICCALL it is the gas *offered* to the callee, so the real
cost has to be recovered from the ``gas`` remaining around the call:

- the call never opened a deeper frame (precompile, failed or reverted entry):
  ``cost = gas before the call - gas at the next entry``
- the call opened a frame:
  ``cost = gas offered - gas at the resolving entry``

Two resolution strategies are provided.

``SINGLE_SLOT`` keeps one pending call and resolves it at the very next entry,
whatever its depth. Historical snapshots were produced this way and it is the
default.

``CALL_STACK`` keeps one pending frame per depth and resolves each call when
execution comes back to the depth it was issued from. Calls issued from inside
a callee are tracked on their own frames and never overwrite the caller's.

Pending state lives inside a single ``attribute`` call, so nothing leaks from
one transaction into the next. A call still pending when the trace ends is
dropped with a warning.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Optional, Tuple

from ..errors import InvariantViolation
from ..on_chain.schema import LogEntry
from ..variables import CALL_OPCODES

logger = logging.getLogger(__name__)

Contribution = Tuple[str, int]


class AttributionMode(enum.Enum):
    SINGLE_SLOT = "single-slot"
    CALL_STACK = "call-stack"


@dataclass(frozen=True)
class CallPending:
    """A call-type opcode whose real cost is not known yet."""
    operation: str
    gas_allocated: int
    preceding: LogEntry
    entered: bool = False

    @classmethod
    def from_entry(cls, entry: LogEntry) -> "CallPending":
        return cls(operation=entry.op, gas_allocated=entry.gas_cost, preceding=entry)

    @property
    def depth(self) -> int:
        return self.preceding.depth


def is_call(entry: LogEntry) -> bool:
    return entry.op in CALL_OPCODES


def resolve_call(pending: CallPending, current: LogEntry, entered: bool, tx_hash: Optional[str] = None) -> int:
    """Real gas cost of ``pending`` observed at ``current``.

    Raises InvariantViolation, carrying both entries, when the result is negative.
    """
    if entered:
        cost = pending.gas_allocated - current.gas
    else:
        cost = pending.preceding.gas - current.gas
    if cost < 0:
        raise InvariantViolation(pending.operation, cost, pending.preceding, current, tx_hash=tx_hash)
    return cost


class GasAttributor:
    """Attributes gas per transaction and counts the calls it had to drop."""

    def __init__(self, mode: AttributionMode = AttributionMode.SINGLE_SLOT):
        self.mode = mode
        self.unresolved_calls = 0

    def attribute(self, entries: Iterable[LogEntry], tx_hash: Optional[str] = None) -> Iterator[Contribution]:
        """Yield ``(opcode, gas cost)`` for one transaction's struct logs."""
        if self.mode is AttributionMode.CALL_STACK:
            return self._call_stack(entries, tx_hash)
        return self._single_slot(entries, tx_hash)

    def _single_slot(self, entries: Iterable[LogEntry], tx_hash: Optional[str]) -> Iterator[Contribution]:
        pending: Optional[CallPending] = None
        for entry in entries:
            if pending is not None:
                entered = entry.depth != pending.depth
                yield pending.operation, resolve_call(pending, entry, entered, tx_hash)
                pending = None

            if is_call(entry):
                pending = CallPending.from_entry(entry)
                continue

            yield entry.op, entry.gas_cost

        if pending is not None:
            self._drop([pending], tx_hash)

    def _call_stack(self, entries: Iterable[LogEntry], tx_hash: Optional[str]) -> Iterator[Contribution]:
        frames: List[CallPending] = []
        for entry in entries:
            # back at (or above) the depth a call was issued from: that call is done
            while frames and entry.depth <= frames[-1].depth:
                call = frames.pop()
                yield call.operation, resolve_call(call, entry, call.entered, tx_hash)

            if frames and not frames[-1].entered:
                frames[-1] = replace(frames[-1], entered=True)

            if is_call(entry):
                frames.append(CallPending.from_entry(entry))
                continue

            yield entry.op, entry.gas_cost

        if frames:
            self._drop(reversed(frames), tx_hash)

    def _drop(self, pending: Iterable[CallPending], tx_hash: Optional[str]) -> None:
        for call in pending:
            self.unresolved_calls += 1
            logger.warning(
                "%s at pc %d depth %d is still pending at the end of tx %s; its cost is dropped",
                call.operation, call.preceding.pc, call.depth, tx_hash or "?",
            )


def attribute(
    entries: Iterable[LogEntry],
    mode: AttributionMode = AttributionMode.SINGLE_SLOT,
    tx_hash: Optional[str] = None,
) -> Iterator[Contribution]:
    """Yield ``(opcode, gas cost)`` for one transaction's struct logs."""
    return GasAttributor(mode).attribute(entries, tx_hash)


def attribute_declared(entries: Iterable[LogEntry]) -> Iterator[Contribution]:
    """Yield every entry's declared cost, call-type opcodes included."""
    for entry in entries:
        yield entry.op, entry.gas_cost
