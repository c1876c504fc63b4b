"""Running per-opcode gas statistics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple


@dataclass
class OpcodeStat:
    count: int = 0
    total: float = 0.0
    # None until the first observation; zero is a legitimate cost
    min_cost: Optional[float] = None
    max_cost: Optional[float] = None
    average: float = 0.0

    def add(self, cost: float) -> None:
        self.count += 1
        self.total += cost
        if self.min_cost is None or cost < self.min_cost:
            self.min_cost = cost
        if self.max_cost is None or cost > self.max_cost:
            self.max_cost = cost


class OpcodeStats:
    """count / total / min / max / average of gas cost, keyed by opcode name.

    Counts and totals only grow. ``average`` is derived and only refreshed by
    ``recompute_averages()``, which the checkpoint writer calls before every
    snapshot.
    """

    def __init__(self) -> None:
        self._stats: Dict[str, OpcodeStat] = {}

    def record(self, op: str, cost: float) -> None:
        stat = self._stats.get(op)
        if stat is None:
            stat = self._stats[op] = OpcodeStat()
        stat.add(float(cost))

    def record_all(self, contributions: Iterable[Tuple[str, float]]) -> int:
        """Fold ``(op, cost)`` pairs in order; returns how many were recorded."""
        n = 0
        for op, cost in contributions:
            self.record(op, cost)
            n += 1
        return n

    def recompute_averages(self) -> None:
        for stat in self._stats.values():
            if stat.count > 0:
                stat.average = stat.total / stat.count

    def count(self, op: str) -> int:
        stat = self._stats.get(op)
        return stat.count if stat else 0

    def total(self, op: str) -> float:
        stat = self._stats.get(op)
        return stat.total if stat else 0.0

    def min_cost(self, op: str) -> Optional[float]:
        stat = self._stats.get(op)
        return stat.min_cost if stat else None

    def max_cost(self, op: str) -> Optional[float]:
        stat = self._stats.get(op)
        return stat.max_cost if stat else None

    def average(self, op: str) -> float:
        stat = self._stats.get(op)
        return stat.average if stat else 0.0

    def opcodes(self) -> Iterator[str]:
        return iter(sorted(self._stats))

    def items(self) -> Iterator[Tuple[str, OpcodeStat]]:
        for op in sorted(self._stats):
            yield op, self._stats[op]

    def __len__(self) -> int:
        return len(self._stats)

    def __contains__(self, op: object) -> bool:
        return op in self._stats

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OpcodeStats):
            return NotImplemented
        return self._stats == other._stats

    def __repr__(self) -> str:
        return f"OpcodeStats({len(self._stats)} opcodes)"

    def to_maps(self) -> Dict[str, Dict[str, float]]:
        """The five snapshot maps. Averages are written as last recomputed."""
        maps: Dict[str, Dict[str, float]] = {"count": {}, "total": {}, "average": {}, "min": {}, "max": {}}
        for op, stat in self.items():
            maps["count"][op] = stat.count
            maps["total"][op] = stat.total
            maps["average"][op] = stat.average
            if stat.min_cost is not None:
                maps["min"][op] = stat.min_cost
            if stat.max_cost is not None:
                maps["max"][op] = stat.max_cost
        return maps

    @classmethod
    def from_maps(
        cls,
        count: Mapping[str, int],
        total: Mapping[str, float],
        average: Mapping[str, float],
        min_cost: Mapping[str, float],
        max_cost: Mapping[str, float],
    ) -> "OpcodeStats":
        """Rebuild stats from snapshot maps; the count map decides which opcodes exist."""
        stats = cls()
        for op, n in count.items():
            if n <= 0:
                continue
            stats._stats[op] = OpcodeStat(
                count=int(n),
                total=float(total.get(op, 0.0)),
                min_cost=float(min_cost[op]) if op in min_cost else None,
                max_cost=float(max_cost[op]) if op in max_cost else None,
                average=float(average.get(op, 0.0)),
            )
        return stats
