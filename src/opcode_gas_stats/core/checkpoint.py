"""Snapshot persistence and the fresh/resumed checkpoint state machine.

Directory layout under the results root:

    <chain>/<start>_<end>/                     final snapshot of the range
    <chain>/<start>_<end>/<start>_<block>/     checkpoint taken before <block>

A checkpoint labelled ``block`` is written *before* that block is processed, so
it holds every block in ``[start, block - 1]`` and a resumed scan starts at
``block`` itself.
"""

from __future__ import annotations

import enum
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..errors import SnapshotCorrupt, SnapshotIOError, SnapshotNotFound
from ..variables import CHECKPOINT_INTERVAL, SNAPSHOT_FILES
from .aggregator import OpcodeStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotKey:
    chain: str
    start_block: int
    end_block: int
    checkpoint_block: Optional[int] = None

    def relative_dir(self) -> Path:
        path = Path(self.chain) / f"{self.start_block}_{self.end_block}"
        if self.checkpoint_block is not None:
            path = path / f"{self.start_block}_{self.checkpoint_block}"
        return path

    def __str__(self) -> str:
        return str(self.relative_dir())


class JsonResultSink:
    """Writes and reads snapshots as five indented JSON files per directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def path_for(self, key: SnapshotKey) -> Path:
        return self.root / key.relative_dir()

    def exists(self, key: SnapshotKey) -> bool:
        out_dir = self.path_for(key)
        return all((out_dir / name).is_file() for name in SNAPSHOT_FILES.values())

    def write(self, key: SnapshotKey, maps: Dict[str, Dict[str, Any]]) -> Path:
        out_dir = self.path_for(key)
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SnapshotIOError(f"cannot create {out_dir}: {exc}") from exc

        for name, filename in SNAPSHOT_FILES.items():
            path = out_dir / filename
            try:
                with path.open("w", encoding="utf-8") as f:
                    json.dump(maps.get(name, {}), f, indent=2, sort_keys=True)
            except OSError as exc:
                raise SnapshotIOError(f"cannot write {path}: {exc}") from exc
        return out_dir

    def read(self, key: SnapshotKey) -> Dict[str, Dict[str, Any]]:
        return read_snapshot_dir(self.path_for(key))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _load_map(path: Path, integer: bool) -> Dict[str, Any]:
    if not path.is_file():
        raise SnapshotNotFound(f"snapshot file missing: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise SnapshotCorrupt(f"{path} is not valid JSON: {exc}") from exc
    except OSError as exc:
        raise SnapshotIOError(f"cannot read {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise SnapshotCorrupt(f"{path} does not hold a JSON object")
    for op, value in data.items():
        if integer:
            # integral floats appear when a count map was re-serialised by other tools
            if isinstance(value, float) and value.is_integer():
                value = data[op] = int(value)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise SnapshotCorrupt(f"{path}: count for {op!r} is not a non-negative integer: {value!r}")
        elif not _is_number(value):
            raise SnapshotCorrupt(f"{path}: cost for {op!r} is not a number: {value!r}")
    return data


def read_snapshot_dir(snapshot_dir: Path | str) -> Dict[str, Dict[str, Any]]:
    """Load the five maps from a snapshot directory."""
    snapshot_dir = Path(snapshot_dir)
    if not snapshot_dir.is_dir():
        raise SnapshotNotFound(f"snapshot directory missing: {snapshot_dir}")
    return {
        name: _load_map(snapshot_dir / filename, integer=(name == "count"))
        for name, filename in SNAPSHOT_FILES.items()
    }


def stats_from_snapshot(maps: Dict[str, Dict[str, Any]]) -> OpcodeStats:
    return OpcodeStats.from_maps(
        count=maps["count"],
        total=maps["total"],
        average=maps["average"],
        min_cost=maps["min"],
        max_cost=maps["max"],
    )


class ScanState(enum.Enum):
    FRESH = "fresh"
    RESUMED = "resumed"


class CheckpointManager:
    """Decides when to checkpoint a scan over ``[start_block, end_block]`` and how to resume it."""

    def __init__(
        self,
        sink: JsonResultSink,
        chain: str,
        start_block: int,
        end_block: int,
        interval: int = CHECKPOINT_INTERVAL,
    ):
        if interval <= 0:
            raise ValueError(f"checkpoint interval must be positive, got {interval}")
        self.sink = sink
        self.chain = chain
        self.start_block = start_block
        self.end_block = end_block
        self.interval = interval
        self.state = ScanState.FRESH
        self.last_checkpoint: Optional[int] = None

    def key(self, checkpoint_block: Optional[int] = None) -> SnapshotKey:
        return SnapshotKey(self.chain, self.start_block, self.end_block, checkpoint_block)

    def begin(self, checkpoint_block: Optional[int] = None) -> Tuple[OpcodeStats, int]:
        """Return the stats to start from and the first block to process."""
        if checkpoint_block is None:
            self.state = ScanState.FRESH
            return OpcodeStats(), self.start_block

        stats = self.load(self.key(checkpoint_block))
        self.state = ScanState.RESUMED
        self.last_checkpoint = checkpoint_block
        logger.info(
            "Resuming %s from checkpoint %d with %d opcodes loaded",
            self.key(), checkpoint_block, len(stats),
        )
        return stats, checkpoint_block

    def should_checkpoint(self, block_num: int) -> bool:
        offset = block_num - self.start_block
        return offset != 0 and offset % self.interval == 0

    def save(self, stats: OpcodeStats, block_num: int) -> Path:
        stats.recompute_averages()
        path = self.sink.write(self.key(block_num), stats.to_maps())
        self.last_checkpoint = block_num
        logger.info("Checkpoint before block %d written to %s", block_num, path)
        return path

    def finish(self, stats: OpcodeStats) -> Path:
        stats.recompute_averages()
        path = self.sink.write(self.key(), stats.to_maps())
        logger.info("Final snapshot written to %s", path)
        return path

    def load(self, key: SnapshotKey) -> OpcodeStats:
        return stats_from_snapshot(self.sink.read(key))
