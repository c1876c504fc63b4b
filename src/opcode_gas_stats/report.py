"""Tabular views of opcode statistics."""

from typing import Optional

import pandas as pd

from .core.aggregator import OpcodeStats

COLUMNS = ["op", "count", "total", "avg", "min", "max"]
SORT_KEYS = ("total", "count", "avg", "op")


def stats_frame(stats: OpcodeStats) -> pd.DataFrame:
    stats.recompute_averages()
    rows = [
        {
            "op": op,
            "count": stat.count,
            "total": stat.total,
            "avg": stat.average,
            "min": stat.min_cost,
            "max": stat.max_cost,
        }
        for op, stat in stats.items()
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def summarize(stats: OpcodeStats, sort: str = "total", limit: Optional[int] = None) -> pd.DataFrame:
    """Stats table sorted by ``sort`` (descending, except ``op``) and cut to ``limit`` rows."""
    if sort not in SORT_KEYS:
        raise ValueError(f"unknown sort key {sort!r} (expected one of: {', '.join(SORT_KEYS)})")
    df = stats_frame(stats)
    df = df.sort_values(sort, ascending=(sort == "op"), kind="stable").reset_index(drop=True)
    if limit:
        df = df.head(limit)
    return df


def format_table(df: pd.DataFrame) -> str:
    if df.empty:
        return "no opcodes recorded"
    return df.to_string(index=False, float_format=lambda v: f"{v:.1f}")
