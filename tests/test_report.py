"""Tests for the opcode summary table."""

import pytest

from opcode_gas_stats.core.aggregator import OpcodeStats
from opcode_gas_stats.report import COLUMNS, format_table, stats_frame, summarize


@pytest.fixture
def stats():
    s = OpcodeStats()
    s.record_all([
        ("PUSH1", 3), ("PUSH1", 3), ("PUSH1", 3),
        ("SSTORE", 20_000), ("SSTORE", 2_900),
        ("CALL", 2_600),
    ])
    return s


def test_frame_columns_and_values(stats):
    df = stats_frame(stats)
    assert list(df.columns) == COLUMNS
    row = df.set_index("op").loc["SSTORE"]
    assert row["count"] == 2
    assert row["total"] == 22_900
    assert row["avg"] == 11_450
    assert row["min"] == 2_900
    assert row["max"] == 20_000


def test_sorted_by_total_descending(stats):
    assert list(summarize(stats)["op"]) == ["SSTORE", "CALL", "PUSH1"]


def test_sorted_by_count(stats):
    assert list(summarize(stats, sort="count")["op"])[0] == "PUSH1"


def test_sorted_by_name_ascending(stats):
    assert list(summarize(stats, sort="op")["op"]) == ["CALL", "PUSH1", "SSTORE"]


def test_limit(stats):
    assert len(summarize(stats, limit=2)) == 2


def test_unknown_sort_key(stats):
    with pytest.raises(ValueError):
        summarize(stats, sort="median")


def test_format_table(stats):
    text = format_table(summarize(stats))
    assert "SSTORE" in text
    assert "11450.0" in text
    assert format_table(summarize(OpcodeStats())) == "no opcodes recorded"
