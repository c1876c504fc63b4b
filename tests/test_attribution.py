"""Tests for call-cost attribution over synthetic struct logs."""

import logging

import pytest

from opcode_gas_stats.core.aggregator import OpcodeStats
from opcode_gas_stats.core.attribution import (
    AttributionMode,
    GasAttributor,
    attribute,
    attribute_declared,
)
from opcode_gas_stats.errors import InvariantViolation

from tests.fakes import entry

BOTH_MODES = [AttributionMode.SINGLE_SLOT, AttributionMode.CALL_STACK]

NESTED_CALL = [
    entry("PUSH1", 10_000, 3, 1, 0),
    entry("CALL", 9_997, 1_000, 1, 2),
    entry("PUSH1", 900, 3, 2, 0),
    entry("STOP", 897, 0, 2, 2),
    entry("POP", 400, 2, 1, 3),
]


class TestPlainOpcodes:
    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_totals_equal_declared_costs(self, mode):
        logs = [
            entry("PUSH1", 1000, 3),
            entry("PUSH1", 997, 3),
            entry("ADD", 994, 3),
            entry("SSTORE", 991, 20_000),
            entry("MSTORE", 971, 6),
            entry("SSTORE", 965, 2_900),
        ]
        stats = OpcodeStats()
        stats.record_all(attribute(logs, mode))

        assert stats.total("PUSH1") == 6
        assert stats.total("ADD") == 3
        assert stats.total("SSTORE") == 22_900
        assert stats.count("SSTORE") == 2
        assert stats.total("MSTORE") == 6

    def test_empty_trace_yields_nothing(self):
        assert list(attribute([])) == []


class TestCallWithoutNestedFrame:
    @pytest.mark.parametrize("mode", BOTH_MODES)
    @pytest.mark.parametrize("op", ["CALL", "DELEGATECALL", "STATICCALL"])
    def test_cost_is_gas_difference_across_the_call(self, mode, op):
        x = 300
        logs = [
            entry(op, 5_000, 1_000, 1, 10),
            entry("POP", 5_000 - 1_000 + x, 2, 1, 11),
        ]
        result = list(attribute(logs, mode))
        assert result == [(op, 5_000 - (5_000 - 1_000 + x)), ("POP", 2)]

    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_call_contributes_nothing_until_resolved(self, mode):
        logs = [entry("CALL", 5_000, 1_000), entry("POP", 4_800, 2)]
        gen = attribute(logs, mode)
        # the CALL entry itself is held back; the POP entry resolves it first
        assert next(gen) == ("CALL", 200)
        assert next(gen) == ("POP", 2)


class TestCallWithNestedFrame:
    def test_call_stack_resolves_on_return_to_caller_depth(self):
        result = list(attribute(NESTED_CALL, AttributionMode.CALL_STACK))
        assert result == [
            ("PUSH1", 3),
            ("PUSH1", 3),
            ("STOP", 0),
            ("CALL", 1_000 - 400),
            ("POP", 2),
        ]

    def test_call_stack_with_deep_callee(self):
        logs = [entry("CALL", 50_000, 1_000, 3)]
        logs += [entry("JUMPDEST", 900 - k, 1, 4 + (k % 3)) for k in range(9)]
        logs.append(entry("POP", 250, 2, 3))
        result = list(attribute(logs, AttributionMode.CALL_STACK))
        assert ("CALL", 750) in result
        assert sum(1 for op, _ in result if op == "CALL") == 1

    def test_single_slot_resolves_at_first_callee_entry(self):
        result = list(attribute(NESTED_CALL, AttributionMode.SINGLE_SLOT))
        assert result == [
            ("PUSH1", 3),
            ("CALL", 1_000 - 900),
            ("PUSH1", 3),
            ("STOP", 0),
            ("POP", 2),
        ]

    def test_call_stack_keeps_caller_frame_while_callee_calls(self):
        logs = [
            entry("CALL", 10_000, 5_000, 1, 0),
            entry("PUSH1", 4_900, 3, 2, 0),
            entry("STATICCALL", 4_897, 2_000, 2, 2),
            entry("STOP", 1_900, 0, 3, 0),
            entry("POP", 1_500, 2, 2, 3),
            entry("STOP", 1_498, 0, 2, 4),
            entry("POP", 3_000, 2, 1, 1),
        ]
        result = list(attribute(logs, AttributionMode.CALL_STACK))
        assert ("STATICCALL", 2_000 - 1_500) in result
        assert ("CALL", 5_000 - 3_000) in result
        assert result.index(("STATICCALL", 500)) < result.index(("CALL", 2_000))

    def test_call_stack_back_to_back_calls_resolve_independently(self):
        logs = [
            entry("CALL", 5_000, 1_000, 1, 0),
            entry("CALL", 4_800, 500, 1, 1),
            entry("PUSH1", 400, 3, 2, 0),
            entry("STOP", 397, 0, 2, 2),
            entry("POP", 300, 2, 1, 2),
        ]
        result = list(attribute(logs, AttributionMode.CALL_STACK))
        assert result == [
            ("CALL", 200),
            ("PUSH1", 3),
            ("STOP", 0),
            ("CALL", 200),
            ("POP", 2),
        ]


class TestInvariantViolation:
    def test_single_slot_rejects_gas_growing_across_call(self):
        preceding = entry("CALL", 5_000, 1_000, 1, 7)
        current = entry("POP", 6_000, 2, 1, 8)
        with pytest.raises(InvariantViolation) as excinfo:
            list(attribute([preceding, current], AttributionMode.SINGLE_SLOT, tx_hash="0xabc"))

        err = excinfo.value
        assert err.cost == -1_000
        assert err.operation == "CALL"
        assert err.preceding == preceding
        assert err.current == current
        assert err.tx_hash == "0xabc"
        assert err.fatal

    def test_call_stack_rejects_return_with_more_gas_than_allocated(self):
        logs = [
            entry("CALL", 5_000, 1_000, 1),
            entry("PUSH1", 900, 3, 2),
            entry("POP", 4_200, 2, 1),
        ]
        with pytest.raises(InvariantViolation) as excinfo:
            list(attribute(logs, AttributionMode.CALL_STACK))
        assert excinfo.value.cost == 1_000 - 4_200

    def test_nothing_is_clamped(self):
        stats = OpcodeStats()
        logs = [entry("ADD", 10, 3), entry("DELEGATECALL", 100, 50), entry("ADD", 101, 3)]
        with pytest.raises(InvariantViolation):
            stats.record_all(attribute(logs))
        assert "DELEGATECALL" not in stats


class TestUnresolvedCalls:
    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_trailing_call_is_dropped_with_warning(self, mode, caplog):
        attributor = GasAttributor(mode)
        logs = [entry("PUSH1", 100, 3), entry("CALL", 97, 50, 1, 9)]
        with caplog.at_level(logging.WARNING):
            result = list(attributor.attribute(logs, tx_hash="0xfeed"))

        assert result == [("PUSH1", 3)]
        assert attributor.unresolved_calls == 1
        assert "0xfeed" in caplog.text

    @pytest.mark.parametrize("mode", BOTH_MODES)
    def test_pending_call_never_crosses_transactions(self, mode):
        attributor = GasAttributor(mode)
        first = [entry("PUSH1", 100, 3), entry("CALL", 97, 50)]
        second = [entry("PUSH1", 90_000, 3), entry("STOP", 89_997, 0)]

        assert list(attributor.attribute(first)) == [("PUSH1", 3)]
        assert list(attributor.attribute(second)) == [("PUSH1", 3), ("STOP", 0)]
        assert attributor.unresolved_calls == 1

    def test_call_stack_counts_every_open_frame(self):
        attributor = GasAttributor(AttributionMode.CALL_STACK)
        logs = [entry("CALL", 10_000, 5_000, 1), entry("STATICCALL", 4_000, 1_000, 2)]
        assert list(attributor.attribute(logs)) == []
        assert attributor.unresolved_calls == 2


class TestDeclaredAttribution:
    def test_calls_keep_declared_cost(self):
        result = list(attribute_declared(NESTED_CALL))
        assert ("CALL", 1_000) in result
        assert len(result) == len(NESTED_CALL)
