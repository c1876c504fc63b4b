"""Tests for endpoint lookup and range validation."""

import pytest

from opcode_gas_stats.config import DEFAULT_RPC_TIMEOUT, endpoint_for, rpc_timeout, validate_range
from opcode_gas_stats.errors import ConfigurationError


class TestEndpointFor:
    def test_reads_chain_variable(self, monkeypatch):
        monkeypatch.setenv("BASE_RPC_URL", "http://base-node:8545")
        monkeypatch.setenv("OPTIMISM_RPC_URL", "http://op-node:8545")
        assert endpoint_for("base") == "http://base-node:8545"
        assert endpoint_for("optimism") == "http://op-node:8545"

    def test_missing_variable(self, monkeypatch):
        monkeypatch.delenv("OPTIMISM_RPC_URL", raising=False)
        with pytest.raises(ConfigurationError, match="OPTIMISM_RPC_URL"):
            endpoint_for("optimism")

    def test_blank_variable(self, monkeypatch):
        monkeypatch.setenv("BASE_RPC_URL", "   ")
        with pytest.raises(ConfigurationError):
            endpoint_for("base")

    def test_unknown_chain(self):
        with pytest.raises(ConfigurationError, match="unknown chain"):
            endpoint_for("mainnet")


class TestRpcTimeout:
    def test_default(self, monkeypatch):
        monkeypatch.delenv("GAS_STATS_RPC_TIMEOUT", raising=False)
        assert rpc_timeout() == DEFAULT_RPC_TIMEOUT

    def test_reads_variable(self, monkeypatch):
        monkeypatch.setenv("GAS_STATS_RPC_TIMEOUT", "30")
        assert rpc_timeout() == 30.0

    @pytest.mark.parametrize("value", ["soon", "0", "-5"])
    def test_rejected(self, monkeypatch, value):
        monkeypatch.setenv("GAS_STATS_RPC_TIMEOUT", value)
        with pytest.raises(ConfigurationError, match="GAS_STATS_RPC_TIMEOUT"):
            rpc_timeout()


class TestValidateRange:
    def test_single_block_range(self):
        validate_range(5, 5)

    def test_checkpoint_inside_range(self):
        validate_range(100, 300, 200)
        validate_range(100, 300, 300)

    @pytest.mark.parametrize(
        "start, end, checkpoint",
        [(10, 5, None), (-1, 5, None), (100, 300, 100), (100, 300, 301), (100, 300, 50)],
    )
    def test_rejected(self, start, end, checkpoint):
        with pytest.raises(ConfigurationError):
            validate_range(start, end, checkpoint)
