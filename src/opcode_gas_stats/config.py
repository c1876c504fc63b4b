import os
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError
from .variables import CHAIN_ENDPOINT_VARS

# Node endpoints and paths come from the environment, optionally via ./.env
load_dotenv(Path.cwd() / ".env")

RESULTS_ROOT = Path(os.getenv("GAS_STATS_RESULTS_DIR", "results"))
DEFAULT_RPC_TIMEOUT = 120.0


def endpoint_for(chain: str) -> str:
    """Return the node URL for ``chain``, read from its environment variable."""
    var = CHAIN_ENDPOINT_VARS.get(chain)
    if var is None:
        known = ", ".join(sorted(CHAIN_ENDPOINT_VARS))
        raise ConfigurationError(f"unknown chain {chain!r} (expected one of: {known})")
    url = os.getenv(var, "").strip()
    if not url:
        raise ConfigurationError(f"{var} not set in the environment or .env")
    return url


def rpc_timeout() -> float:
    """Per-request node timeout in seconds, from GAS_STATS_RPC_TIMEOUT."""
    raw = os.getenv("GAS_STATS_RPC_TIMEOUT", "").strip()
    if not raw:
        return DEFAULT_RPC_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        raise ConfigurationError(f"GAS_STATS_RPC_TIMEOUT must be a number of seconds, got {raw!r}") from None
    if not timeout > 0:
        raise ConfigurationError(f"GAS_STATS_RPC_TIMEOUT must be positive, got {raw!r}")
    return timeout


def validate_range(start_block: int, end_block: int, checkpoint: int | None = None) -> None:
    if start_block < 0:
        raise ConfigurationError(f"start block must be non-negative, got {start_block}")
    if start_block > end_block:
        raise ConfigurationError(f"start block {start_block} is after end block {end_block}")
    if checkpoint is not None and not start_block < checkpoint <= end_block:
        raise ConfigurationError(
            f"checkpoint {checkpoint} must lie in ({start_block}, {end_block}]"
        )
