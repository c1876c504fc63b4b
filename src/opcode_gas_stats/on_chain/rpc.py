"""JSON-RPC access to an archive node with the debug namespace enabled.

The node is asked for:
  - debug_traceBlockByNumber(<hex block>)         struct logs of every tx in a block
  - eth_getBlockByNumber(<hex block>, false)      the block's tx hashes (fallback path)
  - debug_traceTransaction(<tx hash>)             struct logs of one tx (fallback path)

Rate limiting (HTTP 429 or a "rate limit" style JSON-RPC error) is absorbed here
with Retry-After / exponential back-off. Every other failure is raised as
RpcError straight away; the scan driver owns the retry budget for traces.
"""

import itertools
import logging
import time
from typing import Any, List, Optional

import requests
from eth_utils import to_hex
from requests.adapters import HTTPAdapter

from ..config import DEFAULT_RPC_TIMEOUT
from ..errors import ConfigurationError, MalformedTrace, RpcError
from ..variables import MAX_BLOCK_TX_TRACES
from .schema import TxTrace, decode_block_trace, decode_block_tx_hashes, decode_tx_trace, quantity

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("rate limit", "too many", "capacity", "exceeded")
MAX_RATE_LIMIT_RETRIES = 6
MAX_BACKOFF = 8.0


def to_block_hex(n: int) -> str:
    return to_hex(int(n))


def _is_rate_limited(message: str) -> bool:
    msg = message.lower()
    return any(marker in msg for marker in RATE_LIMIT_MARKERS)


class NodeClient:
    """Blocking JSON-RPC client over one keep-alive ``requests`` session."""

    def __init__(self, url: str, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        if not url:
            raise ConfigurationError("node URL is empty")
        self.url = url
        self.timeout = DEFAULT_RPC_TIMEOUT if timeout is None else timeout
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session
        self._ids = itertools.count(1)

    def rpc(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        backoff = 0.5
        for _ in range(MAX_RATE_LIMIT_RETRIES):
            try:
                r = self.session.post(self.url, json=payload, timeout=self.timeout)
            except requests.exceptions.RequestException as exc:
                raise RpcError(method, f"request failed: {exc}") from exc

            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                delay = float(ra) if ra and ra.isdigit() else backoff
                logger.warning("%s rate limited, retrying in %.1fs", method, delay)
                time.sleep(delay)
                backoff = min(backoff * 2, MAX_BACKOFF)
                continue

            try:
                r.raise_for_status()
                resp = r.json()
            except requests.exceptions.HTTPError as exc:
                raise RpcError(method, str(exc)) from exc
            except ValueError as exc:
                raise RpcError(method, f"response is not JSON: {exc}") from exc

            if not isinstance(resp, dict):
                raise RpcError(method, f"unexpected response {resp!r}")
            if resp.get("error") is not None:
                err = resp["error"]
                message = err.get("message", str(err)) if isinstance(err, dict) else str(err)
                if _is_rate_limited(message):
                    logger.warning("%s rate limited (%s), retrying in %.1fs", method, message, backoff)
                    time.sleep(backoff)
                    backoff = min(backoff * 2, MAX_BACKOFF)
                    continue
                raise RpcError(method, f"RPC error: {message}")
            if "result" not in resp:
                raise RpcError(method, "response has neither result nor error")
            return resp["result"]
        raise RpcError(method, f"still rate limited after {MAX_RATE_LIMIT_RETRIES} attempts")

    def ping(self) -> int:
        """Current head block number; fails with ConfigurationError when the node is unreachable."""
        try:
            return quantity(self.rpc("eth_blockNumber", []), "result")
        except (RpcError, MalformedTrace) as exc:
            raise ConfigurationError(f"node at {self.url} is not usable: {exc}") from exc

    def close(self) -> None:
        self.session.close()


class NodeTraceSource:
    """Trace source backed by a live node."""

    def __init__(self, client: NodeClient):
        self.client = client

    def trace_block(self, block_num: int) -> List[TxTrace]:
        raw = self.client.rpc("debug_traceBlockByNumber", [to_block_hex(block_num)])
        return decode_block_trace(raw, limit=MAX_BLOCK_TX_TRACES)

    def block_tx_hashes(self, block_num: int) -> List[str]:
        raw = self.client.rpc("eth_getBlockByNumber", [to_block_hex(block_num), False])
        return decode_block_tx_hashes(raw, block_num)

    def trace_transaction(self, tx_hash: str) -> TxTrace:
        raw = self.client.rpc("debug_traceTransaction", [tx_hash])
        return decode_tx_trace(raw, tx_hash=tx_hash)
