"""
Per-opcode gas statistics over a block range, from debug_traceBlockByNumber struct logs.

Usage:
  opcode-gas-stats scan --start-block-num 11443817 --end-block-num 11444817 --chain base
  opcode-gas-stats scan --start-block-num 11443817 --end-block-num 11444817 --chain base --checkpoint 11444017
  opcode-gas-stats summary results/base/11443817_11444817 --sort count --limit 30

Results land in <results-dir>/<chain>/<start>_<end>/ (final) and
<results-dir>/<chain>/<start>_<end>/<start>_<block>/ (every 100 blocks).
Resume an interrupted scan by passing the last <block> as --checkpoint.

Env (or ./.env):
  BASE_RPC_URL=...        node endpoint for --chain base
  OPTIMISM_RPC_URL=...    node endpoint for --chain optimism
  GAS_STATS_RESULTS_DIR   default results directory (./results)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import config
from .core.attribution import AttributionMode
from .core.checkpoint import CheckpointManager, JsonResultSink, read_snapshot_dir, stats_from_snapshot
from .core.scan import ScanDriver
from .errors import GasStatsError
from .on_chain.rpc import NodeClient, NodeTraceSource
from .report import SORT_KEYS, format_table, summarize
from .variables import CHAIN_ENDPOINT_VARS, DEFAULT_CHAIN

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    kwargs = {}
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        kwargs = {"filename": log_file, "filemode": "a"}
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(message)s",
        **kwargs,
    )


def parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="opcode-gas-stats",
        description="Reconstruct per-opcode gas statistics from historical EVM traces.",
    )
    parser.add_argument(
        "--log-level", default="INFO", choices=LOG_LEVELS, type=str.upper, help="Logging level (default: INFO)"
    )
    parser.add_argument("--log-file", default=None, help="Append logs to this file instead of stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Trace a block range and write snapshots")
    scan.add_argument("--start-block-num", type=int, required=True, help="the block to start from")
    scan.add_argument("--end-block-num", type=int, required=True, help="the block to end at (inclusive)")
    scan.add_argument("--chain", choices=sorted(CHAIN_ENDPOINT_VARS), default=DEFAULT_CHAIN, help="chain to use")
    scan.add_argument("--checkpoint", type=int, default=None, help="checkpoint block to resume from")
    scan.add_argument(
        "--attribution",
        choices=[m.value for m in AttributionMode],
        default=AttributionMode.SINGLE_SLOT.value,
        help="how CALL/DELEGATECALL/STATICCALL costs are resolved (default: single-slot)",
    )
    scan.add_argument("--results-dir", type=Path, default=config.RESULTS_ROOT, help="snapshot root directory")
    scan.add_argument("--no-progress", action="store_true", help="Do not draw the progress bar")

    summary = sub.add_parser("summary", help="Print the statistics stored in a snapshot directory")
    summary.add_argument("snapshot", type=Path, help="Snapshot directory (holds the five JSON files)")
    summary.add_argument("--sort", choices=SORT_KEYS, default="total", help="Sort column (default: total)")
    summary.add_argument("--limit", type=int, default=0, help="Limit rows (0 = no limit)")
    summary.add_argument("--csv", type=Path, default=None, help="Write the table as CSV to this path")

    return parser.parse_args(argv)


def run_scan(args: argparse.Namespace) -> int:
    config.validate_range(args.start_block_num, args.end_block_num, args.checkpoint)
    url = config.endpoint_for(args.chain)

    logger.info(
        "Starting block %d, end block %d, chain %s, checkpoint %s",
        args.start_block_num, args.end_block_num, args.chain, args.checkpoint,
    )
    client = NodeClient(url, timeout=config.rpc_timeout())
    try:
        head = client.ping()
        logger.info("Connected to %s node, head block %d", args.chain, head)

        checkpoints = CheckpointManager(
            JsonResultSink(args.results_dir), args.chain, args.start_block_num, args.end_block_num
        )
        driver = ScanDriver(
            NodeTraceSource(client),
            checkpoints,
            mode=AttributionMode(args.attribution),
            progress=not args.no_progress,
        )
        result = driver.run(args.checkpoint)
    finally:
        client.close()

    if result.unresolved_calls:
        logger.warning("%d call(s) were still pending at the end of their trace", result.unresolved_calls)
    print(format_table(summarize(result.stats, limit=20)))
    return 0


def run_summary(args: argparse.Namespace) -> int:
    stats = stats_from_snapshot(read_snapshot_dir(args.snapshot))
    df = summarize(stats, sort=args.sort, limit=args.limit)
    if args.csv:
        args.csv.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(args.csv, index=False)
        print(str(args.csv))
        return 0
    print(format_table(df))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_file)
    try:
        if args.command == "scan":
            return run_scan(args)
        return run_summary(args)
    except GasStatsError:
        logger.exception("%s failed", args.command)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
