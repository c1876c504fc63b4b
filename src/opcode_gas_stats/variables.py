# Opcodes whose declared gasCost is the gas offered to the callee, not the gas it burned
CALL_OPCODES = frozenset({"CALL", "DELEGATECALL", "STATICCALL"})

# Bulk block traces are cut to this many transaction traces; not configurable
MAX_BLOCK_TX_TRACES = 30

# debug_traceBlockByNumber budget before falling back to per-transaction traces
BLOCK_TRACE_ATTEMPTS = 2
BLOCK_TRACE_RETRY_DELAY = 1.0  # seconds

# A checkpoint is written every this many blocks, counted from the start block
CHECKPOINT_INTERVAL = 100

# Supported chains and the environment variable holding each node endpoint
CHAIN_ENDPOINT_VARS = {
    "base": "BASE_RPC_URL",
    "optimism": "OPTIMISM_RPC_URL",
}
DEFAULT_CHAIN = "base"

# Snapshot layout: one JSON object per map, named as below
COUNT_FILE = "opcodesDistribution.json"
TOTAL_FILE = "totalOpcodesGasCost.json"
AVERAGE_FILE = "averageOpcodesGasCost.json"
MIN_FILE = "minOpcodesGasCost.json"
MAX_FILE = "maxOpcodesGasCost.json"

SNAPSHOT_FILES = {
    "count": COUNT_FILE,
    "total": TOTAL_FILE,
    "average": AVERAGE_FILE,
    "min": MIN_FILE,
    "max": MAX_FILE,
}
