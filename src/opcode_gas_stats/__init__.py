"""Per-opcode gas statistics reconstructed from historical EVM struct-log traces."""
