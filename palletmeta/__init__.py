"""Runtime metadata model and hashing, twox hashes, constant lookup, dispatch error decoding and RPC-driven clients."""

__version__ = "0.1.0"
__all__ = ["blocks", "client", "constants", "errors", "hashing", "twox", "types"]