"""Utility modules for the ledger kernel."""

from ledger_kernel.utils.hashing import chain_hash, ordered_json, sha256_hex

__all__ = [
    "chain_hash",
    "ordered_json",
    "sha256_hex",
]
