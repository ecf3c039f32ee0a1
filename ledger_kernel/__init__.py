"""
Ledger Kernel

The financial system-of-record beneath an ERP:
- Double-entry journal with exact fixed-point balancing
- Tamper-evident SHA-256 hash chains (journal entries and fiscal documents)
- Payment tolerance policy and deterministic payment allocation
- Refunds and reversals that never edit posted records
"""

__version__ = "0.1.0"
