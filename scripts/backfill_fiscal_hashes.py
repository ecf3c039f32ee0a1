#!/usr/bin/env python3
"""
Chain posted documents that were created before fiscal hashing.

Usage:
    python3 scripts/backfill_fiscal_hashes.py [--tenant ID] [--type TYPE] [--dry-run] [--force]

Run with --dry-run first, then verify_fiscal_chains.py afterwards.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    from ledger_batch.cli import main as cli_main

    return cli_main(["backfill", *sys.argv[1:]])


if __name__ == "__main__":
    sys.exit(main())
