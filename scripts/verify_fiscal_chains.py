#!/usr/bin/env python3
"""
Verify fiscal (and optionally journal) hash chains.

Usage:
    python3 scripts/verify_fiscal_chains.py [--tenant ID] [--type TYPE] [--journal]

Same as ``ledger-chain verify``; global options such as --database-url are
not accepted here, set DATABASE_URL or LEDGER_CONFIG instead.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    from ledger_batch.cli import main as cli_main

    return cli_main(["verify", *sys.argv[1:]])


if __name__ == "__main__":
    sys.exit(main())
