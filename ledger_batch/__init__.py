"""
ledger_batch -- offline chain maintenance tools.

Fiscal hash backfill and chain verification, run from the ``ledger-chain``
command line.  Each backfilled document commits in its own transaction;
verification never writes.
"""
