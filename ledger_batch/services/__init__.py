"""Chain maintenance runners."""

from ledger_batch.services.backfill import FiscalHashBackfill
from ledger_batch.services.verify import ChainVerifier

__all__ = ["ChainVerifier", "FiscalHashBackfill"]
