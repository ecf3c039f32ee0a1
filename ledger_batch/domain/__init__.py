"""Pure result types for the chain maintenance tools."""

from ledger_batch.domain.types import (
    BackfillItemResult,
    BackfillReport,
    BackfillScopeReport,
    BatchItemStatus,
    VerifyReport,
)

__all__ = [
    "BackfillItemResult",
    "BackfillReport",
    "BackfillScopeReport",
    "BatchItemStatus",
    "VerifyReport",
]
