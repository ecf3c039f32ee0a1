"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.chain_lock_service import ChainLockService
from ledger_kernel.services.chain_verification_service import (
    ChainScopeResult,
    ChainVerificationService,
)
from ledger_kernel.services.document_posting_service import DocumentPostingService
from ledger_kernel.services.general_ledger_service import GeneralLedgerService
from ledger_kernel.services.payment_allocation_service import (
    AllocationResult,
    AppliedAllocation,
    PaymentAllocationService,
)
from ledger_kernel.services.payment_refund_service import (
    PaymentRefundService,
    RefundHistory,
)
from ledger_kernel.services.payment_tolerance_service import PaymentToleranceService

__all__ = [
    "AllocationResult",
    "AppliedAllocation",
    "ChainLockService",
    "ChainScopeResult",
    "ChainVerificationService",
    "DocumentPostingService",
    "GeneralLedgerService",
    "PaymentAllocationService",
    "PaymentRefundService",
    "PaymentToleranceService",
    "RefundHistory",
]
