"""
Pure domain layer.

Validator, hash-chain functions, tolerance policy and allocation planner.
No ORM, no database, no clock reads: every function here is deterministic
in its arguments.
"""

from ledger_kernel.domain.allocation import (
    AllocationPlan,
    PlannedAllocation,
    order_open_invoices,
    plan_auto_allocation,
    plan_manual_allocation,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.double_entry import DoubleEntryValidator
from ledger_kernel.domain.dtos import LineSpec, ManualAllocation, OpenInvoice
from ledger_kernel.domain.enums import (
    AccountType,
    AllocationStrategy,
    ChainFailureKind,
    DocumentStatus,
    DocumentType,
    ExcessHandling,
    JournalEntryStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    SystemAccountPurpose,
    ToleranceSource,
    ToleranceType,
)
from ledger_kernel.domain.fiscal_hash import (
    GENESIS_HASH,
    ChainLink,
    ChainVerificationResult,
    FiscalHashService,
)
from ledger_kernel.domain.tolerance import (
    ToleranceCheck,
    ToleranceOverrides,
    ToleranceSettings,
    check_tolerance,
    resolve_settings,
)
from ledger_kernel.domain.values import ZERO, format_amount, to_money, to_rate

__all__ = [
    "AccountType",
    "AllocationPlan",
    "AllocationStrategy",
    "ChainFailureKind",
    "ChainLink",
    "ChainVerificationResult",
    "Clock",
    "DeterministicClock",
    "DocumentStatus",
    "DocumentType",
    "DoubleEntryValidator",
    "ExcessHandling",
    "FiscalHashService",
    "GENESIS_HASH",
    "JournalEntryStatus",
    "LineSpec",
    "ManualAllocation",
    "OpenInvoice",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "PlannedAllocation",
    "SystemAccountPurpose",
    "SystemClock",
    "ToleranceCheck",
    "ToleranceOverrides",
    "ToleranceSettings",
    "ToleranceSource",
    "ToleranceType",
    "ZERO",
    "check_tolerance",
    "format_amount",
    "order_open_invoices",
    "plan_auto_allocation",
    "plan_manual_allocation",
    "resolve_settings",
    "to_money",
    "to_rate",
]
