"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account
from ledger_kernel.models.chain_head import (
    FISCAL_CHAIN_PREFIX,
    JOURNAL_CHAIN,
    ChainHead,
    fiscal_chain_type,
)
from ledger_kernel.models.company import Company, CountryPaymentSettings
from ledger_kernel.models.document import Document
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.models.payment import Payment, PaymentAllocation

__all__ = [
    "Account",
    "ChainHead",
    "Company",
    "CountryPaymentSettings",
    "Document",
    "FISCAL_CHAIN_PREFIX",
    "JOURNAL_CHAIN",
    "JournalEntry",
    "JournalLine",
    "Payment",
    "PaymentAllocation",
    "fiscal_chain_type",
]
