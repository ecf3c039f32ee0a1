"""Read-only selectors for the ledger kernel."""

from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.document_selector import DocumentSelector
from ledger_kernel.selectors.journal_selector import JournalSelector

__all__ = [
    "AccountSelector",
    "BaseSelector",
    "DocumentSelector",
    "JournalSelector",
]
