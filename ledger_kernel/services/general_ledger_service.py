"""
GeneralLedgerService -- builds, posts and reverses journal entries.

Responsibility:
    Turns business events (invoices, credit notes, payments, advances,
    supplier invoices, tolerance write-offs) into balanced DRAFT journal
    entries, and posts entries onto the tenant's journal hash chain.

Architecture position:
    Kernel > Services -- imperative shell.  Resolves accounts through
    AccountSelector (by SystemAccountPurpose, never by code), validates with
    DoubleEntryValidator, hashes with FiscalHashService and serializes
    through ChainLockService.

Invariants enforced:
    - Every entry passes DoubleEntryValidator.assert_valid before flush.
    - Entry numbers JE-{year}-{6 digits} are derived from the highest
      existing number for the tenant and year, under the journal chain lock.
    - post_entry reads the previous hash from the locked chain head and
      stamps status, hash, previous_hash, chain_sequence, posted_at and
      posted_by_id together.
    - Reversal is the only correction path for a posted entry.

Failure modes:
    - SystemAccountNotFoundError if a required purpose is unassigned.
    - UnbalancedEntryError / InvalidLineError for malformed lines.
    - EntryNotDraftError when posting anything but a DRAFT entry.
    - EntryNotPostedError / EntryAlreadyReversedError on reversal.

Audit relevance:
    Logs journal_entry_created, journal_entry_posted and
    journal_entry_reversed with entry number, chain sequence and hash.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.double_entry import DoubleEntryValidator
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.enums import (
    DocumentType,
    JournalEntryStatus,
    SystemAccountPurpose,
    ToleranceType,
)
from ledger_kernel.domain.fiscal_hash import FiscalHashService
from ledger_kernel.domain.values import ZERO, to_money
from ledger_kernel.exceptions import (
    DocumentNotPostableError,
    EntryAlreadyReversedError,
    EntryNotDraftError,
    EntryNotPostedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.chain_head import JOURNAL_CHAIN, ChainHead
from ledger_kernel.models.document import Document
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.chain_lock_service import ChainLockService

logger = get_logger("services.general_ledger")

ENTRY_NUMBER_FORMAT = "JE-%s-%06d"

P = SystemAccountPurpose


class GeneralLedgerService(BaseService[JournalEntry]):
    """
    Journal entry construction and posting.

    Contract:
        ``create_*`` methods return a flushed DRAFT entry with its lines.
        ``post_entry`` and ``reverse_entry`` mutate within the caller's
        transaction; the caller commits.

    Guarantees:
        - Lines are stored in template order (line_order 0..n-1); tax and
          VAT lines appear only when the amount is > 0.
        - Subledger lines (receivable, payable, customer advance) carry the
          partner_id.

    Non-goals:
        - Does NOT decide which business event produces an entry.
        - Does NOT convert currencies.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._accounts = AccountSelector(session)
        self._journals = JournalSelector(session)
        self._chains = ChainLockService(session)

    # =========================================================================
    # Generic construction and posting
    # =========================================================================

    def create_entry(
        self,
        tenant_id: UUID,
        entry_date: date,
        description: str | None,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        source_type: str | None = None,
        source_id: UUID | None = None,
        reversal_of_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Create a DRAFT entry from validated line specs.

        Raises:
            InvalidLineError, UnbalancedEntryError: lines are not a valid
                double entry.
        """
        DoubleEntryValidator.assert_valid(lines)

        entry = JournalEntry(
            tenant_id=tenant_id,
            entry_number=self._next_entry_number(tenant_id),
            entry_date=entry_date,
            description=description,
            status=JournalEntryStatus.DRAFT,
            source_type=source_type,
            source_id=source_id,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        for order, line in enumerate(lines):
            entry.lines.append(
                JournalLine(
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                    partner_id=line.partner_id,
                    line_order=order,
                    created_by_id=actor_id,
                )
            )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "journal_entry_created",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "tenant_id": str(tenant_id),
                "line_count": len(lines),
                "source_type": source_type,
            },
        )
        return entry

    def post_entry(self, entry: JournalEntry, actor_id: UUID) -> JournalEntry:
        """
        Post a DRAFT entry onto the tenant's journal chain.

        Preconditions: entry is DRAFT and its lines are a valid double entry.
        Postconditions: hash == SHA-256(previous_hash + "|" + serialized
            entry); chain_sequence == previous head sequence + 1.

        Raises:
            EntryNotDraftError: entry is not DRAFT.
        """
        if entry.status != JournalEntryStatus.DRAFT:
            raise EntryNotDraftError(str(entry.id), str(JournalEntryStatus(entry.status).value))

        lines = sorted(entry.lines, key=lambda line: line.line_order)
        DoubleEntryValidator.assert_valid(lines)

        head = self._journal_head(entry.tenant_id)
        previous_hash = head.last_hash

        serialized = FiscalHashService.serialize_journal_entry(
            entry.entry_number,
            entry.entry_date,
            entry.description,
            [(line.account_id, line.debit, line.credit) for line in lines],
        )
        entry_hash = FiscalHashService.calculate_hash(serialized, previous_hash)

        entry.chain_sequence = self._chains.advance(head, entry_hash)
        entry.status = JournalEntryStatus.POSTED
        entry.hash = entry_hash
        entry.previous_hash = previous_hash
        entry.posted_at = self._clock.now()
        entry.posted_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "tenant_id": str(entry.tenant_id),
                "chain_sequence": entry.chain_sequence,
                "hash": entry_hash,
            },
        )
        return entry

    def create_and_post(
        self,
        tenant_id: UUID,
        entry_date: date,
        description: str | None,
        lines: Sequence[LineSpec],
        actor_id: UUID,
        source_type: str | None = None,
        source_id: UUID | None = None,
    ) -> JournalEntry:
        """Create a DRAFT entry and post it in the same transaction."""
        entry = self.create_entry(
            tenant_id,
            entry_date,
            description,
            lines,
            actor_id,
            source_type=source_type,
            source_id=source_id,
        )
        return self.post_entry(entry, actor_id)

    def reverse_entry(
        self,
        entry: JournalEntry,
        actor_id: UUID,
        reversal_date: date | None = None,
        description: str | None = None,
    ) -> JournalEntry:
        """
        Post a mirror entry (debits and credits swapped) and mark the
        original REVERSED.

        Raises:
            EntryAlreadyReversedError: the entry was reversed before.
            EntryNotPostedError: the entry is not POSTED.
        """
        if entry.status == JournalEntryStatus.REVERSED or entry.reversed_by_id is not None:
            raise EntryAlreadyReversedError(str(entry.id))
        if entry.status != JournalEntryStatus.POSTED:
            raise EntryNotPostedError(str(entry.id), str(JournalEntryStatus(entry.status).value))

        mirror = [
            LineSpec(
                account_id=line.account_id,
                debit=line.credit,
                credit=line.debit,
                description=line.description,
                partner_id=line.partner_id,
            )
            for line in sorted(entry.lines, key=lambda line: line.line_order)
        ]
        reversal = self.create_entry(
            entry.tenant_id,
            reversal_date or self._clock.today(),
            description or f"Reversal of {entry.entry_number}",
            mirror,
            actor_id,
            source_type=entry.source_type,
            source_id=entry.source_id,
            reversal_of_id=entry.id,
        )
        self.post_entry(reversal, actor_id)

        entry.status = JournalEntryStatus.REVERSED
        entry.reversed_by_id = reversal.id
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_entry_reversed",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "reversal_id": str(reversal.id),
                "reversal_number": reversal.entry_number,
            },
        )
        return reversal

    # =========================================================================
    # Document templates
    # =========================================================================

    def create_entry_from_invoice(self, invoice: Document, actor_id: UUID) -> JournalEntry:
        """
        Dr receivable (total, partner) / Cr product revenue (subtotal) /
        Cr VAT collected (tax, when > 0).
        """
        self._require_type(invoice, DocumentType.INVOICE)
        tenant_id = invoice.tenant_id

        lines = [
            LineSpec.dr(
                self._account_id(tenant_id, P.CUSTOMER_RECEIVABLE),
                invoice.total,
                "Accounts receivable",
                partner_id=invoice.partner_id,
            ),
            LineSpec.cr(
                self._account_id(tenant_id, P.PRODUCT_REVENUE),
                invoice.subtotal,
                "Sales revenue",
            ),
        ]
        if to_money(invoice.tax_amount) > ZERO:
            lines.append(
                LineSpec.cr(
                    self._account_id(tenant_id, P.VAT_COLLECTED),
                    invoice.tax_amount,
                    "VAT payable",
                )
            )

        return self.create_entry(
            tenant_id,
            invoice.document_date,
            f"Invoice {invoice.document_number}",
            lines,
            actor_id,
            source_type=DocumentType.INVOICE.value,
            source_id=invoice.id,
        )

    def create_entry_from_credit_note(self, credit_note: Document, actor_id: UUID) -> JournalEntry:
        """
        Dr product revenue (subtotal) / Dr VAT collected (tax, when > 0) /
        Cr receivable (total, partner).
        """
        self._require_type(credit_note, DocumentType.CREDIT_NOTE)
        tenant_id = credit_note.tenant_id

        lines = [
            LineSpec.dr(
                self._account_id(tenant_id, P.PRODUCT_REVENUE),
                credit_note.subtotal,
                "Sales revenue reversal",
            ),
        ]
        if to_money(credit_note.tax_amount) > ZERO:
            lines.append(
                LineSpec.dr(
                    self._account_id(tenant_id, P.VAT_COLLECTED),
                    credit_note.tax_amount,
                    "VAT payable reversal",
                )
            )
        lines.append(
            LineSpec.cr(
                self._account_id(tenant_id, P.CUSTOMER_RECEIVABLE),
                credit_note.total,
                "Accounts receivable reduction",
                partner_id=credit_note.partner_id,
            )
        )

        return self.create_entry(
            tenant_id,
            credit_note.document_date,
            f"Credit Note {credit_note.document_number}",
            lines,
            actor_id,
            source_type=DocumentType.CREDIT_NOTE.value,
            source_id=credit_note.id,
        )

    def create_supplier_invoice_entry(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        invoice_id: UUID,
        total_amount: Decimal,
        net_amount: Decimal,
        vat_amount: Decimal,
        entry_date: date,
        actor_id: UUID,
        expense_account_id: UUID | None = None,
        description: str | None = None,
    ) -> JournalEntry:
        """
        Dr expense (net) / Dr VAT deductible (vat, when > 0) /
        Cr supplier payable (total, partner).

        ``expense_account_id`` defaults to the purchase expenses account.
        """
        expense_account_id = expense_account_id or self._account_id(
            tenant_id, P.PURCHASE_EXPENSES
        )
        lines = [LineSpec.dr(expense_account_id, net_amount, "Purchase expense/asset")]
        if to_money(vat_amount) > ZERO:
            lines.append(
                LineSpec.dr(
                    self._account_id(tenant_id, P.VAT_DEDUCTIBLE),
                    vat_amount,
                    "VAT deductible",
                )
            )
        lines.append(
            LineSpec.cr(
                self._account_id(tenant_id, P.SUPPLIER_PAYABLE),
                total_amount,
                "Supplier payable",
                partner_id=partner_id,
            )
        )
        return self.create_entry(
            tenant_id,
            entry_date,
            description or "Supplier invoice",
            lines,
            actor_id,
            source_type=DocumentType.SUPPLIER_INVOICE.value,
            source_id=invoice_id,
        )

    # =========================================================================
    # Payment templates
    # =========================================================================

    def create_payment_entry(
        self,
        tenant_id: UUID,
        amount: Decimal,
        debit_account_id: UUID,
        credit_account_id: UUID,
        description: str,
        actor_id: UUID,
        partner_id: UUID | None = None,
        entry_date: date | None = None,
    ) -> JournalEntry:
        """Two-line payment entry between arbitrary accounts."""
        lines = [
            LineSpec.dr(debit_account_id, amount, "Cash received"),
            LineSpec.cr(credit_account_id, amount, "Receivable cleared", partner_id=partner_id),
        ]
        return self.create_entry(
            tenant_id,
            entry_date or self._clock.today(),
            description,
            lines,
            actor_id,
            source_type="payment",
        )

    def create_customer_advance_entry(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        advance_id: UUID,
        amount: Decimal,
        payment_account_id: UUID,
        entry_date: date,
        actor_id: UUID,
        description: str | None = None,
    ) -> JournalEntry:
        """Dr bank/cash / Cr customer advance (partner)."""
        lines = [
            LineSpec.dr(payment_account_id, amount, "Advance payment received"),
            LineSpec.cr(
                self._account_id(tenant_id, P.CUSTOMER_ADVANCE),
                amount,
                "Customer advance liability",
                partner_id=partner_id,
            ),
        ]
        return self.create_entry(
            tenant_id,
            entry_date,
            description or "Customer advance received",
            lines,
            actor_id,
            source_type="customer_advance",
            source_id=advance_id,
        )

    def create_supplier_payment_entry(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        payment_id: UUID,
        amount: Decimal,
        payment_account_id: UUID,
        entry_date: date,
        actor_id: UUID,
        description: str | None = None,
    ) -> JournalEntry:
        """Dr supplier payable (partner) / Cr bank/cash."""
        lines = [
            LineSpec.dr(
                self._account_id(tenant_id, P.SUPPLIER_PAYABLE),
                amount,
                "Payable cleared",
                partner_id=partner_id,
            ),
            LineSpec.cr(payment_account_id, amount, "Payment to supplier"),
        ]
        return self.create_entry(
            tenant_id,
            entry_date,
            description or "Supplier payment",
            lines,
            actor_id,
            source_type="supplier_payment",
            source_id=payment_id,
        )

    def create_payment_received_entry(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        payment_id: UUID,
        amount: Decimal,
        payment_account_id: UUID,
        entry_date: date,
        actor_id: UUID,
        description: str | None = None,
    ) -> JournalEntry:
        """Dr bank/cash / Cr receivable (partner)."""
        lines = [
            LineSpec.dr(payment_account_id, amount, "Payment received"),
            LineSpec.cr(
                self._account_id(tenant_id, P.CUSTOMER_RECEIVABLE),
                amount,
                "Receivable cleared",
                partner_id=partner_id,
            ),
        ]
        return self.create_entry(
            tenant_id,
            entry_date,
            description or "Customer payment received",
            lines,
            actor_id,
            source_type="customer_payment",
            source_id=payment_id,
        )

    def create_tolerance_writeoff_entry(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        document_id: UUID,
        amount: Decimal,
        tolerance_type: ToleranceType,
        entry_date: date,
        actor_id: UUID,
        description: str | None = None,
    ) -> JournalEntry:
        """
        Underpayment: Dr tolerance expense / Cr receivable (partner).
        Overpayment: Dr receivable (partner) / Cr tolerance income.
        """
        tolerance_type = ToleranceType(tolerance_type)
        receivable_id = self._account_id(tenant_id, P.CUSTOMER_RECEIVABLE)

        if tolerance_type is ToleranceType.UNDERPAYMENT:
            lines = [
                LineSpec.dr(
                    self._account_id(tenant_id, P.PAYMENT_TOLERANCE_EXPENSE),
                    amount,
                    "Underpayment tolerance expense",
                ),
                LineSpec.cr(
                    receivable_id, amount, "AR reduced by tolerance", partner_id=partner_id
                ),
            ]
        else:
            lines = [
                LineSpec.dr(
                    receivable_id,
                    amount,
                    "Overpayment tolerance adjustment",
                    partner_id=partner_id,
                ),
                LineSpec.cr(
                    self._account_id(tenant_id, P.PAYMENT_TOLERANCE_INCOME),
                    amount,
                    "Overpayment tolerance income",
                ),
            ]

        return self.create_entry(
            tenant_id,
            entry_date,
            description or f"Payment tolerance write-off ({tolerance_type.value})",
            lines,
            actor_id,
            source_type="payment_tolerance",
            source_id=document_id,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def account_for(self, tenant_id: UUID, purpose: SystemAccountPurpose) -> UUID:
        """Public account-id lookup for callers composing their own lines."""
        return self._account_id(tenant_id, purpose)

    def _account_id(self, tenant_id: UUID, purpose: SystemAccountPurpose) -> UUID:
        return self._accounts.get_by_purpose(tenant_id, purpose).id

    def _journal_head(self, tenant_id: UUID) -> ChainHead:
        return self._chains.acquire(
            tenant_id,
            JOURNAL_CHAIN,
            seed=lambda: self._journals.chain_tail(tenant_id),
        )

    def _next_entry_number(self, tenant_id: UUID) -> str:
        """Highest JE-{year}- number for the tenant plus one, under the chain lock."""
        self._journal_head(tenant_id)
        year = self._clock.now().year
        latest = self._journals.latest_entry_number(tenant_id, year)
        next_number = int(latest.rsplit("-", 1)[1]) + 1 if latest else 1
        return ENTRY_NUMBER_FORMAT % (year, next_number)

    @staticmethod
    def _require_type(document: Document, expected: DocumentType) -> None:
        if document.document_type != expected:
            raise DocumentNotPostableError(
                str(document.id),
                f"expected {expected.value}, got {DocumentType(document.document_type).value}",
            )


