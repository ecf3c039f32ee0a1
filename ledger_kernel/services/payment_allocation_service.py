"""
PaymentAllocationService -- Preview -> Apply distribution of a payment.

Responsibility:
    Preview: loads the partner's open invoices and the tenant's tolerance
    settings and delegates to the pure planner (domain.allocation).
    Apply: replays the plan inside the caller's transaction, locking each
    document, persisting allocations, reducing balances, recording
    tolerance write-offs and posting the payment's GL entries.

Architecture position:
    Kernel > Services -- imperative shell around domain.allocation.

Invariants enforced:
    - Document balance mutation happens under SELECT ... FOR UPDATE, and
      the locked balance must still equal the balance the plan was built on.
    - Conservation: allocated + overpayment write-off + excess == payment.
    - Payment-received entry amount = allocated + overpayment write-offs,
      so the receivable of a tolerance-settled invoice nets to zero.
    - A document reaching a zero balance becomes PAID.
    - Excess becomes a customer advance; the payment is typed ADVANCE only
      when nothing was allocated.

Failure modes:
    - PaymentNotFoundError / DocumentNotFoundError for unknown ids.
    - AllocationExceedsBalanceError when a document changed since preview,
      or a manual allocation exceeds a balance or the payment.
    - SystemAccountNotFoundError when a needed account purpose is missing.
    Any failure aborts the caller's transaction: no partial allocation.

Audit relevance:
    Logs allocation_previewed and allocation_applied with totals, and one
    allocation_recorded per document.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.allocation import (
    AllocationPlan,
    PlannedAllocation,
    order_open_invoices,
    plan_auto_allocation,
    plan_manual_allocation,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import ManualAllocation, OpenInvoice
from ledger_kernel.domain.enums import (
    AllocationStrategy,
    DocumentStatus,
    ExcessHandling,
    PaymentMethod,
    PaymentType,
    ToleranceType,
)
from ledger_kernel.domain.tolerance import ToleranceSettings, check_tolerance
from ledger_kernel.domain.values import ZERO, format_amount, to_exact_money
from ledger_kernel.exceptions import (
    AllocationExceedsBalanceError,
    DocumentNotFoundError,
    InvalidAmountError,
    PaymentNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.document import Document
from ledger_kernel.models.payment import Payment, PaymentAllocation
from ledger_kernel.selectors.document_selector import DocumentSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.general_ledger_service import GeneralLedgerService
from ledger_kernel.services.payment_tolerance_service import PaymentToleranceService

logger = get_logger("services.payment_allocation")


@dataclass(frozen=True)
class AppliedAllocation:
    """One persisted allocation and the document state it left behind."""

    allocation_id: UUID
    document_id: UUID
    document_number: str
    amount: Decimal
    tolerance_writeoff: Decimal
    tolerance_type: ToleranceType | None
    writeoff_entry_id: UUID | None
    balance_due: Decimal
    document_status: DocumentStatus


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of apply_allocation."""

    payment_id: UUID
    strategy: AllocationStrategy
    allocations: tuple[AppliedAllocation, ...]
    total_allocated: Decimal
    total_writeoff: Decimal
    excess: Decimal
    excess_handling: ExcessHandling | None
    journal_entry_id: UUID | None
    advance_journal_entry_id: UUID | None
    payment_type: PaymentType


class PaymentAllocationService(BaseService[PaymentAllocation]):
    """
    Allocates payments to open invoices.

    Contract:
        ``preview_allocation`` never writes.  ``apply_allocation`` flushes
        within the caller's transaction; the caller commits or rolls back.

    Guarantees:
        - Apply recomputes the plan from current data, then verifies each
          document under its row lock before touching it.

    Non-goals:
        - Does NOT allocate credit notes or advances against invoices.
        - Does NOT convert currencies.
    """

    def __init__(
        self,
        session: Session,
        tolerance_defaults: ToleranceSettings | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._documents = DocumentSelector(session)
        self._tolerance = PaymentToleranceService(
            session, defaults=tolerance_defaults, clock=clock
        )
        self._gl = GeneralLedgerService(session, clock=clock)

    def get_open_invoices(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        strategy: AllocationStrategy = AllocationStrategy.FIFO,
    ) -> list[OpenInvoice]:
        """Open invoices in the order ``strategy`` would consume them."""
        strategy = AllocationStrategy(strategy)
        invoices = self._documents.open_invoices(tenant_id, partner_id)
        if strategy is AllocationStrategy.MANUAL:
            strategy = AllocationStrategy.FIFO
        return order_open_invoices(invoices, strategy)

    def preview_allocation(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        payment_amount: Decimal,
        strategy: AllocationStrategy,
        manual_lines: Sequence[ManualAllocation] | None = None,
    ) -> AllocationPlan:
        """
        Plan the allocation of ``payment_amount`` without writing.

        Raises:
            InvalidAmountError: payment amount is not positive or has
                sub-cent digits.
            AllocationExceedsBalanceError: a manual line is over balance.
        """
        strategy = AllocationStrategy(strategy)
        payment_amount = to_exact_money(payment_amount)
        if payment_amount <= ZERO:
            raise InvalidAmountError(format_amount(payment_amount), "payment must be positive")

        invoices = self._documents.open_invoices(tenant_id, partner_id)

        if strategy is AllocationStrategy.MANUAL:
            plan = plan_manual_allocation(
                payment_amount,
                manual_lines or (),
                {invoice.document_id: invoice for invoice in invoices},
            )
        else:
            settings = self._tolerance.get_tolerance_settings(tenant_id)
            plan = plan_auto_allocation(
                payment_amount,
                invoices,
                strategy,
                lambda invoice_amount, paid: check_tolerance(settings, invoice_amount, paid),
            )

        logger.debug(
            "allocation_previewed",
            extra={
                "tenant_id": str(tenant_id),
                "partner_id": str(partner_id),
                "strategy": strategy.value,
                "payment_amount": format_amount(payment_amount),
                "allocation_count": len(plan.allocations),
                "excess": format_amount(plan.excess),
            },
        )
        return plan

    def apply_allocation(
        self,
        payment_id: UUID,
        strategy: AllocationStrategy,
        manual_lines: Sequence[ManualAllocation] | None = None,
        actor_id: UUID | None = None,
    ) -> AllocationResult:
        """
        Allocate a payment and post its GL entries.

        ``actor_id`` defaults to the payment's creator.

        Raises:
            PaymentNotFoundError: unknown payment.
            AllocationExceedsBalanceError: a document no longer has the
                balance the plan was built on.
        """
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        actor_id = actor_id or payment.created_by_id
        strategy = AllocationStrategy(strategy)

        with LogContext.bind(tenant_id=payment.tenant_id, payment_id=payment.id):
            plan = self.preview_allocation(
                payment.tenant_id,
                payment.partner_id,
                payment.amount,
                strategy,
                manual_lines,
            )
            cash_account_id = self._gl.account_for(
                payment.tenant_id, PaymentMethod(payment.payment_method).account_purpose
            )
            label = payment.reference or str(payment.id)

            applied = tuple(
                self._apply_one(payment, planned, actor_id, label)
                for planned in plan.allocations
            )

            received = plan.total_allocated + plan.overpayment_writeoff
            if received > ZERO:
                entry = self._gl.create_payment_received_entry(
                    payment.tenant_id,
                    payment.partner_id,
                    payment.id,
                    received,
                    cash_account_id,
                    payment.payment_date,
                    actor_id,
                    description=f"Customer payment - {label}",
                )
                self._gl.post_entry(entry, actor_id)
                payment.journal_entry_id = entry.id

            if plan.excess > ZERO:
                advance = self._gl.create_customer_advance_entry(
                    payment.tenant_id,
                    payment.partner_id,
                    payment.id,
                    plan.excess,
                    cash_account_id,
                    payment.payment_date,
                    actor_id,
                    description=f"Customer advance from payment {label}",
                )
                self._gl.post_entry(advance, actor_id)
                payment.advance_journal_entry_id = advance.id
                if plan.total_allocated == ZERO:
                    payment.payment_type = PaymentType.ADVANCE

            payment.updated_by_id = actor_id
            self.session.flush()

            result = AllocationResult(
                payment_id=payment.id,
                strategy=strategy,
                allocations=applied,
                total_allocated=plan.total_allocated,
                total_writeoff=plan.total_writeoff,
                excess=plan.excess,
                excess_handling=plan.excess_handling,
                journal_entry_id=payment.journal_entry_id,
                advance_journal_entry_id=payment.advance_journal_entry_id,
                payment_type=PaymentType(payment.payment_type),
            )

            logger.info(
                "allocation_applied",
                extra={
                    "strategy": strategy.value,
                    "allocation_count": len(applied),
                    "total_allocated": format_amount(plan.total_allocated),
                    "total_writeoff": format_amount(plan.total_writeoff),
                    "excess": format_amount(plan.excess),
                },
            )
            return result

    def _lock_document(self, document_id: UUID) -> Document:
        document = self.session.execute(
            select(Document)
            .where(Document.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def _apply_one(
        self,
        payment: Payment,
        planned: PlannedAllocation,
        actor_id: UUID,
        label: str,
    ) -> AppliedAllocation:
        document = self._lock_document(planned.document_id)
        available = document.balance_due

        if document.status != DocumentStatus.POSTED or available != planned.invoice_balance:
            raise AllocationExceedsBalanceError(
                str(document.id),
                format_amount(planned.amount),
                format_amount(available),
                planned_balance=format_amount(planned.invoice_balance),
            )

        allocation = PaymentAllocation(
            document_id=document.id,
            amount=planned.amount,
            tolerance_writeoff=planned.tolerance_writeoff,
            tolerance_type=planned.tolerance_type,
            created_by_id=actor_id,
        )
        payment.allocations.append(allocation)
        document.balance_due = available - planned.amount

        if planned.has_writeoff:
            writeoff_entry = self._tolerance.apply_tolerance(
                payment.tenant_id,
                payment.partner_id,
                document.id,
                planned.tolerance_writeoff,
                planned.tolerance_type,
                payment.payment_date,
                actor_id,
                description=f"Payment tolerance write-off for payment {label}",
            )
            allocation.writeoff_journal_entry_id = writeoff_entry.id
            document.balance_due = ZERO

        if document.balance_due == ZERO:
            document.status = DocumentStatus.PAID
        document.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "allocation_recorded",
            extra={
                "document_id": str(document.id),
                "document_number": document.document_number,
                "amount": format_amount(planned.amount),
                "tolerance_writeoff": format_amount(planned.tolerance_writeoff),
                "balance_due": format_amount(document.balance_due),
            },
        )
        return AppliedAllocation(
            allocation_id=allocation.id,
            document_id=document.id,
            document_number=document.document_number,
            amount=planned.amount,
            tolerance_writeoff=planned.tolerance_writeoff,
            tolerance_type=planned.tolerance_type,
            writeoff_entry_id=allocation.writeoff_journal_entry_id,
            balance_due=document.balance_due,
            document_status=DocumentStatus(document.status),
        )
