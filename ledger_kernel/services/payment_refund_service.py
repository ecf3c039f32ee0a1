"""
PaymentRefundService -- refunds and reversals of completed payments.

Responsibility:
    Full refunds (negative refund payment mirroring the original
    allocations), partial refunds (negative payment, no allocations) and
    reversals (allocations removed) of customer payments, each with the GL
    entries that undo the original posting.

Architecture position:
    Kernel > Services -- imperative shell.  Uses GeneralLedgerService for
    every GL effect; posted entries are reversed, never edited.

Invariants enforced:
    - Only COMPLETED payments are refunded; only COMPLETED or FAILED
      payments are reversed; a REVERSED payment is final.
    - Refund payments carry a negative amount and original_payment_id.
    - Document balances are restored under SELECT ... FOR UPDATE by the
      allocation amount plus any underpayment write-off; a document with a
      positive balance goes back from PAID to POSTED.
    - Sum of partial refunds never exceeds the original amount.

Failure modes:
    - PaymentNotRefundableError for a payment in the wrong status.
    - PaymentAlreadyReversedError when reversing twice.
    - InvalidAmountError for a partial refund outside (0, remaining].

Audit relevance:
    Logs payment_refunded, payment_partially_refunded and payment_reversed.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.enums import (
    DocumentStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    SystemAccountPurpose,
    ToleranceType,
)
from ledger_kernel.domain.values import ZERO, format_amount, to_exact_money, to_money
from ledger_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidAmountError,
    PaymentAlreadyReversedError,
    PaymentNotRefundableError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.document import Document
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.payment import Payment, PaymentAllocation
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.general_ledger_service import GeneralLedgerService

logger = get_logger("services.payment_refund")


@dataclass(frozen=True)
class RefundHistory:
    original_amount: Decimal
    total_refunded: Decimal
    remaining_amount: Decimal
    is_fully_refunded: bool
    refund_count: int
    refund_ids: tuple[UUID, ...]


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n\n{note}" if existing else note


class PaymentRefundService(BaseService[Payment]):
    """
    Refund and reversal flows.

    Contract:
        Operates within the caller's transaction and flushes only.

    Non-goals:
        - Does NOT move money; it records the refund.
        - Does NOT refund supplier payments.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._gl = GeneralLedgerService(session, clock=self._clock)

    def can_refund(self, payment: Payment) -> bool:
        return payment.status == PaymentStatus.COMPLETED and to_money(payment.amount) > ZERO

    def refund_payment(self, payment: Payment, reason: str, actor_id: UUID) -> Payment:
        """
        Refund a completed payment in full.

        Creates a negative REFUND payment with negative allocations
        mirroring the original, restores document balances, reverses every
        posted GL entry of the payment and marks the original REVERSED.

        Raises:
            PaymentNotRefundableError: payment is not COMPLETED.
            InvalidAmountError: the payment already has partial refunds.
        """
        if payment.status != PaymentStatus.COMPLETED:
            raise PaymentNotRefundableError(
                str(payment.id), PaymentStatus(payment.status).value
            )
        history = self.refund_history(payment)
        if history.refund_count:
            raise InvalidAmountError(
                format_amount(history.remaining_amount),
                "payment was partially refunded; refund the remainder with partial_refund",
            )

        with LogContext.bind(tenant_id=payment.tenant_id, payment_id=payment.id):
            refund = self._new_refund_payment(
                payment,
                -to_money(payment.amount),
                reference=f"Refund for payment {payment.reference or payment.id}",
                notes=f"Refund: {reason}",
                actor_id=actor_id,
            )

            for allocation in list(payment.allocations):
                refund.allocations.append(
                    PaymentAllocation(
                        document_id=allocation.document_id,
                        amount=-allocation.amount,
                        tolerance_writeoff=ZERO,
                        created_by_id=actor_id,
                    )
                )
                self._restore_balance(allocation, actor_id)

            reversals = self._reverse_payment_entries(payment, actor_id)
            if reversals:
                refund.journal_entry_id = reversals[0].id

            payment.status = PaymentStatus.REVERSED
            payment.notes = _append_note(payment.notes, f"Refunded: {reason}")
            payment.updated_by_id = actor_id
            self.session.flush()

            logger.info(
                "payment_refunded",
                extra={
                    "refund_id": str(refund.id),
                    "amount": format_amount(refund.amount),
                    "reversed_entries": len(reversals),
                },
            )
        return refund

    def partial_refund(
        self,
        payment: Payment,
        amount: Decimal,
        reason: str,
        actor_id: UUID,
    ) -> Payment:
        """
        Refund part of a completed payment: Dr receivable / Cr bank or cash.

        Raises:
            PaymentNotRefundableError: payment is not COMPLETED.
            InvalidAmountError: amount <= 0, has sub-cent digits, or is above
                the unrefunded amount.
        """
        if payment.status != PaymentStatus.COMPLETED:
            raise PaymentNotRefundableError(
                str(payment.id), PaymentStatus(payment.status).value
            )
        amount = to_exact_money(amount)
        if amount <= ZERO:
            raise InvalidAmountError(format_amount(amount), "refund amount must be greater than zero")
        remaining = self.refund_history(payment).remaining_amount
        if amount > remaining:
            raise InvalidAmountError(
                format_amount(amount),
                f"refund amount cannot exceed remaining payment amount {format_amount(remaining)}",
            )

        with LogContext.bind(tenant_id=payment.tenant_id, payment_id=payment.id):
            refund = self._new_refund_payment(
                payment,
                -amount,
                reference=f"Partial refund for payment {payment.reference or payment.id}",
                notes=f"Partial refund ({format_amount(amount)}): {reason}",
                actor_id=actor_id,
            )

            tenant_id = payment.tenant_id
            entry = self._gl.create_and_post(
                tenant_id,
                refund.payment_date,
                f"Partial refund of payment {payment.reference or payment.id}",
                [
                    LineSpec.dr(
                        self._gl.account_for(tenant_id, SystemAccountPurpose.CUSTOMER_RECEIVABLE),
                        amount,
                        "Receivable reinstated",
                        partner_id=payment.partner_id,
                    ),
                    LineSpec.cr(
                        self._gl.account_for(
                            tenant_id, PaymentMethod(payment.payment_method).account_purpose
                        ),
                        amount,
                        "Refund paid",
                    ),
                ],
                actor_id,
                source_type="payment_refund",
                source_id=refund.id,
            )
            refund.journal_entry_id = entry.id

            payment.notes = _append_note(
                payment.notes, f"Partial refund of {format_amount(amount)}: {reason}"
            )
            payment.updated_by_id = actor_id
            self.session.flush()

            logger.info(
                "payment_partially_refunded",
                extra={
                    "refund_id": str(refund.id),
                    "amount": format_amount(amount),
                    "entry_id": str(entry.id),
                },
            )
        return refund

    def reverse_payment(self, payment: Payment, reason: str, actor_id: UUID) -> Payment:
        """
        Undo a payment: delete its allocations, restore balances, reverse
        its posted GL entries, mark it REVERSED.

        Raises:
            PaymentAlreadyReversedError: payment is already REVERSED.
            PaymentNotRefundableError: status is neither COMPLETED nor FAILED.
        """
        if payment.status == PaymentStatus.REVERSED:
            raise PaymentAlreadyReversedError(str(payment.id))
        if payment.status not in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
            raise PaymentNotRefundableError(
                str(payment.id), PaymentStatus(payment.status).value
            )

        with LogContext.bind(tenant_id=payment.tenant_id, payment_id=payment.id):
            allocations = list(payment.allocations)
            for allocation in allocations:
                self._restore_balance(allocation, actor_id)
                payment.allocations.remove(allocation)

            reversals = self._reverse_payment_entries(payment, actor_id)

            payment.status = PaymentStatus.REVERSED
            payment.notes = _append_note(payment.notes, f"Reversed: {reason}")
            payment.updated_by_id = actor_id
            self.session.flush()

            logger.info(
                "payment_reversed",
                extra={
                    "removed_allocations": len(allocations),
                    "reversed_entries": len(reversals),
                },
            )
        return payment

    def refund_history(self, payment: Payment) -> RefundHistory:
        refunds = list(
            self.session.execute(
                select(Payment)
                .where(
                    Payment.original_payment_id == payment.id,
                    Payment.payment_type == PaymentType.REFUND.value,
                )
                .order_by(Payment.created_at)
            ).scalars()
        )
        original = to_money(payment.amount)
        total_refunded = sum((-to_money(r.amount) for r in refunds), ZERO)
        return RefundHistory(
            original_amount=original,
            total_refunded=total_refunded,
            remaining_amount=original - total_refunded,
            is_fully_refunded=total_refunded >= original,
            refund_count=len(refunds),
            refund_ids=tuple(r.id for r in refunds),
        )

    def _new_refund_payment(
        self,
        payment: Payment,
        amount: Decimal,
        reference: str,
        notes: str,
        actor_id: UUID,
    ) -> Payment:
        refund = Payment(
            tenant_id=payment.tenant_id,
            partner_id=payment.partner_id,
            amount=amount,
            currency=payment.currency,
            payment_date=self._clock.today(),
            payment_type=PaymentType.REFUND,
            status=PaymentStatus.COMPLETED,
            payment_method=payment.payment_method,
            reference=reference,
            notes=notes,
            original_payment_id=payment.id,
            created_by_id=actor_id,
        )
        self.session.add(refund)
        self.session.flush()
        return refund

    def _restore_balance(self, allocation: PaymentAllocation, actor_id: UUID) -> None:
        document = self.session.execute(
            select(Document)
            .where(Document.id == allocation.document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(str(allocation.document_id))

        restored = allocation.amount
        if allocation.tolerance_type == ToleranceType.UNDERPAYMENT:
            restored += allocation.tolerance_writeoff
        document.balance_due = min(document.total, document.balance_due + restored)
        if document.status == DocumentStatus.PAID and document.balance_due > ZERO:
            document.status = DocumentStatus.POSTED
        document.updated_by_id = actor_id

        if allocation.writeoff_journal_entry_id is not None:
            self._reverse_if_posted(allocation.writeoff_journal_entry_id, actor_id)

    def _reverse_payment_entries(self, payment: Payment, actor_id: UUID) -> list[JournalEntry]:
        reversals = []
        for entry_id in (payment.journal_entry_id, payment.advance_journal_entry_id):
            if entry_id is None:
                continue
            reversal = self._reverse_if_posted(entry_id, actor_id)
            if reversal is not None:
                reversals.append(reversal)
        return reversals

    def _reverse_if_posted(self, entry_id: UUID, actor_id: UUID) -> JournalEntry | None:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None or not entry.is_posted:
            return None
        return self._gl.reverse_entry(entry, actor_id, reversal_date=self._clock.today())
