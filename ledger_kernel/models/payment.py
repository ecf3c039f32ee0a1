"""
Module: ledger_kernel.models.payment
Responsibility: ORM persistence for payments and their allocations to
    documents.
Architecture position: Kernel > Models.  Written by PaymentAllocationService
    and PaymentRefundService.

Invariants enforced:
    - sum(allocation.amount) for a payment never exceeds payment.amount.
    - sum(allocation.amount) for a document never exceeds document.total.
    - Refunds are negative payments (payment_type REFUND) linked to the
      original through original_payment_id.

Failure modes:
    - AllocationExceedsBalanceError when an allocation would break either sum.
    - PaymentNotRefundableError / PaymentAlreadyReversedError on refunds.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import money_type
from ledger_kernel.domain.enums import (
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    ToleranceType,
)
from ledger_kernel.domain.values import ZERO


class Payment(TrackedBase):
    """
    Money received from (or refunded to) a partner.

    Contract:
        amount is positive for receipts and advances, negative for refunds.

    Guarantees:
        - journal_entry_id points at the payment-received entry once the
          payment is allocated; advance_journal_entry_id at the customer
          advance entry when excess was held.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_tenant_partner", "tenant_id", "partner_id"),
        Index("idx_payment_original", "original_payment_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    partner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        money_type(),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    payment_type: Mapped[PaymentType] = mapped_column(
        String(10),
        default=PaymentType.RECEIPT,
        nullable=False,
    )

    status: Mapped[PaymentStatus] = mapped_column(
        String(10),
        default=PaymentStatus.COMPLETED,
        nullable=False,
    )

    payment_method: Mapped[PaymentMethod] = mapped_column(
        String(10),
        default=PaymentMethod.BANK,
        nullable=False,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    advance_journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    # Set on refund payments
    original_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=True,
    )

    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.amount} {self.currency} status={self.status}>"

    @property
    def total_allocated(self) -> Decimal:
        return sum((a.amount for a in self.allocations), ZERO)


class PaymentAllocation(TrackedBase):
    """
    The part of a payment applied to one document.

    Guarantees:
        - tolerance_writeoff is the absolute write-off recorded with this
          allocation (0 when none); tolerance_type says which side.
    """

    __tablename__ = "payment_allocations"

    __table_args__ = (
        Index("idx_allocation_payment", "payment_id"),
        Index("idx_allocation_document", "document_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=False,
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("documents.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        money_type(),
        nullable=False,
    )

    tolerance_writeoff: Mapped[Decimal] = mapped_column(
        money_type(),
        default=ZERO,
        nullable=False,
    )

    tolerance_type: Mapped[ToleranceType | None] = mapped_column(
        String(20),
        nullable=True,
    )

    # Posted write-off entry, reversed when the payment is refunded
    writeoff_journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    payment: Mapped[Payment] = relationship(back_populates="allocations")

    def __repr__(self) -> str:
        return f"<PaymentAllocation {self.document_id} {self.amount}>"
