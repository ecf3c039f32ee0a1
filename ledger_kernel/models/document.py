"""
Module: ledger_kernel.models.document
Responsibility: ORM persistence for commercial documents (invoices, credit
    notes, supplier invoices, quotes) and their fiscal hash chain fields.
Architecture position: Kernel > Models.  Documents are produced upstream;
    the ledger posts them (DocumentPostingService), chains them, and reduces
    balance_due as payments are allocated.

Invariants enforced:
    - document_number unique per (tenant, document_type).
    - chain_sequence unique per (tenant, document_type) -- the fiscal chain
      scope.
    - 0 <= balance_due <= total for posted documents; balance_due moves only
      under SELECT ... FOR UPDATE (PaymentAllocationService).

Failure modes:
    - DocumentNotPostableError when posting a non-draft or non-fiscal
      document.
    - AllocationExceedsBalanceError when an allocation would push
      balance_due below zero.

Audit relevance:
    fiscal_hash = SHA-256(previous_hash + "|" + "number|date|total|CUR").
    The chain runs in chronological order per tenant and document type and
    is independent of the journal-entry chain.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import money_type
from ledger_kernel.domain.enums import DocumentStatus, DocumentType
from ledger_kernel.domain.values import ZERO


class Document(TrackedBase):
    """
    A commercial document the ledger posts and chains.

    Contract:
        subtotal + tax_amount == total.  balance_due is the open amount
        still to be paid; it equals total at posting.

    Guarantees:
        - fiscal_hash, previous_hash and chain_sequence are assigned together
          under the (tenant, fiscal:<type>) chain lock, once.
        - Genesis documents store previous_hash as NULL.

    Non-goals:
        - Does NOT model document lines, numbering or PDF rendering.
    """

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "document_type", "document_number", name="uq_document_number"
        ),
        UniqueConstraint(
            "tenant_id", "document_type", "chain_sequence", name="uq_document_chain_seq"
        ),
        Index("idx_document_partner_status", "tenant_id", "partner_id", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    document_type: Mapped[DocumentType] = mapped_column(
        String(30),
        nullable=False,
    )

    document_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    document_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    due_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    partner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    subtotal: Mapped[Decimal] = mapped_column(
        money_type(),
        default=ZERO,
        nullable=False,
    )

    tax_amount: Mapped[Decimal] = mapped_column(
        money_type(),
        default=ZERO,
        nullable=False,
    )

    total: Mapped[Decimal] = mapped_column(
        money_type(),
        nullable=False,
    )

    balance_due: Mapped[Decimal] = mapped_column(
        money_type(),
        default=ZERO,
        nullable=False,
    )

    status: Mapped[DocumentStatus] = mapped_column(
        String(10),
        default=DocumentStatus.DRAFT,
        nullable=False,
    )

    # Fiscal chain link
    fiscal_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    previous_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    chain_sequence: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
    )

    # GL entry created when the document was posted
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Document {self.document_type} {self.document_number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == DocumentStatus.POSTED

    @property
    def is_paid(self) -> bool:
        return self.status == DocumentStatus.PAID
