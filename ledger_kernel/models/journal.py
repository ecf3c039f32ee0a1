"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    double-entry ledger of record and the per-tenant journal hash chain.
Architecture position: Kernel > Models.  May import from db/ and
    domain/ only.  Entries are created by GeneralLedgerService and never
    written by any other component.

Invariants enforced:
    - entry_number unique per tenant (uq_journal_tenant_number).
    - chain_sequence unique per tenant (uq_journal_tenant_chain_seq): one
      record per chain position.
    - Posted entries are immutable (ORM listeners in db/immutability.py);
      the only allowed change is status POSTED -> REVERSED together with
      reversed_by_id.
    - Each line has exactly one of debit/credit nonzero (DoubleEntryValidator
      before flush).

Failure modes:
    - IntegrityError on duplicate entry_number or chain_sequence (a writer
      bypassed the chain lock).
    - ImmutabilityViolationError on modification of a posted entry or line.

Audit relevance:
    hash/previous_hash link every posted entry of a tenant in posting order.
    Recomputing the chain from the stored lines detects any edit, deletion
    or reordering after posting.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import money_type
from ledger_kernel.domain.enums import JournalEntryStatus
from ledger_kernel.domain.values import ZERO

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntry(TrackedBase):
    """
    A balanced set of journal lines, posted atomically.

    Contract:
        Created DRAFT with its lines in one transaction; posted in a second
        explicit action that assigns hash, previous_hash and chain_sequence
        under the tenant's journal chain lock.

    Guarantees:
        - After posting, hash == SHA-256(previous_hash + "|" + serialized
          entry) where the serialization covers the ordered lines.
        - entry_number follows JE-{year}-{6 digits}, sequential per tenant
          and year.

    Non-goals:
        - Does NOT validate balance itself; GeneralLedgerService calls
          DoubleEntryValidator before flush.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("tenant_id", "entry_number", name="uq_journal_tenant_number"),
        UniqueConstraint("tenant_id", "chain_sequence", name="uq_journal_tenant_chain_seq"),
        Index("idx_journal_tenant_status", "tenant_id", "status"),
        Index("idx_journal_source", "source_type", "source_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # JE-2025-000001
    entry_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    # Chain link, assigned at posting
    hash: Mapped[str | None] = mapped_column(
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

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    posted_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # What produced the entry, e.g. ("document", <id>) or ("payment", <id>)
    source_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    source_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # If this is a reversal, points to the original entry
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    # Set on the original when it is reversed
    reversed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_reversed(self) -> bool:
        return self.status == JournalEntryStatus.REVERSED

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """
    One debit or credit leg of a journal entry.

    Contract:
        Belongs to exactly one JournalEntry and references exactly one
        Account.  Immutable, and undeletable, once the parent is posted.

    Guarantees:
        - debit and credit are non-negative at scale 2; exactly one is
          nonzero.
        - line_order gives the deterministic ordering used for hashing.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "entry_id"),
        Index("idx_line_account", "account_id"),
        Index("idx_line_partner", "partner_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(
        money_type(),
        default=ZERO,
        nullable=False,
    )

    credit: Mapped[Decimal] = mapped_column(
        money_type(),
        default=ZERO,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    line_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Customer/supplier for subledger lines (receivable, payable, advance)
    partner_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<JournalLine {self.account_id} Dr {self.debit} Cr {self.credit}>"
