"""
JournalSelector -- read-only journal queries.

Responsibility:
    Chain tail and chain-ordered entries for the journal hash chain, the
    latest entry number for numbering, and account balances derived from
    posted lines.

Invariants enforced:
    - Balances are always computed from journal lines; there are no stored
      balances.  Summation happens in Python so amounts stay exact Decimals
      on every dialect.
"""

from collections.abc import Iterator
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.enums import JournalEntryStatus
from ledger_kernel.domain.values import ZERO
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector

_CHAINED_STATUSES = (JournalEntryStatus.POSTED.value, JournalEntryStatus.REVERSED.value)


class JournalSelector(BaseSelector[JournalEntry]):
    """Read-only journal entry and line queries."""

    def get(self, entry_id: UUID) -> JournalEntry | None:
        return self.session.get(JournalEntry, entry_id)

    def chain_tail(self, tenant_id: UUID) -> tuple[int, str | None]:
        """(chain_sequence, hash) of the last chained entry, or (0, None)."""
        row = self.session.execute(
            select(JournalEntry.chain_sequence, JournalEntry.hash)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.chain_sequence.is_not(None),
            )
            .order_by(JournalEntry.chain_sequence.desc())
            .limit(1)
        ).first()
        if row is None:
            return 0, None
        return int(row.chain_sequence), row.hash

    def latest_entry_number(self, tenant_id: UUID, year: int) -> str | None:
        return self.session.execute(
            select(JournalEntry.entry_number)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.entry_number.like(f"JE-{year}-%"),
            )
            .order_by(JournalEntry.entry_number.desc())
            .limit(1)
        ).scalar_one_or_none()

    def chained_entries(self, tenant_id: UUID) -> Iterator[JournalEntry]:
        """Posted (and since reversed) entries in chain order, lines loaded."""
        yield from self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.chain_sequence.is_not(None),
            )
            .order_by(JournalEntry.chain_sequence)
        ).scalars()

    def tenants_with_entries(self) -> list[UUID]:
        return list(
            self.session.execute(
                select(JournalEntry.tenant_id).distinct().order_by(JournalEntry.tenant_id)
            ).scalars()
        )

    def entries_for_source(self, source_type: str, source_id: UUID) -> list[JournalEntry]:
        return list(
            self.session.execute(
                select(JournalEntry)
                .where(
                    JournalEntry.source_type == source_type,
                    JournalEntry.source_id == source_id,
                )
                .order_by(JournalEntry.created_at)
            ).scalars()
        )

    def account_balance(
        self,
        account_id: UUID,
        partner_id: UUID | None = None,
    ) -> Decimal:
        """
        Debits minus credits over chained entries for one account.

        Reversed entries count together with their reversals, so a reversal
        nets to zero.
        """
        query = (
            select(JournalLine.debit, JournalLine.credit)
            .join(JournalEntry, JournalLine.entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account_id,
                JournalEntry.status.in_(_CHAINED_STATUSES),
            )
        )
        if partner_id is not None:
            query = query.where(JournalLine.partner_id == partner_id)

        balance = ZERO
        for debit, credit in self.session.execute(query):
            balance += debit - credit
        return balance
