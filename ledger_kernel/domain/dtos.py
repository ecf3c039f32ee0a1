"""
Domain DTOs -- immutable inputs to the ledger's pure functions.

These replace ORM objects at the boundary of the functional core: the
validator, the hash serializer and the allocation planner only ever see
these frozen dataclasses (or objects with the same attributes).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from ledger_kernel.domain.values import ZERO, to_exact_money


class HasAmounts(Protocol):
    """Anything with debit/credit attributes (LineSpec or JournalLine)."""

    debit: Decimal
    credit: Decimal


@dataclass(frozen=True)
class LineSpec:
    """
    One proposed leg of a journal entry.

    Amounts are normalized to scale 2 on construction; sub-cent digits
    raise InvalidAmountError.
    """

    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    partner_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_exact_money(self.debit))
        object.__setattr__(self, "credit", to_exact_money(self.credit))

    @classmethod
    def dr(
        cls,
        account_id: UUID,
        amount: Decimal | str,
        description: str | None = None,
        partner_id: UUID | None = None,
    ) -> LineSpec:
        return cls(account_id, debit=to_exact_money(amount), description=description, partner_id=partner_id)

    @classmethod
    def cr(
        cls,
        account_id: UUID,
        amount: Decimal | str,
        description: str | None = None,
        partner_id: UUID | None = None,
    ) -> LineSpec:
        return cls(account_id, credit=to_exact_money(amount), description=description, partner_id=partner_id)


@dataclass(frozen=True)
class OpenInvoice:
    """An invoice with an outstanding balance, as seen by the planner."""

    document_id: UUID
    document_number: str
    document_date: date
    due_date: date | None
    balance: Decimal


@dataclass(frozen=True)
class ManualAllocation:
    """Caller-chosen amount for one document (manual strategy), exact to the cent."""

    document_id: UUID
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_exact_money(self.amount))
