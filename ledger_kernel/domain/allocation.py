"""
Allocation planner -- deterministic distribution of a payment.

Responsibility:
    Turns a payment amount and a partner's open invoices into an
    AllocationPlan: which invoice receives how much, which allocation carries
    a tolerance write-off, and what is left over as excess.  This is the
    Preview half of Preview -> Apply; PaymentAllocationService replays the
    plan inside a transaction.

Architecture position:
    Kernel > Domain -- pure functional core, no I/O.  The tolerance decision
    is injected as a callable so the planner never reads settings itself.

Invariants enforced:
    - Conservation: sum(amounts) + overpayment write-off + excess == payment.
    - No allocation exceeds its invoice's open balance; every allocation
      amount is > 0.
    - Ordering: FIFO sorts by (document_date, document_number); due-date
      priority by (due_date, document_date) with undated invoices last.
    - The first tolerance-qualifying invoice is terminal: the loop stops
      there even if other invoices remain open.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import ManualAllocation, OpenInvoice
from ledger_kernel.domain.enums import AllocationStrategy, ExcessHandling, ToleranceType
from ledger_kernel.domain.tolerance import ToleranceCheck
from ledger_kernel.domain.values import ZERO, format_amount, to_money
from ledger_kernel.exceptions import AllocationExceedsBalanceError, InvalidAmountError

ToleranceChecker = Callable[[Decimal, Decimal], ToleranceCheck]


@dataclass(frozen=True)
class PlannedAllocation:
    document_id: UUID
    document_number: str
    amount: Decimal
    invoice_balance: Decimal
    tolerance_writeoff: Decimal = ZERO
    tolerance_type: ToleranceType | None = None

    @property
    def has_writeoff(self) -> bool:
        return self.tolerance_writeoff > ZERO


@dataclass(frozen=True)
class AllocationPlan:
    """
    Result of a preview.  Nothing has been written.

    ``total_to_invoices`` is the invoice value cleared: allocated amounts
    plus every write-off.
    """

    payment_amount: Decimal
    strategy: AllocationStrategy
    allocations: tuple[PlannedAllocation, ...]
    excess: Decimal
    excess_handling: ExcessHandling | None

    @property
    def total_allocated(self) -> Decimal:
        return sum((a.amount for a in self.allocations), ZERO)

    @property
    def total_writeoff(self) -> Decimal:
        return sum((a.tolerance_writeoff for a in self.allocations), ZERO)

    @property
    def overpayment_writeoff(self) -> Decimal:
        return sum(
            (
                a.tolerance_writeoff
                for a in self.allocations
                if a.tolerance_type is ToleranceType.OVERPAYMENT
            ),
            ZERO,
        )

    @property
    def total_to_invoices(self) -> Decimal:
        return self.total_allocated + self.total_writeoff


_FAR_FUTURE = date.max


def order_open_invoices(
    invoices: Sequence[OpenInvoice],
    strategy: AllocationStrategy,
) -> list[OpenInvoice]:
    """Sort open invoices for an automatic strategy."""
    if strategy is AllocationStrategy.DUE_DATE_PRIORITY:
        return sorted(
            invoices,
            key=lambda inv: (inv.due_date or _FAR_FUTURE, inv.document_date, inv.document_number),
        )
    return sorted(invoices, key=lambda inv: (inv.document_date, inv.document_number))


def _excess_handling(
    allocations: Sequence[PlannedAllocation], excess: Decimal
) -> ExcessHandling | None:
    if any(a.has_writeoff for a in allocations):
        return ExcessHandling.TOLERANCE_WRITEOFF
    if excess > ZERO:
        return ExcessHandling.CREDIT_BALANCE
    return None


def plan_auto_allocation(
    payment_amount: Decimal,
    invoices: Sequence[OpenInvoice],
    strategy: AllocationStrategy,
    check_tolerance: ToleranceChecker,
) -> AllocationPlan:
    """
    FIFO or due-date allocation with tolerance write-off.

    Preconditions: ``strategy`` is FIFO or DUE_DATE_PRIORITY; invoices are
        the partner's open invoices in any order.
    Postconditions: conservation holds; at most one allocation (the last)
        carries a write-off.
    """
    if strategy is AllocationStrategy.MANUAL:
        raise ValueError("Manual strategy requires plan_manual_allocation()")

    payment_amount = to_money(payment_amount)
    remaining = payment_amount
    allocations: list[PlannedAllocation] = []

    for invoice in order_open_invoices(invoices, strategy):
        if remaining <= ZERO:
            break

        balance = to_money(invoice.balance)
        if balance <= ZERO:
            continue

        check = check_tolerance(balance, remaining)
        if check.qualifies:
            overpaid = check.type is ToleranceType.OVERPAYMENT
            allocations.append(
                PlannedAllocation(
                    document_id=invoice.document_id,
                    document_number=invoice.document_number,
                    amount=balance if overpaid else remaining,
                    invoice_balance=balance,
                    tolerance_writeoff=to_money(check.difference),
                    tolerance_type=check.type,
                )
            )
            remaining = ZERO
            break

        amount = min(remaining, balance)
        allocations.append(
            PlannedAllocation(
                document_id=invoice.document_id,
                document_number=invoice.document_number,
                amount=amount,
                invoice_balance=balance,
            )
        )
        remaining -= amount

    return AllocationPlan(
        payment_amount=payment_amount,
        strategy=strategy,
        allocations=tuple(allocations),
        excess=remaining,
        excess_handling=_excess_handling(allocations, remaining),
    )


def plan_manual_allocation(
    payment_amount: Decimal,
    requested: Sequence[ManualAllocation],
    invoices: Mapping[UUID, OpenInvoice],
) -> AllocationPlan:
    """
    Caller-specified amounts, no tolerance.

    Raises:
        InvalidAmountError: an amount is not positive.
        AllocationExceedsBalanceError: an amount exceeds its invoice's open
            balance (or the invoice is not open), or the amounts together
            exceed the payment.
    """
    payment_amount = to_money(payment_amount)
    allocations: list[PlannedAllocation] = []
    consumed: dict[UUID, Decimal] = {}
    total = ZERO

    for item in requested:
        if item.amount <= ZERO:
            raise InvalidAmountError(format_amount(item.amount), "allocation must be positive")
        invoice = invoices.get(item.document_id)
        balance = to_money(invoice.balance) if invoice is not None else ZERO
        already = consumed.get(item.document_id, ZERO)
        if invoice is None or already + item.amount > balance:
            raise AllocationExceedsBalanceError(
                str(item.document_id), format_amount(item.amount), format_amount(balance)
            )
        allocations.append(
            PlannedAllocation(
                document_id=invoice.document_id,
                document_number=invoice.document_number,
                amount=item.amount,
                invoice_balance=balance - already,
            )
        )
        total += item.amount
        consumed[item.document_id] = already + item.amount

    if total > payment_amount:
        raise AllocationExceedsBalanceError(
            "payment", format_amount(total), format_amount(payment_amount)
        )

    excess = payment_amount - total
    return AllocationPlan(
        payment_amount=payment_amount,
        strategy=AllocationStrategy.MANUAL,
        allocations=tuple(allocations),
        excess=excess,
        excess_handling=ExcessHandling.CREDIT_BALANCE if excess > ZERO else None,
    )
