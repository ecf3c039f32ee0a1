"""
DoubleEntryValidator -- the single gate before an entry leaves Draft.

Responsibility:
    Decides whether a set of proposed lines is balanced and well formed.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O, no state.

Invariants enforced:
    - Balance: sum(debits) == sum(credits) exactly at scale 2; no rounding
      tolerance.  Fewer than two lines is never balanced.
    - Exclusivity: every line has exactly one of debit/credit nonzero, and
      neither is negative.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from ledger_kernel.domain.dtos import HasAmounts
from ledger_kernel.domain.values import ZERO, format_amount, to_money
from ledger_kernel.exceptions import InvalidLineError, UnbalancedEntryError


def _totals(lines: Sequence[HasAmounts]) -> tuple[Decimal, Decimal]:
    debits = sum((to_money(line.debit) for line in lines), ZERO)
    credits = sum((to_money(line.credit) for line in lines), ZERO)
    return debits, credits


def _line_is_valid(line: HasAmounts) -> bool:
    debit = to_money(line.debit)
    credit = to_money(line.credit)
    if debit < ZERO or credit < ZERO:
        return False
    return (debit > ZERO) != (credit > ZERO)


class DoubleEntryValidator:
    """
    Pure validator for journal lines.

    Contract:
        Accepts any sequence of objects exposing ``debit`` and ``credit``
        (LineSpec DTOs or JournalLine rows).

    Guarantees:
        - Never mutates its input.
        - ``validate`` is True iff ``is_balanced`` and ``has_valid_lines``.
    """

    @staticmethod
    def is_balanced(lines: Sequence[HasAmounts]) -> bool:
        if len(lines) < 2:
            return False
        debits, credits = _totals(lines)
        return debits == credits

    @staticmethod
    def has_valid_lines(lines: Sequence[HasAmounts]) -> bool:
        return all(_line_is_valid(line) for line in lines)

    @classmethod
    def validate(cls, lines: Sequence[HasAmounts]) -> bool:
        return cls.is_balanced(lines) and cls.has_valid_lines(lines)

    @classmethod
    def assert_valid(cls, lines: Sequence[HasAmounts]) -> None:
        """
        Raise the typed error for the first problem found.

        Raises:
            InvalidLineError: a line has both, neither, or a negative amount.
            UnbalancedEntryError: totals differ or fewer than two lines.
        """
        for index, line in enumerate(lines):
            if not _line_is_valid(line):
                raise InvalidLineError(
                    index, format_amount(line.debit), format_amount(line.credit)
                )
        if not cls.is_balanced(lines):
            debits, credits = _totals(lines)
            raise UnbalancedEntryError(
                format_amount(debits), format_amount(credits), len(lines)
            )
