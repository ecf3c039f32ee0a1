"""
Values -- exact fixed-point monetary helpers.

Responsibility:
    Converts inputs into Decimal amounts at an explicit scale (2 for money,
    4 for rates and percentages) and renders them in the canonical text form
    used by hash serialization.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Binary floating point is rejected at every boundary; amounts are built
      from Decimal, int or str only.
    - Comparisons happen between values quantized to the same scale, so
      equality is exact at that scale.

Failure modes:
    - TypeError for float input.
    - InvalidAmountError from to_exact_money() for amounts below one cent
      precision; caller-supplied amounts are never rounded.
    - decimal.InvalidOperation for non-numeric strings.
"""

from __future__ import annotations

from decimal import Decimal

from ledger_kernel.db.types import MONEY_SCALE, RATE_SCALE, quantize
from ledger_kernel.exceptions import InvalidAmountError

__all__ = [
    "MONEY_SCALE",
    "RATE_SCALE",
    "ZERO",
    "format_amount",
    "quantize",
    "to_exact_money",
    "to_money",
    "to_rate",
]

ZERO = Decimal("0.00")


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, float):
        raise TypeError(
            f"Float {value!r} is not a valid amount; use Decimal or str"
        )
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value).strip())


def to_money(value: Decimal | int | str | None) -> Decimal:
    """Money at scale 2. ``None`` is treated as zero."""
    if value is None:
        return ZERO
    return quantize(_to_decimal(value), MONEY_SCALE)


def to_exact_money(value: Decimal | int | str | None) -> Decimal:
    """Money at scale 2 for caller-supplied amounts: sub-cent digits are an
    error, not something to round away.  ``None`` is treated as zero."""
    if value is None:
        return ZERO
    amount = _to_decimal(value)
    money = quantize(amount, MONEY_SCALE)
    if money != amount:
        raise InvalidAmountError(
            str(amount), f"more than {MONEY_SCALE} decimal places"
        )
    return money


def to_rate(value: Decimal | int | str) -> Decimal:
    """Rate or percentage (as a fraction, 0.0050 == 0.5%) at scale 4."""
    return quantize(_to_decimal(value), RATE_SCALE)


def format_amount(value: Decimal | int | str | None) -> str:
    """Fixed 2-decimal text, e.g. ``Decimal("100")`` -> ``"100.00"``."""
    return format(to_money(value), "f")
