"""
Module: ledger_kernel.db.types
Responsibility: Column types for exact fixed-point amounts.  Centralizes scale
    so that every model stores money at scale 2 and rates at scale 4.
Architecture position: Kernel > DB.  Imported by models/.  MUST NOT import
    from models/, services/ or selectors/.

Invariants enforced:
    - No floats.  Values are bound and loaded as Decimal quantized to the
      column scale.  On SQLite, which has no exact decimal storage, amounts
      are stored as canonical decimal strings.

Failure modes:
    - decimal.InvalidOperation when a non-numeric value is bound.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

# Fractional digits for money and for rates/percentages
MONEY_SCALE = 2
RATE_SCALE = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

# SHA-256 hash as hex string
HASH_LENGTH = 64


def quantize(value: Decimal, scale: int = MONEY_SCALE) -> Decimal:
    """
    Quantize ``value`` to ``scale`` fractional digits with ROUND_HALF_UP.

    This is the only sanctioned rounding function for stored amounts.
    """
    return value.quantize(Decimal(1).scaleb(-scale), rounding=DEFAULT_ROUNDING)


class ScaledDecimal(TypeDecorator):
    """
    Exact decimal column with a fixed number of fractional digits.

    Contract:
        Numeric(precision, scale) on PostgreSQL; String(40) holding the
        quantized decimal text on SQLite.

    Guarantees:
        - Bound values are quantized with ROUND_HALF_UP to ``scale`` digits.
        - Loaded values are always Decimal with exactly ``scale`` digits.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, scale: int = MONEY_SCALE, precision: int = 18):
        super().__init__(precision=precision, scale=scale)
        self.scale = scale
        self.precision = precision

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(40))
        return dialect.type_descriptor(
            Numeric(precision=self.precision, scale=self.scale, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = quantize(Decimal(str(value)), self.scale)
        if dialect.name == "sqlite":
            return str(amount)
        return amount

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return quantize(Decimal(str(value)), self.scale)


def money_type() -> ScaledDecimal:
    """Column type for monetary amounts (scale 2)."""
    return ScaledDecimal(MONEY_SCALE)


def rate_type() -> ScaledDecimal:
    """Column type for percentages and tolerance settings (scale 4)."""
    return ScaledDecimal(RATE_SCALE, precision=12)
