"""
Payment tolerance policy -- pure resolution and threshold checks.

Responsibility:
    Resolves the effective tolerance settings from the three override
    levels and decides whether a payment/invoice difference may be written
    off automatically.

Architecture position:
    Kernel > Domain -- pure functional core.  PaymentToleranceService loads
    the override rows and delegates here.

Invariants enforced:
    - Resolution per field: company override, then country setting, then
      system default (enabled, 0.0050, 0.50).
    - A difference qualifies only when tolerance is enabled, it is nonzero,
      and |difference| <= invoice * percentage AND |difference| <= max.
      Both bounds are inclusive.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.domain.enums import ToleranceSource, ToleranceType
from ledger_kernel.domain.values import to_money, to_rate

DEFAULT_TOLERANCE_ENABLED = True
DEFAULT_TOLERANCE_PERCENTAGE = Decimal("0.0050")
DEFAULT_MAX_TOLERANCE_AMOUNT = Decimal("0.5000")


@dataclass(frozen=True)
class ToleranceOverrides:
    """Nullable tolerance fields from one level (company or country)."""

    enabled: bool | None = None
    percentage: Decimal | None = None
    max_amount: Decimal | None = None

    def is_empty(self) -> bool:
        return self.enabled is None and self.percentage is None and self.max_amount is None


@dataclass(frozen=True)
class ToleranceSettings:
    """Effective tolerance policy for one tenant."""

    enabled: bool
    percentage: Decimal
    max_amount: Decimal
    source: ToleranceSource

    @classmethod
    def system_default(cls) -> ToleranceSettings:
        return cls(
            enabled=DEFAULT_TOLERANCE_ENABLED,
            percentage=to_rate(DEFAULT_TOLERANCE_PERCENTAGE),
            max_amount=to_rate(DEFAULT_MAX_TOLERANCE_AMOUNT),
            source=ToleranceSource.SYSTEM_DEFAULT,
        )


@dataclass(frozen=True)
class ToleranceCheck:
    """
    Decision for one payment/invoice pair.

    ``difference`` is absolute; ``signed_difference`` is payment - invoice.
    """

    qualifies: bool
    difference: Decimal
    signed_difference: Decimal
    type: ToleranceType | None
    reason: str


def resolve_settings(
    company: ToleranceOverrides,
    country: ToleranceOverrides | None,
    defaults: ToleranceSettings | None = None,
) -> ToleranceSettings:
    """
    First non-null value per field: company -> country -> default.

    ``source`` names the level that decided ``enabled``.
    """
    base = defaults or ToleranceSettings.system_default()
    country = country or ToleranceOverrides()

    def pick(company_value, country_value, default_value):
        if company_value is not None:
            return company_value
        if country_value is not None:
            return country_value
        return default_value

    if company.enabled is not None:
        source = ToleranceSource.COMPANY
    elif country.enabled is not None:
        source = ToleranceSource.COUNTRY
    else:
        source = ToleranceSource.SYSTEM_DEFAULT

    return ToleranceSettings(
        enabled=bool(pick(company.enabled, country.enabled, base.enabled)),
        percentage=to_rate(pick(company.percentage, country.percentage, base.percentage)),
        max_amount=to_rate(pick(company.max_amount, country.max_amount, base.max_amount)),
        source=source,
    )


def check_tolerance(
    settings: ToleranceSettings,
    invoice_amount: Decimal,
    payment_amount: Decimal,
) -> ToleranceCheck:
    """
    Decide whether ``payment_amount`` settles ``invoice_amount`` within
    tolerance.

    Postconditions:
        - qualifies implies enabled and 0 < |difference| <= both thresholds.
        - type is OVERPAYMENT when payment > invoice, else UNDERPAYMENT
          (None only when tolerance is disabled).
    """
    invoice_amount = to_money(invoice_amount)
    payment_amount = to_money(payment_amount)

    if not settings.enabled:
        return ToleranceCheck(
            qualifies=False,
            difference=to_money(0),
            signed_difference=to_money(0),
            type=None,
            reason="Tolerance disabled",
        )

    signed = payment_amount - invoice_amount
    difference = abs(signed)
    tolerance_type = ToleranceType.UNDERPAYMENT if signed < 0 else ToleranceType.OVERPAYMENT

    percentage_threshold = invoice_amount * settings.percentage
    within_percentage = difference <= percentage_threshold
    within_max = difference <= settings.max_amount

    if difference == 0:
        return ToleranceCheck(False, difference, signed, tolerance_type, "Exact match")

    if within_percentage and within_max:
        return ToleranceCheck(True, difference, signed, tolerance_type, "Within tolerance")

    if not within_percentage:
        reason = f"Exceeds percentage threshold ({settings.percentage})"
    else:
        reason = f"Exceeds max amount threshold ({settings.max_amount})"
    return ToleranceCheck(False, difference, signed, tolerance_type, reason)
