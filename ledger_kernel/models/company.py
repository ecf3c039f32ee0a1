"""
Module: ledger_kernel.models.company
Responsibility: Tolerance overrides at the company and country levels.
Architecture position: Kernel > Models.  Read by PaymentToleranceService.

Invariants enforced:
    - One CountryPaymentSettings row per country_code.
    - Override columns are nullable: NULL means "inherit from the next
      level" (company -> country -> system default).
"""

from decimal import Decimal

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.db.types import rate_type
from ledger_kernel.domain.tolerance import ToleranceOverrides


class Company(TrackedBase):
    """
    A tenant.  The company id is the tenant_id of every ledger row.

    Non-goals:
        - Does NOT provision tenants; only the tolerance fields are used
          here.
    """

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # ISO 3166-1 alpha-2
    country_code: Mapped[str | None] = mapped_column(
        String(2),
        nullable=True,
    )

    payment_tolerance_enabled: Mapped[bool | None] = mapped_column(
        Boolean,
        nullable=True,
    )

    payment_tolerance_percentage: Mapped[Decimal | None] = mapped_column(
        rate_type(),
        nullable=True,
    )

    max_payment_tolerance_amount: Mapped[Decimal | None] = mapped_column(
        rate_type(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Company {self.name} ({self.country_code})>"

    def tolerance_overrides(self) -> ToleranceOverrides:
        return ToleranceOverrides(
            enabled=self.payment_tolerance_enabled,
            percentage=self.payment_tolerance_percentage,
            max_amount=self.max_payment_tolerance_amount,
        )


class CountryPaymentSettings(TrackedBase):
    """Country-level tolerance defaults."""

    __tablename__ = "country_payment_settings"

    country_code: Mapped[str] = mapped_column(
        String(2),
        nullable=False,
        unique=True,
    )

    payment_tolerance_enabled: Mapped[bool | None] = mapped_column(
        Boolean,
        nullable=True,
    )

    payment_tolerance_percentage: Mapped[Decimal | None] = mapped_column(
        rate_type(),
        nullable=True,
    )

    max_payment_tolerance_amount: Mapped[Decimal | None] = mapped_column(
        rate_type(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<CountryPaymentSettings {self.country_code}>"

    def tolerance_overrides(self) -> ToleranceOverrides:
        return ToleranceOverrides(
            enabled=self.payment_tolerance_enabled,
            percentage=self.payment_tolerance_percentage,
            max_amount=self.max_payment_tolerance_amount,
        )
