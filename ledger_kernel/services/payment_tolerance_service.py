"""
PaymentToleranceService -- effective tolerance settings and write-offs.

Responsibility:
    Loads the company and country override rows for a tenant, resolves the
    effective settings through ``domain.tolerance``, and records tolerance
    write-offs as posted GL entries.

Architecture position:
    Kernel > Services -- thin shell over the pure policy in
    ledger_kernel.domain.tolerance.

Invariants enforced:
    - Resolution per field: company override, then country setting, then
      the system default (configurable through ledger_config).
    - A write-off is only recorded while tolerance is enabled for the
      tenant.

Failure modes:
    - ToleranceDisabledError from apply_tolerance when tolerance is off.
    - InvalidAmountError for a non-positive write-off amount.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.enums import ToleranceType
from ledger_kernel.domain.tolerance import (
    ToleranceCheck,
    ToleranceOverrides,
    ToleranceSettings,
    check_tolerance,
    resolve_settings,
)
from ledger_kernel.domain.values import ZERO, format_amount, to_exact_money
from ledger_kernel.exceptions import InvalidAmountError, ToleranceDisabledError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.company import Company, CountryPaymentSettings
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.general_ledger_service import GeneralLedgerService

logger = get_logger("services.payment_tolerance")


class PaymentToleranceService(BaseService[Company]):
    """
    Tenant-level tolerance policy.

    Contract:
        ``tenant_id`` is the Company id.  A tenant without a Company row
        uses the system defaults.

    Guarantees:
        - check_tolerance never writes.
        - apply_tolerance creates and posts exactly one write-off entry.
    """

    def __init__(
        self,
        session: Session,
        defaults: ToleranceSettings | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._defaults = defaults or ToleranceSettings.system_default()
        self._gl = GeneralLedgerService(session, clock=clock)

    def get_tolerance_settings(self, tenant_id: UUID) -> ToleranceSettings:
        company = self.session.get(Company, tenant_id)
        if company is None:
            return resolve_settings(ToleranceOverrides(), None, self._defaults)

        country = None
        if company.country_code:
            country_row = self.session.execute(
                select(CountryPaymentSettings).where(
                    CountryPaymentSettings.country_code == company.country_code
                )
            ).scalar_one_or_none()
            if country_row is not None:
                country = country_row.tolerance_overrides()

        settings = resolve_settings(company.tolerance_overrides(), country, self._defaults)
        logger.debug(
            "tolerance_settings_resolved",
            extra={
                "tenant_id": str(tenant_id),
                "enabled": settings.enabled,
                "percentage": str(settings.percentage),
                "max_amount": str(settings.max_amount),
                "source": settings.source.value,
            },
        )
        return settings

    def check_tolerance(
        self,
        invoice_amount: Decimal,
        payment_amount: Decimal,
        tenant_id: UUID,
    ) -> ToleranceCheck:
        return check_tolerance(
            self.get_tolerance_settings(tenant_id), invoice_amount, payment_amount
        )

    def apply_tolerance(
        self,
        tenant_id: UUID,
        partner_id: UUID,
        document_id: UUID,
        amount: Decimal,
        tolerance_type: ToleranceType,
        entry_date: date,
        actor_id: UUID,
        description: str | None = None,
    ) -> JournalEntry:
        """
        Record a tolerance write-off as a posted GL entry.

        Raises:
            ToleranceDisabledError: tolerance is disabled for the tenant.
            InvalidAmountError: amount is not positive or has sub-cent digits.
        """
        if not self.get_tolerance_settings(tenant_id).enabled:
            raise ToleranceDisabledError(str(tenant_id))
        amount = to_exact_money(amount)
        if amount <= ZERO:
            raise InvalidAmountError(format_amount(amount), "write-off must be positive")

        entry = self._gl.create_tolerance_writeoff_entry(
            tenant_id,
            partner_id,
            document_id,
            amount,
            tolerance_type,
            entry_date,
            actor_id,
            description=description,
        )
        self._gl.post_entry(entry, actor_id)

        logger.info(
            "tolerance_writeoff_recorded",
            extra={
                "tenant_id": str(tenant_id),
                "document_id": str(document_id),
                "amount": format_amount(amount),
                "tolerance_type": ToleranceType(tolerance_type).value,
                "entry_id": str(entry.id),
            },
        )
        return entry
