"""
PaymentToleranceService tests: settings resolution from Company and
CountryPaymentSettings rows, checks, and write-off posting.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.enums import (
    JournalEntryStatus,
    SystemAccountPurpose as P,
    ToleranceSource,
    ToleranceType,
)
from ledger_kernel.domain.tolerance import ToleranceSettings
from ledger_kernel.exceptions import InvalidAmountError, ToleranceDisabledError
from ledger_kernel.models.company import Company, CountryPaymentSettings
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.payment_tolerance_service import PaymentToleranceService


@pytest.fixture
def add_company(session, tenant_id, test_actor_id):
    def _add(**fields) -> Company:
        company = Company(id=tenant_id, name="Acme", created_by_id=test_actor_id, **fields)
        session.add(company)
        session.flush()
        return company

    return _add


@pytest.fixture
def add_country(session, test_actor_id):
    def _add(country_code: str, **fields) -> CountryPaymentSettings:
        row = CountryPaymentSettings(
            country_code=country_code, created_by_id=test_actor_id, **fields
        )
        session.add(row)
        session.flush()
        return row

    return _add


class TestSettings:
    def test_unknown_tenant_uses_system_default(self, tolerance_service, tenant_id):
        settings = tolerance_service.get_tolerance_settings(tenant_id)

        assert settings == ToleranceSettings.system_default()
        assert settings.source == ToleranceSource.SYSTEM_DEFAULT

    def test_injected_defaults(self, session, tenant_id):
        defaults = ToleranceSettings(
            enabled=True,
            percentage=Decimal("0.01"),
            max_amount=Decimal("1.00"),
            source=ToleranceSource.SYSTEM_DEFAULT,
        )
        service = PaymentToleranceService(session, defaults=defaults)

        assert service.get_tolerance_settings(tenant_id).max_amount == Decimal("1.0000")

    def test_country_fills_company_gaps(self, tolerance_service, tenant_id, add_company, add_country):
        add_country("DE", payment_tolerance_enabled=False, max_payment_tolerance_amount=Decimal("2.00"))
        add_company(country_code="DE", payment_tolerance_percentage=Decimal("0.0100"))

        settings = tolerance_service.get_tolerance_settings(tenant_id)

        assert settings.enabled is False
        assert settings.percentage == Decimal("0.0100")
        assert settings.max_amount == Decimal("2.0000")
        assert settings.source == ToleranceSource.COUNTRY

    def test_company_enabled_overrides_country(
        self, tolerance_service, tenant_id, add_company, add_country
    ):
        add_country("FR", payment_tolerance_enabled=False)
        add_company(country_code="FR", payment_tolerance_enabled=True)

        settings = tolerance_service.get_tolerance_settings(tenant_id)

        assert settings.enabled is True
        assert settings.source == ToleranceSource.COMPANY

    def test_company_without_country_row(self, tolerance_service, tenant_id, add_company):
        add_company(country_code="ZZ")

        settings = tolerance_service.get_tolerance_settings(tenant_id)

        assert settings.source == ToleranceSource.SYSTEM_DEFAULT
        assert settings.percentage == Decimal("0.0050")


class TestCheck:
    def test_underpayment_within_tolerance(self, tolerance_service, tenant_id):
        check = tolerance_service.check_tolerance(Decimal("100.00"), Decimal("99.70"), tenant_id)

        assert check.qualifies
        assert check.type == ToleranceType.UNDERPAYMENT
        assert check.difference == Decimal("0.30")

    def test_disabled_company(self, tolerance_service, tenant_id, add_company):
        add_company(payment_tolerance_enabled=False)

        check = tolerance_service.check_tolerance(Decimal("100.00"), Decimal("99.70"), tenant_id)

        assert not check.qualifies
        assert check.reason == "Tolerance disabled"


class TestApply:
    def test_underpayment_writeoff_posted(
        self, tolerance_service, session, accounts, tenant_id, partner_id, create_document, test_actor_id
    ):
        invoice = create_document("INV-0001", "100.00")

        entry = tolerance_service.apply_tolerance(
            tenant_id,
            partner_id,
            invoice.id,
            Decimal("0.30"),
            ToleranceType.UNDERPAYMENT,
            date(2025, 2, 1),
            test_actor_id,
        )

        assert entry.status == JournalEntryStatus.POSTED
        assert entry.source_type == "payment_tolerance"
        assert entry.source_id == invoice.id
        assert JournalSelector(session).account_balance(
            accounts[P.PAYMENT_TOLERANCE_EXPENSE].id
        ) == Decimal("0.30")

    def test_writeoff_logged(
        self, tolerance_service, accounts, tenant_id, partner_id, create_document, test_actor_id, captured_logs
    ):
        invoice = create_document("INV-0001", "100.00")

        tolerance_service.apply_tolerance(
            tenant_id,
            partner_id,
            invoice.id,
            Decimal("0.20"),
            ToleranceType.OVERPAYMENT,
            date(2025, 2, 1),
            test_actor_id,
        )

        records = [r for r in captured_logs() if r["message"] == "tolerance_writeoff_recorded"]
        assert records[-1]["amount"] == "0.20"
        assert records[-1]["tolerance_type"] == "overpayment"

    def test_disabled_tenant_rejected(
        self, tolerance_service, accounts, tenant_id, partner_id, add_company, create_document, test_actor_id
    ):
        add_company(payment_tolerance_enabled=False)
        invoice = create_document("INV-0001", "100.00")

        with pytest.raises(ToleranceDisabledError):
            tolerance_service.apply_tolerance(
                tenant_id,
                partner_id,
                invoice.id,
                Decimal("0.30"),
                ToleranceType.UNDERPAYMENT,
                date(2025, 2, 1),
                test_actor_id,
            )

    def test_non_positive_amount_rejected(
        self, tolerance_service, accounts, tenant_id, partner_id, create_document, test_actor_id
    ):
        invoice = create_document("INV-0001", "100.00")

        with pytest.raises(InvalidAmountError):
            tolerance_service.apply_tolerance(
                tenant_id,
                partner_id,
                invoice.id,
                Decimal("0.00"),
                ToleranceType.UNDERPAYMENT,
                date(2025, 2, 1),
                test_actor_id,
            )
