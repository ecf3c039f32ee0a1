"""
Payment tolerance policy tests: threshold boundaries and override resolution.

Default policy: enabled, 0.5% of the invoice, capped at 0.50.
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.enums import ToleranceSource, ToleranceType
from ledger_kernel.domain.tolerance import (
    ToleranceOverrides,
    ToleranceSettings,
    check_tolerance,
    resolve_settings,
)

DEFAULTS = ToleranceSettings.system_default()


class TestCheckTolerance:
    def test_overpayment_within_both_caps_qualifies(self):
        check = check_tolerance(DEFAULTS, Decimal("100.00"), Decimal("100.40"))

        assert check.qualifies is True
        assert check.type is ToleranceType.OVERPAYMENT
        assert check.difference == Decimal("0.40")
        assert check.signed_difference == Decimal("0.40")
        assert check.reason == "Within tolerance"

    def test_underpayment_beyond_caps_does_not_qualify(self):
        check = check_tolerance(DEFAULTS, Decimal("100.00"), Decimal("99.00"))

        assert check.qualifies is False
        assert check.type is ToleranceType.UNDERPAYMENT
        assert check.difference == Decimal("1.00")
        assert check.reason == "Exceeds percentage threshold (0.0050)"

    def test_difference_equal_to_both_thresholds_qualifies(self):
        check = check_tolerance(DEFAULTS, Decimal("100.00"), Decimal("99.50"))

        assert check.qualifies is True
        assert check.type is ToleranceType.UNDERPAYMENT

    def test_max_amount_cap_applies_on_large_invoices(self):
        check = check_tolerance(DEFAULTS, Decimal("200.00"), Decimal("199.40"))

        assert check.qualifies is False
        assert check.reason == "Exceeds max amount threshold (0.5000)"

    def test_percentage_cap_applies_on_small_invoices(self):
        check = check_tolerance(DEFAULTS, Decimal("50.00"), Decimal("49.70"))

        assert check.qualifies is False
        assert check.reason.startswith("Exceeds percentage threshold")

    @pytest.mark.parametrize(
        "invoice, payment, reason",
        [
            ("100.00", "99.49", "Exceeds percentage threshold (0.0050)"),
            ("100.00", "100.51", "Exceeds percentage threshold (0.0050)"),
            ("200.00", "199.49", "Exceeds max amount threshold (0.5000)"),
            ("200.00", "200.51", "Exceeds max amount threshold (0.5000)"),
            ("50.00", "49.74", "Exceeds percentage threshold (0.0050)"),
            ("50.00", "50.26", "Exceeds percentage threshold (0.0050)"),
        ],
    )
    def test_one_cent_beyond_a_cap_does_not_qualify(self, invoice, payment, reason):
        check = check_tolerance(DEFAULTS, Decimal(invoice), Decimal(payment))

        assert check.qualifies is False
        assert check.reason == reason

    @pytest.mark.parametrize(
        "invoice, payment",
        [
            ("100.00", "100.50"),
            ("200.00", "199.50"),
            ("50.00", "49.75"),
            ("50.00", "50.25"),
        ],
    )
    def test_difference_at_the_binding_cap_qualifies(self, invoice, payment):
        assert check_tolerance(DEFAULTS, Decimal(invoice), Decimal(payment)).qualifies is True

    def test_exact_match_never_qualifies(self):
        check = check_tolerance(DEFAULTS, Decimal("100.00"), Decimal("100.00"))

        assert check.qualifies is False
        assert check.reason == "Exact match"

    def test_disabled_policy(self):
        disabled = ToleranceSettings(
            enabled=False,
            percentage=Decimal("0.0050"),
            max_amount=Decimal("0.5000"),
            source=ToleranceSource.COMPANY,
        )

        check = check_tolerance(disabled, Decimal("100.00"), Decimal("100.01"))

        assert check.qualifies is False
        assert check.type is None
        assert check.reason == "Tolerance disabled"


class TestResolveSettings:
    def test_system_default_when_nothing_overridden(self):
        settings = resolve_settings(ToleranceOverrides(), None)

        assert settings == DEFAULTS
        assert settings.source is ToleranceSource.SYSTEM_DEFAULT

    def test_company_beats_country_field_by_field(self):
        company = ToleranceOverrides(percentage=Decimal("0.01"))
        country = ToleranceOverrides(
            enabled=True, percentage=Decimal("0.02"), max_amount=Decimal("2.00")
        )

        settings = resolve_settings(company, country)

        assert settings.percentage == Decimal("0.0100")
        assert settings.max_amount == Decimal("2.0000")
        assert settings.enabled is True
        assert settings.source is ToleranceSource.COUNTRY

    def test_company_disable_wins(self):
        settings = resolve_settings(
            ToleranceOverrides(enabled=False), ToleranceOverrides(enabled=True)
        )

        assert settings.enabled is False
        assert settings.source is ToleranceSource.COMPANY

    @pytest.mark.parametrize("value", ["0.005", Decimal("0.005")])
    def test_values_are_scale_four(self, value):
        settings = resolve_settings(ToleranceOverrides(percentage=value), None)

        assert settings.percentage == Decimal("0.0050")
        assert settings.percentage.as_tuple().exponent == -4
