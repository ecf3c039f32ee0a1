"""
PaymentAllocationService tests: preview is read-only, apply persists
allocations, balances, write-offs and GL entries atomically.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import ManualAllocation
from ledger_kernel.domain.enums import (
    AllocationStrategy,
    DocumentStatus,
    ExcessHandling,
    PaymentType,
    SystemAccountPurpose as P,
    ToleranceType,
)
from ledger_kernel.exceptions import (
    AllocationExceedsBalanceError,
    InvalidAmountError,
    PaymentNotFoundError,
)
from ledger_kernel.models.payment import PaymentAllocation
from ledger_kernel.selectors.journal_selector import JournalSelector


def _balance(session, account, partner_id=None) -> Decimal:
    return JournalSelector(session).account_balance(account.id, partner_id=partner_id)


class TestPreview:
    def test_preview_writes_nothing(
        self, allocation_service, posted_invoice, session, tenant_id, partner_id
    ):
        invoice = posted_invoice("INV-0001", "100.00")

        plan = allocation_service.preview_allocation(
            tenant_id, partner_id, Decimal("60.00"), AllocationStrategy.FIFO
        )

        assert plan.total_allocated == Decimal("60.00")
        assert invoice.balance_due == Decimal("100.00")
        assert session.query(PaymentAllocation).count() == 0

    def test_open_invoices_in_strategy_order(
        self, allocation_service, posted_invoice, tenant_id, partner_id
    ):
        posted_invoice("INV-0001", "10.00", document_date=date(2025, 1, 2), due_date=date(2025, 3, 1))
        posted_invoice("INV-0002", "10.00", document_date=date(2025, 1, 3), due_date=date(2025, 2, 1))

        fifo = allocation_service.get_open_invoices(tenant_id, partner_id, AllocationStrategy.FIFO)
        by_due = allocation_service.get_open_invoices(
            tenant_id, partner_id, AllocationStrategy.DUE_DATE_PRIORITY
        )

        assert [i.document_number for i in fifo] == ["INV-0001", "INV-0002"]
        assert [i.document_number for i in by_due] == ["INV-0002", "INV-0001"]

    def test_other_partner_invoices_ignored(
        self, allocation_service, posted_invoice, tenant_id, partner_id
    ):
        posted_invoice("INV-0001", "10.00", partner_id=uuid4())

        assert allocation_service.get_open_invoices(tenant_id, partner_id) == []

    def test_non_positive_payment_rejected(self, allocation_service, tenant_id, partner_id):
        with pytest.raises(InvalidAmountError):
            allocation_service.preview_allocation(
                tenant_id, partner_id, Decimal("0.00"), AllocationStrategy.FIFO
            )

    def test_sub_cent_payment_rejected(self, allocation_service, tenant_id, partner_id):
        with pytest.raises(InvalidAmountError):
            allocation_service.preview_allocation(
                tenant_id, partner_id, Decimal("60.005"), AllocationStrategy.FIFO
            )


class TestApplyWithTolerance:
    def test_overpayment_within_tolerance(
        self, allocation_service, posted_invoice, create_payment, session, accounts, partner_id
    ):
        invoice = posted_invoice("INV-0001", "100.00")
        payment = create_payment("100.40")

        result = allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        (applied,) = result.allocations
        assert applied.amount == Decimal("100.00")
        assert applied.tolerance_writeoff == Decimal("0.40")
        assert applied.tolerance_type is ToleranceType.OVERPAYMENT
        assert applied.writeoff_entry_id is not None
        assert invoice.status == DocumentStatus.PAID
        assert invoice.balance_due == Decimal("0.00")
        assert result.excess == Decimal("0.00")
        assert result.excess_handling is ExcessHandling.TOLERANCE_WRITEOFF

        assert _balance(session, accounts[P.CUSTOMER_RECEIVABLE], partner_id) == Decimal("0.00")
        assert _balance(session, accounts[P.BANK]) == Decimal("100.40")
        assert _balance(session, accounts[P.PAYMENT_TOLERANCE_INCOME]) == Decimal("-0.40")

    def test_underpayment_within_tolerance(
        self, allocation_service, posted_invoice, create_payment, session, accounts, partner_id
    ):
        invoice = posted_invoice("INV-0001", "100.00")
        payment = create_payment("99.70")

        result = allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        (applied,) = result.allocations
        assert applied.amount == Decimal("99.70")
        assert applied.tolerance_writeoff == Decimal("0.30")
        assert applied.document_status is DocumentStatus.PAID
        assert invoice.status == DocumentStatus.PAID
        assert _balance(session, accounts[P.CUSTOMER_RECEIVABLE], partner_id) == Decimal("0.00")
        assert _balance(session, accounts[P.PAYMENT_TOLERANCE_EXPENSE]) == Decimal("0.30")

    def test_underpayment_beyond_tolerance_leaves_balance(
        self, allocation_service, posted_invoice, create_payment, session, accounts
    ):
        invoice = posted_invoice("INV-0001", "100.00")
        payment = create_payment("99.00")

        result = allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        assert result.total_writeoff == Decimal("0.00")
        assert invoice.status == DocumentStatus.POSTED
        assert invoice.balance_due == Decimal("1.00")
        assert _balance(session, accounts[P.CUSTOMER_RECEIVABLE]) == Decimal("1.00")


class TestApplyExcess:
    def test_excess_becomes_customer_advance(
        self, allocation_service, posted_invoice, create_payment, session, accounts, partner_id
    ):
        first = posted_invoice("INV-0001", "100.00", document_date=date(2025, 1, 10))
        second = posted_invoice("INV-0002", "50.00", document_date=date(2025, 1, 12))
        payment = create_payment("180.00")

        result = allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        assert [a.document_number for a in result.allocations] == ["INV-0001", "INV-0002"]
        assert result.total_allocated == Decimal("150.00")
        assert result.excess == Decimal("30.00")
        assert result.excess_handling is ExcessHandling.CREDIT_BALANCE
        assert result.payment_type is PaymentType.RECEIPT
        assert result.advance_journal_entry_id is not None
        assert first.status == second.status == DocumentStatus.PAID

        assert _balance(session, accounts[P.BANK]) == Decimal("180.00")
        assert _balance(session, accounts[P.CUSTOMER_RECEIVABLE], partner_id) == Decimal("0.00")
        assert _balance(session, accounts[P.CUSTOMER_ADVANCE], partner_id) == Decimal("-30.00")

    def test_payment_without_invoices_is_an_advance(
        self, allocation_service, create_payment, session, accounts
    ):
        payment = create_payment("50.00")

        result = allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        assert result.allocations == ()
        assert result.journal_entry_id is None
        assert result.payment_type is PaymentType.ADVANCE
        assert payment.payment_type == PaymentType.ADVANCE
        assert _balance(session, accounts[P.CUSTOMER_ADVANCE]) == Decimal("-50.00")

    def test_conservation(self, allocation_service, posted_invoice, create_payment):
        posted_invoice("INV-0001", "100.00", document_date=date(2025, 1, 10))
        posted_invoice("INV-0002", "100.00", document_date=date(2025, 1, 11))
        payment = create_payment("200.30")

        result = allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        overpayment = sum(
            (a.tolerance_writeoff for a in result.allocations if a.tolerance_type is ToleranceType.OVERPAYMENT),
            Decimal("0"),
        )
        assert result.total_allocated + overpayment + result.excess == Decimal("200.30")


class TestApplyManual:
    def test_manual_lines_applied(
        self, allocation_service, posted_invoice, create_payment, test_actor_id
    ):
        first = posted_invoice("INV-0001", "100.00")
        second = posted_invoice("INV-0002", "50.00")
        payment = create_payment("80.00")

        result = allocation_service.apply_allocation(
            payment.id,
            AllocationStrategy.MANUAL,
            manual_lines=[
                ManualAllocation(second.id, Decimal("50.00")),
                ManualAllocation(first.id, Decimal("30.00")),
            ],
            actor_id=test_actor_id,
        )

        assert result.total_allocated == Decimal("80.00")
        assert second.status == DocumentStatus.PAID
        assert first.balance_due == Decimal("70.00")
        assert len(payment.allocations) == 2

    def test_manual_over_balance_rejected(
        self, allocation_service, posted_invoice, create_payment, session
    ):
        invoice = posted_invoice("INV-0001", "40.00")
        payment = create_payment("80.00")

        with pytest.raises(AllocationExceedsBalanceError):
            allocation_service.apply_allocation(
                payment.id,
                AllocationStrategy.MANUAL,
                manual_lines=[ManualAllocation(invoice.id, Decimal("50.00"))],
            )
        assert session.query(PaymentAllocation).count() == 0


class TestApplyFailures:
    def test_unknown_payment(self, allocation_service):
        with pytest.raises(PaymentNotFoundError):
            allocation_service.apply_allocation(uuid4(), AllocationStrategy.FIFO)

    def test_stale_balance_rejected(
        self, allocation_service, posted_invoice, create_payment, session, monkeypatch
    ):
        invoice = posted_invoice("INV-0001", "100.00")
        planned = allocation_service.get_open_invoices(invoice.tenant_id, invoice.partner_id)
        # Another transaction settles part of the invoice after planning.
        invoice.balance_due = Decimal("60.00")
        session.flush()
        monkeypatch.setattr(
            allocation_service._documents, "open_invoices", lambda *args: planned
        )
        payment = create_payment("100.00")

        with pytest.raises(AllocationExceedsBalanceError) as excinfo:
            allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        assert excinfo.value.planned_balance == "100.00"
        assert excinfo.value.available == "60.00"
        assert "open balance is now 60.00" in str(excinfo.value)

    def test_allocation_logged(
        self, allocation_service, posted_invoice, create_payment, captured_logs
    ):
        posted_invoice("INV-0001", "100.00")
        payment = create_payment("100.00")

        allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        applied = [r for r in captured_logs() if r["message"] == "allocation_applied"]
        assert applied[-1]["total_allocated"] == "100.00"
        assert applied[-1]["payment_id"] == str(payment.id)


class TestAllocationAfterReversal:
    def test_invoice_reopened_by_reversal_is_allocatable(
        self,
        allocation_service,
        refund_service,
        posted_invoice,
        create_payment,
        tenant_id,
        partner_id,
        test_actor_id,
    ):
        invoice = posted_invoice("INV-0001", "100.00")
        first = create_payment("50.00")
        allocation_service.apply_allocation(first.id, AllocationStrategy.FIFO)
        second = create_payment("49.80")
        settled = allocation_service.apply_allocation(second.id, AllocationStrategy.FIFO)
        assert settled.total_writeoff == Decimal("0.20")
        assert invoice.status == DocumentStatus.PAID

        refund_service.reverse_payment(first, "bounced", test_actor_id)
        assert invoice.status == DocumentStatus.POSTED
        assert invoice.balance_due == Decimal("50.00")

        plan = allocation_service.preview_allocation(
            tenant_id, partner_id, Decimal("50.00"), AllocationStrategy.FIFO
        )
        assert [a.invoice_balance for a in plan.allocations] == [Decimal("50.00")]

        third = create_payment("50.00")
        result = allocation_service.apply_allocation(third.id, AllocationStrategy.FIFO)

        assert result.total_allocated == Decimal("50.00")
        assert invoice.balance_due == Decimal("0.00")
        assert invoice.status == DocumentStatus.PAID

    def test_fully_paid_invoice_is_not_offered(
        self, allocation_service, posted_invoice, create_payment, tenant_id, partner_id
    ):
        posted_invoice("INV-0001", "100.00")
        payment = create_payment("99.80")
        allocation_service.apply_allocation(payment.id, AllocationStrategy.FIFO)

        assert allocation_service.get_open_invoices(tenant_id, partner_id) == []
