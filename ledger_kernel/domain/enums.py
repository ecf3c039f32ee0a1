"""
Closed enumerations for ledger state and classification.

Every status and tag in the kernel is one of these ``str`` enums, so the
database stores a readable value while code matches on a closed set.
"""

from enum import Enum


class AccountType(str, Enum):
    """Account classification; determines the normal balance side."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> "NormalBalance":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class SystemAccountPurpose(str, Enum):
    """
    Role an account plays for system-generated postings.

    Postings look accounts up by purpose, never by code, so the ledger works
    with any chart of accounts.  At most one account per tenant holds a
    given purpose.
    """

    # Assets
    BANK = "bank"
    CASH = "cash"
    CUSTOMER_RECEIVABLE = "customer_receivable"
    SUPPLIER_ADVANCE = "supplier_advance"
    INVENTORY = "inventory"

    # Liabilities
    SUPPLIER_PAYABLE = "supplier_payable"
    CUSTOMER_ADVANCE = "customer_advance"
    VAT_COLLECTED = "vat_collected"
    VAT_DEDUCTIBLE = "vat_deductible"

    # Revenue
    PRODUCT_REVENUE = "product_revenue"
    SERVICE_REVENUE = "service_revenue"

    # Expenses
    COST_OF_GOODS_SOLD = "cost_of_goods_sold"
    PURCHASE_EXPENSES = "purchase_expenses"

    # Equity
    RETAINED_EARNINGS = "retained_earnings"
    OPENING_BALANCE_EQUITY = "opening_balance_equity"

    # Payment tolerance
    PAYMENT_TOLERANCE_EXPENSE = "payment_tolerance_expense"
    PAYMENT_TOLERANCE_INCOME = "payment_tolerance_income"

    SALES_RETURN = "sales_return"
    REALIZED_FX_GAIN = "realized_fx_gain"
    REALIZED_FX_LOSS = "realized_fx_loss"
    SALES_DISCOUNT = "sales_discount"

    @property
    def label(self) -> str:
        return _PURPOSE_LABELS[self]

    @property
    def expected_account_type(self) -> AccountType:
        return _PURPOSE_ACCOUNT_TYPES[self]

    @classmethod
    def required(cls) -> tuple["SystemAccountPurpose", ...]:
        """Purposes that must be assigned before GL operations can run."""
        return (
            cls.CUSTOMER_RECEIVABLE,
            cls.CUSTOMER_ADVANCE,
            cls.SUPPLIER_PAYABLE,
            cls.SUPPLIER_ADVANCE,
            cls.VAT_COLLECTED,
            cls.VAT_DEDUCTIBLE,
            cls.PRODUCT_REVENUE,
            cls.SERVICE_REVENUE,
            cls.BANK,
            cls.CASH,
        )


_P = SystemAccountPurpose

_PURPOSE_LABELS: dict[SystemAccountPurpose, str] = {
    _P.BANK: "Bank Account",
    _P.CASH: "Cash Account",
    _P.CUSTOMER_RECEIVABLE: "Customer Receivable (AR)",
    _P.SUPPLIER_ADVANCE: "Advance to Supplier",
    _P.INVENTORY: "Inventory",
    _P.SUPPLIER_PAYABLE: "Supplier Payable (AP)",
    _P.CUSTOMER_ADVANCE: "Customer Advance/Prepayment",
    _P.VAT_COLLECTED: "VAT Collected (Output)",
    _P.VAT_DEDUCTIBLE: "VAT Deductible (Input)",
    _P.PRODUCT_REVENUE: "Product Sales Revenue",
    _P.SERVICE_REVENUE: "Service Revenue",
    _P.COST_OF_GOODS_SOLD: "Cost of Goods Sold",
    _P.PURCHASE_EXPENSES: "Purchase Expenses",
    _P.RETAINED_EARNINGS: "Retained Earnings",
    _P.OPENING_BALANCE_EQUITY: "Opening Balance Equity",
    _P.PAYMENT_TOLERANCE_EXPENSE: "Payment Tolerance Expense",
    _P.PAYMENT_TOLERANCE_INCOME: "Payment Tolerance Income",
    _P.SALES_RETURN: "Sales Return",
    _P.REALIZED_FX_GAIN: "Realized FX Gain",
    _P.REALIZED_FX_LOSS: "Realized FX Loss",
    _P.SALES_DISCOUNT: "Sales Discount",
}

_PURPOSE_ACCOUNT_TYPES: dict[SystemAccountPurpose, AccountType] = {
    _P.BANK: AccountType.ASSET,
    _P.CASH: AccountType.ASSET,
    _P.CUSTOMER_RECEIVABLE: AccountType.ASSET,
    _P.SUPPLIER_ADVANCE: AccountType.ASSET,
    _P.INVENTORY: AccountType.ASSET,
    _P.VAT_DEDUCTIBLE: AccountType.ASSET,
    _P.SUPPLIER_PAYABLE: AccountType.LIABILITY,
    _P.CUSTOMER_ADVANCE: AccountType.LIABILITY,
    _P.VAT_COLLECTED: AccountType.LIABILITY,
    _P.PRODUCT_REVENUE: AccountType.REVENUE,
    _P.SERVICE_REVENUE: AccountType.REVENUE,
    _P.PAYMENT_TOLERANCE_INCOME: AccountType.REVENUE,
    _P.REALIZED_FX_GAIN: AccountType.REVENUE,
    _P.COST_OF_GOODS_SOLD: AccountType.EXPENSE,
    _P.PURCHASE_EXPENSES: AccountType.EXPENSE,
    _P.PAYMENT_TOLERANCE_EXPENSE: AccountType.EXPENSE,
    _P.SALES_RETURN: AccountType.EXPENSE,
    _P.REALIZED_FX_LOSS: AccountType.EXPENSE,
    _P.SALES_DISCOUNT: AccountType.EXPENSE,
    _P.RETAINED_EARNINGS: AccountType.EQUITY,
    _P.OPENING_BALANCE_EQUITY: AccountType.EQUITY,
}


class JournalEntryStatus(str, Enum):
    """Draft is the only mutable state; posted and reversed are stable."""

    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


class DocumentType(str, Enum):
    INVOICE = "invoice"
    CREDIT_NOTE = "credit_note"
    SUPPLIER_INVOICE = "supplier_invoice"
    QUOTE = "quote"

    @classmethod
    def fiscal_types(cls) -> tuple["DocumentType", ...]:
        """Document types that carry a fiscal hash chain."""
        return (cls.INVOICE, cls.CREDIT_NOTE)


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    COMPLETED = "completed"
    REVERSED = "reversed"
    FAILED = "failed"


class PaymentType(str, Enum):
    RECEIPT = "receipt"
    ADVANCE = "advance"
    REFUND = "refund"


class PaymentMethod(str, Enum):
    """Where the money landed; selects the bank or cash account."""

    BANK = "bank"
    CASH = "cash"

    @property
    def account_purpose(self) -> SystemAccountPurpose:
        if self is PaymentMethod.CASH:
            return SystemAccountPurpose.CASH
        return SystemAccountPurpose.BANK


class AllocationStrategy(str, Enum):
    FIFO = "fifo"
    DUE_DATE_PRIORITY = "due_date"
    MANUAL = "manual"


class ToleranceType(str, Enum):
    OVERPAYMENT = "overpayment"
    UNDERPAYMENT = "underpayment"


class ExcessHandling(str, Enum):
    TOLERANCE_WRITEOFF = "tolerance_writeoff"
    CREDIT_BALANCE = "credit_balance"


class ToleranceSource(str, Enum):
    COMPANY = "company"
    COUNTRY = "country"
    SYSTEM_DEFAULT = "system_default"


class ChainFailureKind(str, Enum):
    """Why a chain failed verification."""

    BROKEN_LINK = "broken_link"  # previous_hash != prior record's hash
    HASH_MISMATCH = "hash_mismatch"  # stored hash != recomputed hash
