"""
Typed exception hierarchy for the ledger kernel.

Every error raised by the kernel is a subclass of LedgerKernelError and
carries a machine-readable ``code`` plus the structured data that caused
it. Callers catch by type and read attributes, never parse messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError
    |   +-- UnbalancedEntryError
    |   +-- InvalidLineError
    |   +-- EntryNotDraftError
    |   +-- InvalidAmountError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- SystemAccountNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- DomainRuleError
    |   +-- DocumentNotPostableError
    |   +-- AllocationExceedsBalanceError
    |   +-- ToleranceDisabledError
    |   +-- PaymentNotRefundableError
    |   +-- PaymentAlreadyReversedError
    |   +-- EntryNotPostedError
    |   +-- EntryAlreadyReversedError
    |
    +-- ChainIntegrityError
    |   +-- ChainBrokenError
    |
    +-- ConcurrencyError
    |   +-- ChainLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|----------------------------------------
Validation   | UNBALANCED_ENTRY              | Debits != credits, or fewer than 2 lines
             | INVALID_LINE                  | Line has both or neither debit/credit
             | ENTRY_NOT_DRAFT               | Posting an entry that is not draft
             | INVALID_AMOUNT                | Non-positive or out-of-range amount
-------------|-------------------------------|----------------------------------------
Not found    | ACCOUNT_NOT_FOUND             | Account id does not exist
             | SYSTEM_ACCOUNT_NOT_FOUND      | No active account holds a purpose
             | DOCUMENT_NOT_FOUND            | Document id does not exist
             | PAYMENT_NOT_FOUND             | Payment id does not exist
-------------|-------------------------------|----------------------------------------
Domain rule  | DOCUMENT_NOT_POSTABLE         | Wrong document type or status
             | ALLOCATION_EXCEEDS_BALANCE    | Allocation larger than open balance
             | TOLERANCE_DISABLED            | Write-off requested while disabled
             | PAYMENT_NOT_REFUNDABLE        | Refund of a non-completed payment
             | PAYMENT_ALREADY_REVERSED      | Reversal of a reversed payment
             | ENTRY_NOT_POSTED              | Reversing an unposted entry
             | ENTRY_ALREADY_REVERSED        | Reversing an entry twice
-------------|-------------------------------|----------------------------------------
Chain        | CHAIN_BROKEN                  | Verification found a bad link
-------------|-------------------------------|----------------------------------------
Concurrency  | CHAIN_LOCK_FAILED             | Chain head could not be locked
-------------|-------------------------------|----------------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Edit/delete of posted journal data

Failure handling: validation and domain-rule errors are final (fix the
input); concurrency errors are transient and may be retried by the caller;
chain errors are reported and never auto-corrected.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation


class ValidationError(LedgerKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, line_count: int):
        self.debits = debits
        self.credits = credits
        self.line_count = line_count
        super().__init__(
            f"Unbalanced entry ({line_count} lines): "
            f"debits={debits}, credits={credits}"
        )


class InvalidLineError(ValidationError):
    """A journal line has both or neither of debit and credit set."""

    code: str = "INVALID_LINE"

    def __init__(self, line_index: int, debit: str, credit: str):
        self.line_index = line_index
        self.debit = debit
        self.credit = credit
        super().__init__(
            f"Line {line_index} must have exactly one of debit/credit: "
            f"debit={debit}, credit={credit}"
        )


class EntryNotDraftError(ValidationError):
    """Only draft entries can be posted."""

    code: str = "ENTRY_NOT_DRAFT"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Only draft entries can be posted: entry {entry_id} is {status}"
        )


class InvalidAmountError(ValidationError):
    """An amount is outside its permitted range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


# Not found


class NotFoundError(LedgerKernelError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Account with given ID was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class SystemAccountNotFoundError(NotFoundError):
    """No active account holds the requested system purpose."""

    code: str = "SYSTEM_ACCOUNT_NOT_FOUND"

    def __init__(self, tenant_id: str, purpose: str):
        self.tenant_id = tenant_id
        self.purpose = purpose
        super().__init__(
            f"No active account with system purpose '{purpose}' "
            f"for tenant {tenant_id}"
        )


class DocumentNotFoundError(NotFoundError):
    """Document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


# Domain rules


class DomainRuleError(LedgerKernelError):
    """Base exception for business-rule rejections."""

    code: str = "DOMAIN_RULE_VIOLATION"


class DocumentNotPostableError(DomainRuleError):
    """Document type or status does not allow posting."""

    code: str = "DOCUMENT_NOT_POSTABLE"

    def __init__(self, document_id: str, reason: str):
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Document {document_id} cannot be posted: {reason}")


class AllocationExceedsBalanceError(DomainRuleError):
    """An allocation exceeds the open balance, or the balance moved since planning."""

    code: str = "ALLOCATION_EXCEEDS_BALANCE"

    def __init__(
        self,
        target_id: str,
        requested: str,
        available: str,
        planned_balance: str | None = None,
    ):
        self.target_id = target_id
        self.requested = requested
        self.available = available
        self.planned_balance = planned_balance
        if planned_balance is not None and planned_balance != available:
            message = (
                f"Allocation of {requested} on {target_id} was planned against "
                f"balance {planned_balance}, but the open balance is now {available}"
            )
        else:
            message = (
                f"Allocation of {requested} exceeds available balance "
                f"{available} on {target_id}"
            )
        super().__init__(message)


class ToleranceDisabledError(DomainRuleError):
    """A tolerance write-off was requested while tolerance is disabled."""

    code: str = "TOLERANCE_DISABLED"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Payment tolerance is disabled for tenant {tenant_id}")


class PaymentNotRefundableError(DomainRuleError):
    """Only completed payments can be refunded."""

    code: str = "PAYMENT_NOT_REFUNDABLE"

    def __init__(self, payment_id: str, status: str):
        self.payment_id = payment_id
        self.status = status
        super().__init__(
            f"Only completed payments can be refunded: "
            f"payment {payment_id} is {status}"
        )


class PaymentAlreadyReversedError(DomainRuleError):
    """Payment has already been reversed."""

    code: str = "PAYMENT_ALREADY_REVERSED"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} is already reversed")


class EntryNotPostedError(DomainRuleError):
    """Cannot reverse an entry that is not posted."""

    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Cannot reverse entry {entry_id}: status is {status}, not posted"
        )


class EntryAlreadyReversedError(DomainRuleError):
    """Entry has already been reversed."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry {entry_id} has already been reversed")


# Chain integrity


class ChainIntegrityError(LedgerKernelError):
    """Base exception for hash chain problems."""

    code: str = "CHAIN_INTEGRITY_ERROR"


class ChainBrokenError(ChainIntegrityError):
    """Hash chain verification failed."""

    code: str = "CHAIN_BROKEN"

    def __init__(self, chain_type: str, position: int, record_id: str, reason: str):
        self.chain_type = chain_type
        self.position = position
        self.record_id = record_id
        self.reason = reason
        super().__init__(
            f"Chain {chain_type} broken at sequence {position} "
            f"(record {record_id}): {reason}"
        )


# Concurrency


class ConcurrencyError(LedgerKernelError):
    """Base exception for transient concurrency failures."""

    code: str = "CONCURRENCY_ERROR"


class ChainLockError(ConcurrencyError):
    """The chain head row could not be created or locked."""

    code: str = "CHAIN_LOCK_FAILED"

    def __init__(self, tenant_id: str, chain_type: str):
        self.tenant_id = tenant_id
        self.chain_type = chain_type
        super().__init__(
            f"Could not lock chain {chain_type} for tenant {tenant_id}"
        )


# Immutability


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Posted journal entries and their lines are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
