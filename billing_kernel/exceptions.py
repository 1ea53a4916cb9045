"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, batch scripts) must be able to react to a failure
without parsing its message:

    try:
        service.allocate_payment(...)
    except InvoiceNotFoundError as e:
        return {"error": e.code, "invoice_id": e.invoice_id}, 404
    except ValidationError as e:
        return {"error": e.code, "message": str(e)}, 400
    except StorageError as e:
        return {"error": e.code}, 503

Every exception class carries a ``code`` class attribute (machine-readable,
API-safe) and stores its context as attributes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- ValidationError
    |   +-- NonPositiveAmountError
    |   +-- EmptyAllocationError
    |   +-- InvalidDateError
    |   +-- InvalidDateRangeError
    |   +-- InvalidScopeError
    |   +-- InvalidTaxIdError
    |   +-- ExpenseRuleError
    |
    +-- NotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- BusinessNotFoundError
    |   +-- BankAccountNotFoundError
    |
    +-- ConsistencyError
    |   +-- AllocationMismatchError
    |   +-- DuplicateBusinessError
    |
    +-- StorageError
    |
    +-- ConcurrencyError
        +-- SequenceCollisionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|-------------------------------------------
Validation   | NON_POSITIVE_AMOUNT      | Payment or line amount <= 0
             | EMPTY_ALLOCATION         | Payment credit with no allocation lines
             | INVALID_DATE             | Date argument is not a date
             | INVALID_DATE_RANGE       | Ledger start date after end date
             | INVALID_SCOPE            | Unknown sequence scope key
             | INVALID_TAX_ID           | GSTIN fails format validation
             | EXPENSE_RULE_VIOLATION   | Cash limit, cheque number, paid-on window
-------------|--------------------------|-------------------------------------------
Not found    | INVOICE_NOT_FOUND        | Invoice id doesn't exist
             | BUSINESS_NOT_FOUND       | Business id doesn't exist
             | BANK_ACCOUNT_NOT_FOUND   | Bank account id doesn't exist
-------------|--------------------------|-------------------------------------------
Consistency  | ALLOCATION_MISMATCH      | Lines don't sum to the credited amount
             | DUPLICATE_BUSINESS       | GSTIN already registered
-------------|--------------------------|-------------------------------------------
Storage      | STORAGE_ERROR            | Database/network fault (after rollback)
-------------|--------------------------|-------------------------------------------
Concurrency  | SEQUENCE_COLLISION       | Unique constraint on an issued number hit

===============================================================================
"""

from datetime import date
from decimal import Decimal


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Validation


class ValidationError(BillingKernelError):
    """Malformed or missing required input."""

    code: str = "VALIDATION_ERROR"


class NonPositiveAmountError(ValidationError):
    """An amount that must be strictly positive was zero or negative."""

    code: str = "NON_POSITIVE_AMOUNT"

    def __init__(self, field: str, amount: Decimal):
        self.field = field
        self.amount = str(amount)
        super().__init__(f"{field} must be greater than zero, got {amount}")


class EmptyAllocationError(ValidationError):
    """A payment credit was submitted without any allocation lines."""

    code: str = "EMPTY_ALLOCATION"

    def __init__(self):
        super().__init__("At least one invoice allocation is required")


class InvalidDateError(ValidationError):
    """A date argument is missing or not a date."""

    code: str = "INVALID_DATE"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = repr(value)
        super().__init__(f"{field} must be a date, got {value!r}")


class InvalidDateRangeError(ValidationError):
    """Start date falls after end date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date.isoformat()
        self.end_date = end_date.isoformat()
        super().__init__(
            f"Start date {self.start_date} is after end date {self.end_date}"
        )


class InvalidScopeError(ValidationError):
    """Sequence scope key is not one of the known scopes."""

    code: str = "INVALID_SCOPE"

    def __init__(self, scope_key: str):
        self.scope_key = scope_key
        super().__init__(f"Unknown sequence scope: {scope_key!r}")


class InvalidTaxIdError(ValidationError):
    """GSTIN does not match the expected 15-character format."""

    code: str = "INVALID_TAX_ID"

    def __init__(self, tax_id: str):
        self.tax_id = tax_id
        super().__init__(f"Invalid GST number: {tax_id!r}")


class ExpenseRuleError(ValidationError):
    """Expense violates a payment-method or date rule."""

    code: str = "EXPENSE_RULE_VIOLATION"

    def __init__(self, rule: str, message: str):
        self.rule = rule
        super().__init__(message)


# Not found


class NotFoundError(BillingKernelError):
    """A referenced record does not exist."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class BusinessNotFoundError(NotFoundError):
    """Business with given ID was not found."""

    code: str = "BUSINESS_NOT_FOUND"

    def __init__(self, business_id: str):
        self.business_id = business_id
        super().__init__(f"Business not found: {business_id}")


class BankAccountNotFoundError(NotFoundError):
    """Bank account with given ID was not found."""

    code: str = "BANK_ACCOUNT_NOT_FOUND"

    def __init__(self, bank_account_id: str):
        self.bank_account_id = bank_account_id
        super().__init__(f"Bank account not found: {bank_account_id}")


# Consistency


class ConsistencyError(BillingKernelError):
    """Input or stored state contradicts a cross-record invariant."""

    code: str = "CONSISTENCY_ERROR"


class AllocationMismatchError(ConsistencyError):
    """Allocation lines do not sum to the credited amount."""

    code: str = "ALLOCATION_MISMATCH"

    def __init__(self, credit_amount: Decimal, allocated_total: Decimal):
        self.credit_amount = str(credit_amount)
        self.allocated_total = str(allocated_total)
        super().__init__(
            f"Allocated total {allocated_total} does not match "
            f"credit amount {credit_amount}"
        )


class DuplicateBusinessError(ConsistencyError):
    """A business with the same GSTIN already exists."""

    code: str = "DUPLICATE_BUSINESS"

    def __init__(self, gst_number: str):
        self.gst_number = gst_number
        super().__init__(f"Business with GST number {gst_number} already exists")


# Storage


class StorageError(BillingKernelError):
    """
    The database call failed.

    Raised after the unit of work has been rolled back; the underlying
    SQLAlchemy exception is chained as ``__cause__``.
    """

    code: str = "STORAGE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


# Concurrency


class ConcurrencyError(BillingKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class SequenceCollisionError(ConcurrencyError):
    """
    An issued number collided with an existing row.

    The counter row lock makes this unreachable under normal operation;
    the unique constraints turn any slip into this error instead of a
    duplicate number.
    """

    code: str = "SEQUENCE_COLLISION"

    def __init__(self, sequence_name: str, value: str):
        self.sequence_name = sequence_name
        self.value = value
        super().__init__(
            f"Number {value} already issued for sequence {sequence_name}"
        )
