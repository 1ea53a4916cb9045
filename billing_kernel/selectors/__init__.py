"""Read-only selectors for the billing kernel."""

from billing_kernel.selectors.expense_selector import ExpenseSelector
from billing_kernel.selectors.invoice_selector import InvoiceSelector
from billing_kernel.selectors.ledger_selector import (
    LedgerEntry,
    LedgerSelector,
    LedgerStatement,
)
from billing_kernel.selectors.payment_credit_selector import PaymentCreditSelector

__all__ = [
    "ExpenseSelector",
    "InvoiceSelector",
    "LedgerEntry",
    "LedgerSelector",
    "LedgerStatement",
    "PaymentCreditSelector",
]
