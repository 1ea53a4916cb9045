"""Domain models for the billing kernel."""

from billing_kernel.models.business import BankAccount, Business
from billing_kernel.models.expense import Expense, ExpenseInvoice, PaymentMethod
from billing_kernel.models.invoice import Invoice, InvoiceType
from billing_kernel.models.payment_credit import (
    InvoiceCredit,
    PartialPayment,
    PaymentCredit,
)

__all__ = [
    "Business",
    "BankAccount",
    "Invoice",
    "InvoiceType",
    "PaymentCredit",
    "InvoiceCredit",
    "PartialPayment",
    "Expense",
    "ExpenseInvoice",
    "PaymentMethod",
]
