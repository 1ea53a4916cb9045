"""Write services for the billing kernel."""

from billing_kernel.services.business_service import (
    BankAccountInfo,
    BusinessInfo,
    BusinessService,
)
from billing_kernel.services.expense_service import (
    ExpenseInfo,
    ExpenseLineRequest,
    ExpenseService,
)
from billing_kernel.services.invoice_service import InvoiceInfo, InvoiceService
from billing_kernel.services.payment_allocation_service import (
    AllocationRequest,
    PaymentAllocationService,
    PaymentCreditInfo,
)
from billing_kernel.services.sequence_allocator import SequenceAllocator
from billing_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = [
    "AllocationRequest",
    "BankAccountInfo",
    "BusinessInfo",
    "BusinessService",
    "ExpenseInfo",
    "ExpenseLineRequest",
    "ExpenseService",
    "InvoiceInfo",
    "InvoiceService",
    "PaymentAllocationService",
    "PaymentCreditInfo",
    "SequenceAllocator",
    "SequenceCounter",
    "SequenceService",
]
