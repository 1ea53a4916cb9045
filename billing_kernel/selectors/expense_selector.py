"""
Module: billing_kernel.selectors.expense_selector
Responsibility: Read-only expense voucher queries.
Architecture position: Kernel > Selectors.
"""

from sqlalchemy import select

from billing_kernel.models.expense import Expense
from billing_kernel.selectors.base import BaseSelector
from billing_kernel.selectors.invoice_selector import parse_sequence_suffix


class ExpenseSelector(BaseSelector[Expense]):
    """Selector for expense reads."""

    def find_by_vcr_number(self, vcr_number: str) -> Expense | None:
        return self.session.execute(
            select(Expense).where(Expense.vcr_number == vcr_number)
        ).scalar_one_or_none()

    def find_max_voucher_number_with_prefix(self, prefix: str) -> int:
        """
        Highest voucher sequence among numbers starting with ``prefix``.

        Voucher numbers are the six-character financial-year prefix followed
        directly by the sequence (``2024257``), so the suffix is parsed
        numerically.  Returns 0 when no voucher uses the prefix.
        """
        numbers = self.session.execute(
            select(Expense.vcr_number).where(
                Expense.vcr_number.startswith(prefix, autoescape=True)
            )
        ).scalars()

        highest = 0
        for number in numbers:
            value = parse_sequence_suffix(number, prefix)
            if value is not None and value > highest:
                highest = value
        return highest
