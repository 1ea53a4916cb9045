"""
Module: billing_kernel.selectors.invoice_selector
Responsibility: Read-only invoice queries: lookup by id, the highest number
    issued in a (type, financial year) scope, and the per-business reads the
    ledger needs.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Invoice numbers are compared by their parsed numeric suffix, never as
      strings ("B2B/2024-25/10" > "B2B/2024-25/9").
    - find_for_business_in_range orders by (invoice_date, created_at,
      invoice_number) so ledger output is deterministic.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from billing_kernel.db.types import ZERO
from billing_kernel.domain.financial_year import FinancialYear
from billing_kernel.models.invoice import Invoice, InvoiceType
from billing_kernel.selectors.base import BaseSelector


def invoice_number_scope(invoice_type: InvoiceType, financial_year: FinancialYear) -> str:
    """Number prefix shared by every invoice of a type in a financial year."""
    return f"{invoice_type.number_prefix}/{financial_year.label}/"


def parse_sequence_suffix(number: str, prefix: str) -> int | None:
    """Numeric tail of ``number`` after ``prefix``; None if it isn't numeric."""
    if not number.startswith(prefix):
        return None
    tail = number[len(prefix):]
    return int(tail) if tail.isdigit() else None


class InvoiceSelector(BaseSelector[Invoice]):
    """Selector for invoice reads."""

    def find_by_id(self, invoice_id: UUID) -> Invoice | None:
        return self.session.get(Invoice, invoice_id)

    def find_max_invoice_number_in_scope(
        self,
        invoice_type: InvoiceType,
        financial_year: FinancialYear,
    ) -> int:
        """
        Highest sequence number already used by ``invoice_type`` invoices in
        ``financial_year``.

        Returns:
            The largest numeric suffix, or 0 when the scope is empty.
        """
        prefix = invoice_number_scope(invoice_type, financial_year)
        numbers = self.session.execute(
            select(Invoice.invoice_number).where(
                Invoice.invoice_number.startswith(prefix, autoescape=True)
            )
        ).scalars()

        highest = 0
        for number in numbers:
            value = parse_sequence_suffix(number, prefix)
            if value is not None and value > highest:
                highest = value
        return highest

    def find_for_business_in_range(
        self,
        business_id: UUID,
        start_date: date,
        end_date: date,
    ) -> list[Invoice]:
        """Invoices of a business dated within [start_date, end_date]."""
        return list(
            self.session.execute(
                select(Invoice)
                .where(
                    Invoice.business_id == business_id,
                    Invoice.invoice_date >= start_date,
                    Invoice.invoice_date <= end_date,
                )
                .order_by(
                    Invoice.invoice_date,
                    Invoice.created_at,
                    Invoice.invoice_number,
                )
            ).scalars()
        )

    def sum_for_business_before(self, business_id: UUID, before: date) -> Decimal:
        """
        Total invoiced to a business strictly before ``before``.

        Each invoice counts at its rounded amount, or its grand total when
        no rounded amount was stored.
        """
        total = self.session.execute(
            select(
                func.coalesce(
                    func.sum(func.coalesce(Invoice.rounded_amount, Invoice.grand_total)),
                    0,
                )
            ).where(
                Invoice.business_id == business_id,
                Invoice.invoice_date < before,
            )
        ).scalar_one()
        return Decimal(total) if total is not None else ZERO
