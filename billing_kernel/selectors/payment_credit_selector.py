"""
Module: billing_kernel.selectors.payment_credit_selector
Responsibility: Read-only payment credit queries for numbering and ledgers.
Architecture position: Kernel > Selectors.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from billing_kernel.db.types import ZERO
from billing_kernel.models.payment_credit import PaymentCredit
from billing_kernel.selectors.base import BaseSelector


class PaymentCreditSelector(BaseSelector[PaymentCredit]):
    """Selector for payment credit reads."""

    def find_max_credit_number_in_range(self, start_date: date, end_date: date) -> int:
        """Highest credit number dated within [start_date, end_date], else 0."""
        value = self.session.execute(
            select(func.max(PaymentCredit.credit_number)).where(
                PaymentCredit.credit_date >= start_date,
                PaymentCredit.credit_date <= end_date,
            )
        ).scalar_one_or_none()
        return int(value) if value is not None else 0

    def find_for_business_in_range(
        self,
        business_id: UUID,
        start_date: date,
        end_date: date,
    ) -> list[PaymentCredit]:
        """Credits attributed to a business within [start_date, end_date]."""
        return list(
            self.session.execute(
                select(PaymentCredit)
                .where(
                    PaymentCredit.business_id == business_id,
                    PaymentCredit.credit_date >= start_date,
                    PaymentCredit.credit_date <= end_date,
                )
                .order_by(
                    PaymentCredit.credit_date,
                    PaymentCredit.credit_number,
                )
            )
            .unique()
            .scalars()
        )

    def sum_for_business_before(self, business_id: UUID, before: date) -> Decimal:
        """Total credited by a business strictly before ``before``."""
        total = self.session.execute(
            select(func.coalesce(func.sum(PaymentCredit.credit_amount), 0)).where(
                PaymentCredit.business_id == business_id,
                PaymentCredit.credit_date < before,
            )
        ).scalar_one()
        return Decimal(total) if total is not None else ZERO
