"""
Service layer for expense vouchers.

Validates an expense against the payment-method and date rules, issues its
voucher number from the paid-on date, and stores it with the vendor bills
it settles.

Rules:
    - At least one vendor bill line, each with a positive amount.
    - CASH: total strictly below the configured cash limit (2000 by default).
    - CHEQUE: a cheque number is required.
    - The paid-on date may not be in the future, nor further back than the
      configured window (365 days by default).  "Today" comes from the
      injected Clock.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.config import BillingRules
from billing_kernel.db.types import ZERO
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.financial_year import FinancialYear
from billing_kernel.domain.validation import require_date, require_positive_amount
from billing_kernel.exceptions import (
    ExpenseRuleError,
    SequenceCollisionError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.expense import Expense, ExpenseInvoice, PaymentMethod
from billing_kernel.services.base import BaseService
from billing_kernel.services.sequence_allocator import SequenceAllocator

logger = get_logger("services.expense")


@dataclass(frozen=True)
class ExpenseLineRequest:
    amount: Decimal | int | str
    invoice_number: str | None = None
    invoice_date: date | None = None
    expense_category: str | None = None
    vendor_name: str | None = None


@dataclass(frozen=True)
class ExpenseLineInfo:
    invoice_number: str | None
    invoice_date: date | None
    expense_category: str | None
    vendor_name: str | None
    amount: Decimal


@dataclass(frozen=True)
class ExpenseInfo:
    """Immutable DTO for a stored expense voucher."""

    id: UUID
    vcr_number: str
    expense_type: str
    payment_method: PaymentMethod
    cheque_number: str | None
    paid_on: date
    total_amount: Decimal
    lines: tuple[ExpenseLineInfo, ...]


class ExpenseService(BaseService[Expense]):
    """Service for recording expense vouchers."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        rules: BillingRules | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._clock = clock or SystemClock()
        self._rules = rules or BillingRules()
        self._allocator = SequenceAllocator(session)

    def record_expense(
        self,
        expense_type: str,
        payment_method: PaymentMethod | str,
        paid_on: date | datetime,
        lines: Sequence[ExpenseLineRequest],
        cheque_number: str | None = None,
    ) -> ExpenseInfo:
        """
        Validate and store an expense voucher.

        Raises:
            ValidationError: Missing type, unknown method, no lines or a
                non-positive line amount.
            ExpenseRuleError: A payment-method or date rule is violated.
            SequenceCollisionError: If the voucher number is already taken.
        """
        if not expense_type or not expense_type.strip():
            raise ValidationError("expense_type is required")
        try:
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError(f"Unknown payment method: {payment_method!r}") from exc
        day = require_date("paid_on", paid_on)
        if not lines:
            raise ValidationError("At least one expense invoice line is required")

        amounts = [
            require_positive_amount(f"lines[{index}].amount", line.amount)
            for index, line in enumerate(lines)
        ]
        total = sum(amounts, ZERO)
        cheque = cheque_number.strip() if cheque_number else None

        self._check_rules(method, total, cheque, day)

        vcr_number = None
        try:
            with self.unit_of_work("record_expense"):
                vcr_number = self._allocator.next_voucher_number(day)
                expense = Expense(
                    vcr_number=vcr_number,
                    expense_type=expense_type.strip(),
                    payment_method=method.value,
                    cheque_number=cheque if method is PaymentMethod.CHEQUE else None,
                    paid_on=day,
                    total_amount=total,
                )
                for line, amount in zip(lines, amounts):
                    expense.invoices.append(
                        ExpenseInvoice(
                            invoice_number=line.invoice_number,
                            invoice_date=line.invoice_date,
                            expense_category=line.expense_category,
                            vendor_name=line.vendor_name,
                            amount=amount,
                        )
                    )
                self.session.add(expense)
                self.session.flush()
                result = self._to_dto(expense, lines, amounts)
        except IntegrityError as exc:
            raise SequenceCollisionError(
                f"voucher:{FinancialYear.containing(day).voucher_prefix}",
                str(vcr_number),
            ) from exc

        logger.info(
            "expense_recorded",
            extra={
                "expense_id": str(result.id),
                "vcr_number": result.vcr_number,
                "payment_method": method.value,
                "total_amount": total,
            },
        )
        return result

    def preview_voucher_number(self, paid_on: date | datetime | None = None) -> str:
        """Voucher number the next expense paid on ``paid_on`` (default today) gets."""
        return self._allocator.preview_voucher_number(paid_on or self._clock.today())

    def _check_rules(
        self,
        method: PaymentMethod,
        total: Decimal,
        cheque_number: str | None,
        paid_on: date,
    ) -> None:
        if method is PaymentMethod.CASH and total >= self._rules.cash_expense_limit:
            raise ExpenseRuleError(
                "cash_limit",
                f"Cash expenses must total less than {self._rules.cash_expense_limit}, "
                f"got {total}",
            )
        if method is PaymentMethod.CHEQUE and not cheque_number:
            raise ExpenseRuleError(
                "cheque_number_required",
                "Cheque number is required for cheque payments",
            )

        today = self._clock.today()
        if paid_on > today:
            raise ExpenseRuleError(
                "paid_on_in_future",
                f"Paid-on date {paid_on.isoformat()} is in the future",
            )
        earliest = today - timedelta(days=self._rules.expense_backdate_days)
        if paid_on < earliest:
            raise ExpenseRuleError(
                "paid_on_too_old",
                f"Paid-on date {paid_on.isoformat()} is more than "
                f"{self._rules.expense_backdate_days} days in the past",
            )

    def _to_dto(
        self,
        expense: Expense,
        lines: Sequence[ExpenseLineRequest],
        amounts: list[Decimal],
    ) -> ExpenseInfo:
        return ExpenseInfo(
            id=expense.id,
            vcr_number=expense.vcr_number,
            expense_type=expense.expense_type,
            payment_method=PaymentMethod(expense.payment_method),
            cheque_number=expense.cheque_number,
            paid_on=expense.paid_on,
            total_amount=expense.total_amount,
            lines=tuple(
                ExpenseLineInfo(
                    invoice_number=line.invoice_number,
                    invoice_date=line.invoice_date,
                    expense_category=line.expense_category,
                    vendor_name=line.vendor_name,
                    amount=amount,
                )
                for line, amount in zip(lines, amounts)
            ),
        )
