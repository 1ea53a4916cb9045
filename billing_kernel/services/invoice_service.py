"""
Service layer for Invoice operations.

Creates invoices with a freshly issued number and keeps the derived
financial fields (rounded amount, rounded difference, balance and the
paid/partial flags) consistent when an invoice is edited.

Returns InvoiceInfo DTOs instead of ORM entities.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.config import BillingRules
from billing_kernel.db.types import ZERO, clamp_non_negative, round_to_unit, to_money
from billing_kernel.domain.financial_year import FinancialYear
from billing_kernel.domain.validation import require_date, require_positive_amount
from billing_kernel.exceptions import (
    BusinessNotFoundError,
    InvoiceNotFoundError,
    NonPositiveAmountError,
    SequenceCollisionError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.business import Business
from billing_kernel.models.invoice import Invoice, InvoiceType
from billing_kernel.services.base import BaseService
from billing_kernel.services.sequence_allocator import SequenceAllocator

logger = get_logger("services.invoice")


@dataclass(frozen=True)
class InvoiceInfo:
    """Immutable DTO for invoice data."""

    id: UUID
    invoice_number: str
    invoice_type: InvoiceType
    invoice_date: date
    currency: str
    business_id: UUID | None
    customer_name: str | None
    subtotal: Decimal
    total_tax: Decimal
    discount: Decimal
    grand_total: Decimal
    rounded_amount: Decimal
    rounded_difference: Decimal
    total_paid: Decimal
    balance_amount: Decimal
    paid: bool
    partial_payment: bool
    paid_on: date | None


def _non_negative(field: str, value: Decimal | int | str) -> Decimal:
    try:
        amount = to_money(value)
    except (TypeError, ArithmeticError) as exc:
        raise ValidationError(f"{field} is not a valid amount: {value!r}") from exc
    if amount < ZERO:
        raise NonPositiveAmountError(field, amount)
    return amount


def _payment_flags(rounded: Decimal, total_paid: Decimal) -> tuple[Decimal, bool, bool]:
    """(balance, paid, partial_payment) for a rounded amount and total paid."""
    balance = clamp_non_negative(rounded - total_paid)
    return balance, balance == ZERO, ZERO < total_paid < rounded


class InvoiceService(BaseService[Invoice]):
    """
    Service for invoice operations.

    Payment fields are only initialised here; afterwards they belong to
    PaymentAllocationService, except for an explicit financial edit through
    update_invoice_financials().
    """

    def __init__(
        self,
        session: Session,
        rules: BillingRules | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._rules = rules or BillingRules()
        self._allocator = SequenceAllocator(session)

    def _to_dto(self, invoice: Invoice) -> InvoiceInfo:
        rounded = invoice.payable_amount
        return InvoiceInfo(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            invoice_type=InvoiceType(invoice.invoice_type),
            invoice_date=invoice.invoice_date,
            currency=invoice.currency,
            business_id=invoice.business_id,
            customer_name=invoice.customer_name,
            subtotal=invoice.subtotal,
            total_tax=invoice.total_tax,
            discount=invoice.discount,
            grand_total=invoice.grand_total,
            rounded_amount=rounded,
            rounded_difference=(
                invoice.rounded_difference
                if invoice.rounded_difference is not None
                else rounded - invoice.grand_total
            ),
            total_paid=invoice.total_paid,
            balance_amount=invoice.effective_balance,
            paid=invoice.paid,
            partial_payment=invoice.partial_payment,
            paid_on=invoice.paid_on,
        )

    def _get_by_id(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def get_invoice(self, invoice_id: UUID) -> InvoiceInfo:
        """
        Get an invoice by ID.

        Raises:
            InvoiceNotFoundError: If the invoice doesn't exist.
        """
        return self._to_dto(self._get_by_id(invoice_id))

    def create_invoice(
        self,
        invoice_type: InvoiceType | str,
        invoice_date: date | datetime,
        grand_total: Decimal | int | str,
        business_id: UUID | None = None,
        customer_name: str | None = None,
        subtotal: Decimal | int | str | None = None,
        total_tax: Decimal | int | str = ZERO,
        discount: Decimal | int | str = ZERO,
        rounded_amount: Decimal | int | str | None = None,
        total_paid: Decimal | int | str = ZERO,
        currency: str | None = None,
    ) -> InvoiceInfo:
        """
        Create an invoice with the next number for its type and year.

        ``rounded_amount`` defaults to ``grand_total`` rounded half-up to a
        whole unit.  The balance starts at ``max(0, rounded - total_paid)``.

        Raises:
            BusinessNotFoundError: If ``business_id`` is given but unknown.
            ValidationError: On malformed amounts, type or date.
            SequenceCollisionError: If the issued number is already taken.
        """
        try:
            kind = InvoiceType(invoice_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown invoice type: {invoice_type!r}") from exc
        day = require_date("invoice_date", invoice_date)
        grand = require_positive_amount("grand_total", grand_total)
        rounded = (
            _non_negative("rounded_amount", rounded_amount)
            if rounded_amount is not None
            else round_to_unit(grand)
        )
        paid_so_far = _non_negative("total_paid", total_paid)
        balance, paid, partial = _payment_flags(rounded, paid_so_far)

        invoice_number = None
        try:
            with self.unit_of_work("create_invoice"):
                if business_id is not None and self.session.get(Business, business_id) is None:
                    raise BusinessNotFoundError(str(business_id))

                invoice_number = self._allocator.next_invoice_number(kind, day)
                invoice = Invoice(
                    invoice_number=invoice_number,
                    invoice_type=kind.value,
                    invoice_date=day,
                    currency=currency or self._rules.default_currency,
                    business_id=business_id,
                    customer_name=customer_name,
                    subtotal=(
                        _non_negative("subtotal", subtotal) if subtotal is not None else grand
                    ),
                    total_tax=_non_negative("total_tax", total_tax),
                    discount=_non_negative("discount", discount),
                    grand_total=grand,
                    rounded_amount=rounded,
                    rounded_difference=rounded - grand,
                    total_paid=paid_so_far,
                    balance_amount=balance,
                    paid=paid,
                    partial_payment=partial,
                    paid_on=day if paid and paid_so_far > ZERO else None,
                )
                self.session.add(invoice)
                self.session.flush()
                result = self._to_dto(invoice)
        except IntegrityError as exc:
            raise SequenceCollisionError(
                f"invoice:{kind.value}:{FinancialYear.containing(day).label}",
                str(invoice_number),
            ) from exc

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(result.id),
                "invoice_number": result.invoice_number,
                "invoice_type": kind.value,
                "grand_total": grand,
                "business_id": str(business_id) if business_id else None,
            },
        )
        return result

    def update_invoice_financials(
        self,
        invoice_id: UUID,
        grand_total: Decimal | int | str | None = None,
        rounded_amount: Decimal | int | str | None = None,
        total_paid: Decimal | int | str | None = None,
        subtotal: Decimal | int | str | None = None,
        total_tax: Decimal | int | str | None = None,
        discount: Decimal | int | str | None = None,
    ) -> InvoiceInfo:
        """
        Edit an invoice's financial fields and re-derive its payment state.

        A new grand total re-rounds the invoice unless a rounded amount is
        supplied alongside it.  The balance and flags are recomputed from
        the resulting rounded amount and total paid.
        """
        with self.unit_of_work("update_invoice_financials"):
            invoice = self._get_by_id(invoice_id)

            if subtotal is not None:
                invoice.subtotal = _non_negative("subtotal", subtotal)
            if total_tax is not None:
                invoice.total_tax = _non_negative("total_tax", total_tax)
            if discount is not None:
                invoice.discount = _non_negative("discount", discount)

            if grand_total is not None:
                invoice.grand_total = require_positive_amount("grand_total", grand_total)
                if rounded_amount is None:
                    invoice.rounded_amount = round_to_unit(invoice.grand_total)
            if rounded_amount is not None:
                invoice.rounded_amount = _non_negative("rounded_amount", rounded_amount)
            if total_paid is not None:
                invoice.total_paid = _non_negative("total_paid", total_paid)

            rounded = invoice.payable_amount
            paid_so_far = invoice.total_paid if invoice.total_paid is not None else ZERO
            invoice.rounded_difference = rounded - invoice.grand_total
            balance, paid, partial = _payment_flags(rounded, paid_so_far)
            invoice.balance_amount = balance
            invoice.paid = paid
            invoice.partial_payment = partial
            if not paid:
                invoice.paid_on = None

            self.session.flush()
            result = self._to_dto(invoice)

        logger.info(
            "invoice_financials_updated",
            extra={
                "invoice_id": str(invoice_id),
                "rounded_amount": result.rounded_amount,
                "balance_amount": result.balance_amount,
            },
        )
        return result
