"""
PaymentAllocationService -- applies a received payment to invoices.

Responsibility:
    Records one payment credit (a single bank receipt), splits it across one
    or more invoices in the order supplied, and updates each invoice's
    payment state.  Allocation lines that do not settle an invoice in one
    shot leave a PartialPayment audit record.

Architecture position:
    Kernel > Services.  Owns the transaction boundary for the whole
    allocation: commit once on success, roll back everything on failure.

Invariants enforced:
    - sum(line amounts) == credit amount, checked before anything is written.
    - For every touched invoice:
        balance_amount == max(0, balance_before - amount)
        paid           == (balance_amount == 0)
        partial_payment == (balance_amount > 0)
      The stored balance is authoritative; it is derived from the rounded
      amount only when no balance has ever been stored.
    - The credit carries a business only when every allocated invoice
      belongs to the same business.

Failure modes:
    - ValidationError subclasses for malformed input (nothing written).
    - AllocationMismatchError when the lines don't add up.
    - InvoiceNotFoundError / BankAccountNotFoundError.
    - SequenceCollisionError if the credit number is already taken
      (uq_payment_credit_number).  Any other constraint violation is a
      StorageError.
    - StorageError on database faults, after rollback.

Audit relevance:
    Payment credits and their lines are immutable once committed.  Partial
    payments are append-only.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.db.types import ZERO, clamp_non_negative
from billing_kernel.domain.financial_year import FinancialYear
from billing_kernel.domain.validation import require_date, require_positive_amount
from billing_kernel.exceptions import (
    AllocationMismatchError,
    BankAccountNotFoundError,
    EmptyAllocationError,
    InvoiceNotFoundError,
    SequenceCollisionError,
    StorageError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.business import BankAccount
from billing_kernel.models.invoice import Invoice
from billing_kernel.models.payment_credit import (
    InvoiceCredit,
    PartialPayment,
    PaymentCredit,
)
from billing_kernel.services.base import BaseService
from billing_kernel.services.sequence_allocator import SequenceAllocator

logger = get_logger("services.payment_allocation")

CREDIT_NUMBER_CONSTRAINT = "uq_payment_credit_number"


@dataclass(frozen=True)
class AllocationRequest:
    """The part of a payment to apply to one invoice."""

    invoice_id: UUID
    amount: Decimal | int | str


@dataclass(frozen=True)
class AllocationLineInfo:
    line_no: int
    invoice_id: UUID
    invoice_number: str
    amount: Decimal
    business_id: UUID | None


@dataclass(frozen=True)
class InvoicePaymentState:
    """Payment state of an invoice after the allocation."""

    invoice_id: UUID
    invoice_number: str
    total_paid: Decimal
    balance_amount: Decimal
    paid: bool
    partial_payment: bool
    paid_on: date | None


@dataclass(frozen=True)
class PaymentCreditInfo:
    """
    Immutable result of a payment allocation.

    ``invoices`` holds one state per distinct invoice, in first-seen order.
    """

    id: UUID
    credit_number: int
    financial_year: str
    credit_amount: Decimal
    credit_date: date
    bank_account_id: UUID
    business_id: UUID | None
    lines: tuple[AllocationLineInfo, ...]
    invoices: tuple[InvoicePaymentState, ...]
    partial_payment_count: int


class PaymentAllocationService(BaseService[PaymentCredit]):
    """
    Payment credit allocation engine.

    Contract:
        allocate_payment() either commits the credit, its lines, any partial
        payment records and every invoice update together, or writes nothing.
    """

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(session, auto_commit=auto_commit)
        self._allocator = SequenceAllocator(session)

    def allocate_payment(
        self,
        amount: Decimal | int | str,
        credit_date: date | datetime,
        bank_account_id: UUID,
        allocations: Sequence[AllocationRequest],
    ) -> PaymentCreditInfo:
        """
        Record a payment credit and apply it to invoices.

        Args:
            amount: Total received.  Must be positive.
            credit_date: Day the payment was received; selects the
                financial year for the credit number.
            bank_account_id: Company account that received the payment.
            allocations: Invoice/amount pairs, applied in this order.

        Returns:
            PaymentCreditInfo with the stored credit and the new invoice states.
        """
        credit_amount = require_positive_amount("amount", amount)
        credit_day = require_date("credit_date", credit_date)
        lines = self._validate_allocations(credit_amount, allocations)

        logger.info(
            "payment_allocation_started",
            extra={
                "credit_amount": credit_amount,
                "credit_date": credit_day,
                "bank_account_id": str(bank_account_id),
                "line_count": len(lines),
            },
        )

        financial_year = FinancialYear.containing(credit_day)
        credit_number: int | None = None
        try:
            with self.unit_of_work("allocate_payment"):
                bank_account = self.session.get(BankAccount, bank_account_id)
                if bank_account is None:
                    raise BankAccountNotFoundError(str(bank_account_id))

                invoices = [self._load_invoice(invoice_id) for invoice_id, _ in lines]
                business_id = _common_business(invoices)

                credit_number = self._allocator.next_payment_credit_number(credit_day)
                with LogContext.bind(
                    payment_credit_number=f"{financial_year.label}/{credit_number}",
                    business_id=str(business_id) if business_id else None,
                ):
                    credit = self._create_payment_credit(
                        credit_number=credit_number,
                        financial_year=financial_year,
                        credit_amount=credit_amount,
                        credit_date=credit_day,
                        bank_account=bank_account,
                        business_id=business_id,
                        lines=[
                            (invoice, line_amount)
                            for invoice, (_, line_amount) in zip(invoices, lines)
                        ],
                    )

                    partial_count = 0
                    for invoice, (_, line_amount) in zip(invoices, lines):
                        if self._apply_to_invoice(invoice, line_amount, credit):
                            partial_count += 1

                    self.session.flush()
                    result = self._to_dto(credit, invoices, partial_count)
        except IntegrityError as exc:
            if not _is_credit_number_conflict(exc):
                raise StorageError("allocate_payment", str(exc.orig)) from exc
            raise SequenceCollisionError(
                f"payment_credit:{financial_year.label}", str(credit_number)
            ) from exc

        logger.info(
            "payment_allocation_completed",
            extra={
                "payment_credit_id": str(result.id),
                "credit_number": result.credit_number,
                "financial_year": result.financial_year,
                "business_id": str(result.business_id) if result.business_id else None,
                "partial_payment_count": partial_count,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_allocations(
        credit_amount: Decimal,
        allocations: Sequence[AllocationRequest],
    ) -> list[tuple[UUID, Decimal]]:
        if not allocations:
            raise EmptyAllocationError()

        lines = [
            (
                allocation.invoice_id,
                require_positive_amount(f"allocations[{index}].amount", allocation.amount),
            )
            for index, allocation in enumerate(allocations)
        ]

        allocated_total = sum((amount for _, amount in lines), ZERO)
        if allocated_total != credit_amount:
            raise AllocationMismatchError(credit_amount, allocated_total)
        return lines

    def _load_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _create_payment_credit(
        self,
        credit_number: int,
        financial_year: FinancialYear,
        credit_amount: Decimal,
        credit_date: date,
        bank_account: BankAccount,
        business_id: UUID | None,
        lines: list[tuple[Invoice, Decimal]],
    ) -> PaymentCredit:
        """Persist the credit together with its allocation lines."""
        credit = PaymentCredit(
            credit_number=credit_number,
            financial_year=financial_year.label,
            credit_amount=credit_amount,
            credit_date=credit_date,
            bank_account_id=bank_account.id,
            business_id=business_id,
        )
        credit.bank_account = bank_account
        for line_no, (invoice, amount) in enumerate(lines, start=1):
            credit.lines.append(
                InvoiceCredit(
                    line_no=line_no,
                    invoice_id=invoice.id,
                    credit_amount=amount,
                    business_id=invoice.business_id,
                )
            )
        self.session.add(credit)
        self.session.flush()
        return credit

    def _apply_to_invoice(
        self,
        invoice: Invoice,
        amount: Decimal,
        credit: PaymentCredit,
    ) -> bool:
        """
        Apply one allocation line to an invoice.

        Returns:
            True if a partial payment record was written.
        """
        total_paid = invoice.total_paid if invoice.total_paid is not None else ZERO
        balance_before = invoice.effective_balance
        was_paid = bool(invoice.paid)

        new_balance = clamp_non_negative(balance_before - amount)
        new_total_paid = total_paid + amount

        is_full_payment = amount == invoice.payable_amount
        if not is_full_payment:
            self._record_partial_payment(invoice, amount, credit)

        invoice.total_paid = new_total_paid
        invoice.balance_amount = new_balance
        invoice.partial_payment = new_balance > ZERO
        invoice.paid = new_balance == ZERO
        # The settlement date is fixed by the payment that first clears it
        if invoice.paid and not was_paid:
            invoice.paid_on = credit.credit_date

        with LogContext.bind(invoice_number=invoice.invoice_number):
            logger.debug(
                "invoice_payment_applied",
                extra={
                    "amount": amount,
                    "balance_before": balance_before,
                    "balance_after": new_balance,
                    "paid": invoice.paid,
                    "paid_on": invoice.paid_on,
                },
            )
        return not is_full_payment

    def _record_partial_payment(
        self,
        invoice: Invoice,
        amount: Decimal,
        credit: PaymentCredit,
    ) -> PartialPayment:
        partial = PartialPayment(
            invoice_id=invoice.id,
            payment_amount=amount,
            payment_date=credit.credit_date,
            bank_account_id=credit.bank_account_id,
            business_id=invoice.business_id,
            payment_credit_id=credit.id,
        )
        self.session.add(partial)
        return partial

    # ------------------------------------------------------------------
    # DTO
    # ------------------------------------------------------------------

    def _to_dto(
        self,
        credit: PaymentCredit,
        invoices: list[Invoice],
        partial_count: int,
    ) -> PaymentCreditInfo:
        seen: dict[UUID, Invoice] = {}
        for invoice in invoices:
            seen.setdefault(invoice.id, invoice)

        return PaymentCreditInfo(
            id=credit.id,
            credit_number=credit.credit_number,
            financial_year=credit.financial_year,
            credit_amount=credit.credit_amount,
            credit_date=credit.credit_date,
            bank_account_id=credit.bank_account_id,
            business_id=credit.business_id,
            lines=tuple(
                AllocationLineInfo(
                    line_no=line.line_no,
                    invoice_id=line.invoice_id,
                    invoice_number=invoice.invoice_number,
                    amount=line.credit_amount,
                    business_id=line.business_id,
                )
                for line, invoice in zip(credit.lines, invoices)
            ),
            invoices=tuple(
                InvoicePaymentState(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    total_paid=invoice.total_paid,
                    balance_amount=invoice.balance_amount,
                    paid=invoice.paid,
                    partial_payment=invoice.partial_payment,
                    paid_on=invoice.paid_on,
                )
                for invoice in seen.values()
            ),
            partial_payment_count=partial_count,
        )


def _common_business(invoices: list[Invoice]) -> UUID | None:
    """The single business shared by all invoices, else None."""
    business_ids = {invoice.business_id for invoice in invoices}
    if len(business_ids) == 1:
        return business_ids.pop()
    return None


def _is_credit_number_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is the per-year credit number."""
    diag = getattr(exc.orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name is not None:
        return constraint_name == CREDIT_NUMBER_CONSTRAINT

    # SQLite names the columns instead of the constraint
    message = str(exc.orig)
    return CREDIT_NUMBER_CONSTRAINT in message or (
        "payment_credits.financial_year" in message
        and "payment_credits.credit_number" in message
    )
