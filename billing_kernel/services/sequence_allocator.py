"""
SequenceAllocator -- scoped, per-financial-year document numbering.

Responsibility:
    Issues the next number for a scope (an invoice type, payment credits or
    expense vouchers) in the financial year containing a reference date, and
    renders it in the scope's format:

        invoice          B2B/2024-25/7     (EXPORT uses the EXP prefix)
        payment credit   7                 (bare integer, unique per year)
        voucher          2024257           (year prefix + sequence)

Architecture position:
    Kernel > Services.  Building block: flushes only, never commits.  The
    caller's transaction owns the issued number.

Invariants enforced:
    - One locked counter per (scope, financial year), so numbering restarts
      at 1 every April and per invoice type.
    - A counter created for the first time continues after the highest
      number already stored for that scope, so rows written before the
      counter existed are never duplicated.

Failure modes:
    - InvalidScopeError for an unknown scope key.
    - InvalidDateError if reference_date is not a date.
    - StorageError on any database fault; no number is reserved.
"""

from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.domain.financial_year import FinancialYear
from billing_kernel.domain.validation import require_date
from billing_kernel.exceptions import InvalidScopeError, StorageError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import InvoiceType
from billing_kernel.selectors.expense_selector import ExpenseSelector
from billing_kernel.selectors.invoice_selector import (
    InvoiceSelector,
    invoice_number_scope,
)
from billing_kernel.selectors.payment_credit_selector import PaymentCreditSelector
from billing_kernel.services.sequence_service import SequenceService

logger = get_logger("services.sequence_allocator")

PAYMENT_CREDIT_SCOPE = "payment-credit"
VOUCHER_SCOPE = "voucher"

ScopeKey = InvoiceType | str


class SequenceAllocator:
    """
    Issues formatted document numbers.

    Contract:
        next_number() consumes a number; preview_number() reports the number
        the next call would issue without consuming it.
    """

    def __init__(self, session: Session):
        self._session = session
        self._sequences = SequenceService(session)
        self._invoices = InvoiceSelector(session)
        self._credits = PaymentCreditSelector(session)
        self._expenses = ExpenseSelector(session)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def next_number(self, scope_key: ScopeKey, reference_date: date | datetime) -> int | str:
        """
        Issue the next number for ``scope_key`` in the financial year of
        ``reference_date``.

        Returns:
            ``int`` for payment credits, ``str`` for invoices and vouchers.
        """
        scope, financial_year = self._resolve(scope_key, reference_date)
        counter_name, seed, render = self._plan(scope, financial_year)

        try:
            value = self._sequences.next_value(counter_name, seed=seed)
        except SQLAlchemyError as exc:
            logger.error(
                "sequence_allocation_failed",
                extra={"sequence_name": counter_name},
                exc_info=True,
            )
            raise StorageError("next_number", str(exc)) from exc

        number = render(value)
        logger.info(
            "document_number_issued",
            extra={
                "scope": _scope_label(scope),
                "financial_year": financial_year.label,
                "number": number,
            },
        )
        return number

    def preview_number(self, scope_key: ScopeKey, reference_date: date | datetime) -> int | str:
        """Number the next ``next_number`` call would issue; nothing is consumed."""
        scope, financial_year = self._resolve(scope_key, reference_date)
        counter_name, seed, render = self._plan(scope, financial_year)

        try:
            current = self._sequences.current_value(counter_name)
            if current is None:
                current = seed()
        except SQLAlchemyError as exc:
            raise StorageError("preview_number", str(exc)) from exc

        return render(current + 1)

    def next_invoice_number(self, invoice_type: InvoiceType | str, invoice_date: date) -> str:
        return self.next_number(invoice_type, invoice_date)

    def next_payment_credit_number(self, credit_date: date) -> int:
        return self.next_number(PAYMENT_CREDIT_SCOPE, credit_date)

    def next_voucher_number(self, paid_on: date) -> str:
        return self.next_number(VOUCHER_SCOPE, paid_on)

    def preview_invoice_number(self, invoice_type: InvoiceType | str, invoice_date: date) -> str:
        return self.preview_number(invoice_type, invoice_date)

    def preview_payment_credit_number(self, credit_date: date) -> int:
        return self.preview_number(PAYMENT_CREDIT_SCOPE, credit_date)

    def preview_voucher_number(self, paid_on: date) -> str:
        return self.preview_number(VOUCHER_SCOPE, paid_on)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(
        self, scope_key: ScopeKey, reference_date: date | datetime
    ) -> tuple[ScopeKey, FinancialYear]:
        scope = _normalize_scope(scope_key)
        reference = require_date("reference_date", reference_date)
        return scope, FinancialYear.containing(reference)

    def _plan(self, scope: ScopeKey, financial_year: FinancialYear):
        """Counter name, seed function and renderer for one scope and year."""
        if isinstance(scope, InvoiceType):
            prefix = invoice_number_scope(scope, financial_year)
            return (
                f"invoice:{scope.value}:{financial_year.label}",
                lambda: self._invoices.find_max_invoice_number_in_scope(
                    scope, financial_year
                ),
                lambda value: f"{prefix}{value}",
            )

        if scope == PAYMENT_CREDIT_SCOPE:

            def seed() -> int:
                return self._credits.find_max_credit_number_in_range(
                    financial_year.start_date, financial_year.end_date
                )

            return (
                f"payment_credit:{financial_year.label}",
                seed,
                lambda value: value,
            )

        prefix = financial_year.voucher_prefix
        return (
            f"voucher:{prefix}",
            lambda: self._expenses.find_max_voucher_number_with_prefix(prefix),
            lambda value: f"{prefix}{value}",
        )


def _normalize_scope(scope_key: ScopeKey) -> ScopeKey:
    if isinstance(scope_key, InvoiceType):
        return scope_key
    if isinstance(scope_key, str):
        if scope_key in (PAYMENT_CREDIT_SCOPE, VOUCHER_SCOPE):
            return scope_key
        try:
            return InvoiceType(scope_key)
        except ValueError:
            pass
    raise InvalidScopeError(str(scope_key))


def _scope_label(scope: ScopeKey) -> str:
    return scope.value if isinstance(scope, InvoiceType) else scope
