"""
Module: billing_kernel.selectors.ledger_selector
Responsibility: Builds the ledger statement for one business over a date
    range: derived opening balance, chronologically merged debit (invoice)
    and credit (payment credit) events, running balance and totals.
Architecture position: Kernel > Selectors.  Reads through InvoiceSelector and
    PaymentCreditSelector; never writes.

Invariants enforced:
    - closing_balance == opening_balance + total_debit - total_credit, and
      equals the running balance of the last entry (or the opening balance
      when the range holds no events).
    - Ordering is deterministic: a stable sort by date over debits (invoice
      date, creation time, invoice number) followed by credits (credit
      number), so within a day sales precede receipts.
    - Partial payment records are never read; every one of them originates
      from a payment credit that is already counted.

Failure modes:
    - InvalidDateRangeError if start_date is after end_date.
    - BusinessNotFoundError if the business does not exist.

Audit relevance:
    Two builds with no intervening writes return equal statements, so a
    printed statement can be regenerated and compared.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from billing_kernel.config import LedgerLabels
from billing_kernel.db.types import ZERO, round_money
from billing_kernel.domain.validation import require_date
from billing_kernel.exceptions import BusinessNotFoundError, InvalidDateRangeError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.business import Business
from billing_kernel.models.invoice import Invoice
from billing_kernel.models.payment_credit import PaymentCredit
from billing_kernel.selectors.base import BaseSelector
from billing_kernel.selectors.invoice_selector import InvoiceSelector
from billing_kernel.selectors.payment_credit_selector import PaymentCreditSelector

logger = get_logger("selectors.ledger")

END_OF_DAY = time(23, 59, 59, 999000)


def _amount_text(value: Decimal) -> str:
    return f"{round_money(value):.2f}"


@dataclass(frozen=True)
class LedgerEntry:
    """One line of a ledger statement."""

    serial_no: int
    entry_date: date
    particulars: str
    voucher_type: str
    voucher_number: str
    debit: Decimal
    credit: Decimal
    balance: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "serial_no": self.serial_no,
            "date": self.entry_date.isoformat(),
            "particulars": self.particulars,
            "voucher_type": self.voucher_type,
            "voucher_number": self.voucher_number,
            "debit": _amount_text(self.debit),
            "credit": _amount_text(self.credit),
            "balance": _amount_text(self.balance),
        }


@dataclass(frozen=True)
class LedgerStatement:
    """
    Ledger statement for one business.

    Positive balances mean the business owes the company.
    """

    business_id: UUID
    business_name: str
    business_address: str | None
    gst_number: str
    start_date: datetime
    end_date: datetime
    opening_balance: Decimal
    closing_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    entries: tuple[LedgerEntry, ...]

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe view: amounts as two-decimal strings, dates in ISO form."""
        return {
            "business_id": str(self.business_id),
            "business_name": self.business_name,
            "business_address": self.business_address,
            "gst_number": self.gst_number,
            "start_date": self.start_date.isoformat(timespec="milliseconds"),
            "end_date": self.end_date.isoformat(timespec="milliseconds"),
            "opening_balance": _amount_text(self.opening_balance),
            "closing_balance": _amount_text(self.closing_balance),
            "total_debit": _amount_text(self.total_debit),
            "total_credit": _amount_text(self.total_credit),
            "entries": [entry.to_dict() for entry in self.entries],
        }


@dataclass(frozen=True)
class _Event:
    event_date: date
    particulars: str
    voucher_type: str
    voucher_number: str
    debit: Decimal
    credit: Decimal


class LedgerSelector(BaseSelector[Invoice]):
    """
    Ledger statement engine.

    Contract:
        build_ledger() reads invoices and payment credits attributed to the
        business and returns an immutable LedgerStatement.  Labels for the
        particulars and voucher-type columns come from LedgerLabels.
    """

    def __init__(self, session: Session, labels: LedgerLabels | None = None):
        super().__init__(session)
        self._labels = labels or LedgerLabels()
        self._invoices = InvoiceSelector(session)
        self._credits = PaymentCreditSelector(session)

    def build_ledger(
        self,
        business_id: UUID,
        start_date: date | datetime,
        end_date: date | datetime,
    ) -> LedgerStatement:
        """
        Build the statement for ``business_id`` between two days, inclusive.

        Both bounds are widened to whole days: the start to 00:00:00.000 and
        the end to 23:59:59.999.
        """
        start_day = require_date("start_date", start_date)
        end_day = require_date("end_date", end_date)
        if start_day > end_day:
            raise InvalidDateRangeError(start_day, end_day)

        business = self.session.get(Business, business_id)
        if business is None:
            raise BusinessNotFoundError(str(business_id))

        opening = self._invoices.sum_for_business_before(
            business_id, start_day
        ) - self._credits.sum_for_business_before(business_id, start_day)

        events = [
            self._debit_event(invoice)
            for invoice in self._invoices.find_for_business_in_range(
                business_id, start_day, end_day
            )
        ]
        events.extend(
            self._credit_event(credit)
            for credit in sorted(
                self._credits.find_for_business_in_range(business_id, start_day, end_day),
                key=lambda c: c.credit_number,
            )
        )
        # sort() is stable, so debits stay ahead of credits on the same day
        events.sort(key=lambda e: e.event_date)

        entries: list[LedgerEntry] = []
        running = opening
        total_debit = ZERO
        total_credit = ZERO
        for serial_no, event in enumerate(events, start=1):
            running = running + event.debit - event.credit
            total_debit += event.debit
            total_credit += event.credit
            entries.append(
                LedgerEntry(
                    serial_no=serial_no,
                    entry_date=event.event_date,
                    particulars=event.particulars,
                    voucher_type=event.voucher_type,
                    voucher_number=event.voucher_number,
                    debit=event.debit,
                    credit=event.credit,
                    balance=running,
                )
            )

        statement = LedgerStatement(
            business_id=business.id,
            business_name=business.business_name,
            business_address=business.formatted_address,
            gst_number=business.gst_number,
            start_date=datetime.combine(start_day, time.min),
            end_date=datetime.combine(end_day, END_OF_DAY),
            opening_balance=opening,
            closing_balance=opening + total_debit - total_credit,
            total_debit=total_debit,
            total_credit=total_credit,
            entries=tuple(entries),
        )

        logger.info(
            "ledger_built",
            extra={
                "business_id": str(business_id),
                "start_date": start_day,
                "end_date": end_day,
                "entry_count": len(entries),
                "closing_balance": statement.closing_balance,
            },
        )
        return statement

    def _debit_event(self, invoice: Invoice) -> _Event:
        return _Event(
            event_date=invoice.invoice_date,
            particulars=self._labels.sale_particulars,
            voucher_type=self._labels.sale_voucher_type,
            voucher_number=invoice.invoice_number,
            debit=invoice.ledger_amount,
            credit=ZERO,
        )

    def _credit_event(self, credit: PaymentCredit) -> _Event:
        account = credit.bank_account
        particulars = self._labels.payment_particulars_template.format(
            bank_name=account.bank_name,
            account_suffix=account.account_suffix(self._labels.account_suffix_length),
        )
        return _Event(
            event_date=credit.credit_date,
            particulars=particulars,
            voucher_type=self._labels.payment_voucher_type,
            voucher_number=str(credit.credit_number),
            debit=ZERO,
            credit=credit.credit_amount,
        )
