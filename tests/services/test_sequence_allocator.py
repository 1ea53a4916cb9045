"""
Tests for SequenceAllocator.

Covers:
- Invoice number format per type (EXPORT uses EXP)
- Restart per financial year and per invoice type
- Payment credit and voucher numbering
- Seeding from rows that predate the counter
- Preview without consumption
- Unknown scopes and storage faults
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from billing_kernel.exceptions import InvalidDateError, InvalidScopeError, StorageError
from billing_kernel.models.expense import Expense
from billing_kernel.models.invoice import Invoice, InvoiceType
from billing_kernel.services.sequence_allocator import SequenceAllocator
from billing_kernel.services.sequence_service import SequenceService


class TestInvoiceNumbers:
    def test_format(self, session):
        allocator = SequenceAllocator(session)
        assert allocator.next_number(InvoiceType.B2B, date(2024, 5, 1)) == "B2B/2024-25/1"
        assert allocator.next_number("B2C", date(2024, 5, 1)) == "B2C/2024-25/1"
        assert allocator.next_number(InvoiceType.EXPORT, date(2024, 5, 1)) == "EXP/2024-25/1"

    def test_successive_calls_count_up(self, session):
        allocator = SequenceAllocator(session)
        numbers = [allocator.next_invoice_number(InvoiceType.B2B, date(2024, 7, 1)) for _ in range(3)]
        assert numbers == ["B2B/2024-25/1", "B2B/2024-25/2", "B2B/2024-25/3"]

    def test_financial_year_boundary(self, session):
        """March 31 and April 1 belong to different, independent sequences."""
        allocator = SequenceAllocator(session)
        assert allocator.next_invoice_number(InvoiceType.B2B, date(2024, 3, 15)) == "B2B/2023-24/1"
        assert allocator.next_invoice_number(InvoiceType.B2B, date(2024, 4, 2)) == "B2B/2024-25/1"
        assert allocator.next_invoice_number(InvoiceType.B2B, date(2024, 3, 31)) == "B2B/2023-24/2"
        assert allocator.next_invoice_number(InvoiceType.B2B, date(2024, 4, 1)) == "B2B/2024-25/2"

    def test_types_are_independent(self, session):
        allocator = SequenceAllocator(session)
        allocator.next_invoice_number(InvoiceType.B2B, date(2024, 5, 1))
        allocator.next_invoice_number(InvoiceType.B2B, date(2024, 5, 1))
        assert allocator.next_invoice_number(InvoiceType.B2C, date(2024, 5, 1)) == "B2C/2024-25/1"

    def test_seeded_from_existing_invoices(self, session):
        for number in ("B2B/2024-25/9", "B2B/2024-25/41", "B2B/2023-24/99"):
            session.add(
                Invoice(
                    invoice_number=number,
                    invoice_type="B2B",
                    invoice_date=date(2024, 5, 1),
                    grand_total=Decimal("100"),
                )
            )
        session.flush()

        allocator = SequenceAllocator(session)
        assert allocator.next_invoice_number(InvoiceType.B2B, date(2024, 5, 2)) == "B2B/2024-25/42"

    def test_datetime_reference(self, session):
        allocator = SequenceAllocator(session)
        assert allocator.next_invoice_number("B2B", datetime(2025, 3, 31, 23, 0)) == "B2B/2024-25/1"


class TestPaymentCreditNumbers:
    def test_bare_integers_restarting_each_year(self, session):
        allocator = SequenceAllocator(session)
        assert allocator.next_payment_credit_number(date(2024, 3, 30)) == 1
        assert allocator.next_payment_credit_number(date(2024, 3, 31)) == 2
        assert allocator.next_payment_credit_number(date(2024, 4, 1)) == 1


class TestVoucherNumbers:
    def test_format(self, session):
        allocator = SequenceAllocator(session)
        assert allocator.next_voucher_number(date(2024, 5, 1)) == "2024251"
        assert allocator.next_voucher_number(date(2024, 5, 2)) == "2024252"
        assert allocator.next_voucher_number(date(2024, 1, 10)) == "2023241"

    def test_seeded_from_existing_vouchers(self, session):
        session.add(
            Expense(
                vcr_number="20242512",
                expense_type="Rent",
                payment_method="UPI",
                paid_on=date(2024, 5, 1),
                total_amount=Decimal("100"),
            )
        )
        session.flush()
        assert SequenceAllocator(session).next_voucher_number(date(2024, 6, 1)) == "20242513"


class TestPreview:
    def test_preview_does_not_consume(self, session):
        allocator = SequenceAllocator(session)
        assert allocator.preview_invoice_number(InvoiceType.B2B, date(2024, 5, 1)) == "B2B/2024-25/1"
        assert allocator.preview_invoice_number(InvoiceType.B2B, date(2024, 5, 1)) == "B2B/2024-25/1"
        assert allocator.next_invoice_number(InvoiceType.B2B, date(2024, 5, 1)) == "B2B/2024-25/1"
        assert allocator.preview_invoice_number(InvoiceType.B2B, date(2024, 5, 1)) == "B2B/2024-25/2"

    def test_preview_credit_and_voucher(self, session):
        allocator = SequenceAllocator(session)
        assert allocator.preview_payment_credit_number(date(2024, 5, 1)) == 1
        assert allocator.preview_voucher_number(date(2024, 5, 1)) == "2024251"


class TestErrors:
    def test_unknown_scope(self, session):
        with pytest.raises(InvalidScopeError) as exc_info:
            SequenceAllocator(session).next_number("purchase-order", date(2024, 5, 1))
        assert exc_info.value.scope_key == "purchase-order"

    def test_reference_must_be_a_date(self, session):
        with pytest.raises(InvalidDateError):
            SequenceAllocator(session).next_number("voucher", "2024-05-01")

    def test_storage_fault_becomes_storage_error(self, session, monkeypatch):
        def broken(self, name, seed=None):
            raise OperationalError("UPDATE sequence_counters", {}, Exception("db down"))

        monkeypatch.setattr(SequenceService, "next_value", broken)

        with pytest.raises(StorageError) as exc_info:
            SequenceAllocator(session).next_payment_credit_number(date(2024, 5, 1))
        assert isinstance(exc_info.value.__cause__, OperationalError)
