"""
Tests for InvoiceService.

Covers:
- Number issuance through the allocator
- Rounded amount, rounded difference and opening balance derivation
- Financial edits re-deriving the payment state
- Not-found and validation errors
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import (
    BusinessNotFoundError,
    InvoiceNotFoundError,
    NonPositiveAmountError,
    SequenceCollisionError,
    ValidationError,
)
from billing_kernel.models.invoice import Invoice, InvoiceType
from billing_kernel.services.invoice_service import InvoiceService
from billing_kernel.services.sequence_service import SequenceService


class TestCreateInvoice:
    def test_numbers_and_derived_fields(self, session, create_business):
        business = create_business()
        service = InvoiceService(session)

        info = service.create_invoice(
            invoice_type=InvoiceType.B2B,
            invoice_date=date(2024, 5, 10),
            grand_total=Decimal("1180.40"),
            business_id=business.id,
            subtotal=Decimal("1000.34"),
            total_tax=Decimal("180.06"),
        )

        assert info.invoice_number == "B2B/2024-25/1"
        assert info.rounded_amount == Decimal("1180")
        assert info.rounded_difference == Decimal("-0.40")
        assert info.balance_amount == Decimal("1180")
        assert info.total_paid == Decimal("0")
        assert info.paid is False
        assert info.partial_payment is False
        assert info.currency == "INR"

    def test_export_invoice_number(self, session):
        info = InvoiceService(session).create_invoice(
            "EXPORT", date(2024, 5, 10), "500", customer_name="Overseas Buyer", currency="USD"
        )
        assert info.invoice_number == "EXP/2024-25/1"
        assert info.invoice_type is InvoiceType.EXPORT
        assert info.currency == "USD"

    def test_scenario_financial_year_boundary(self, session):
        service = InvoiceService(session)
        march = service.create_invoice(InvoiceType.B2B, date(2024, 3, 15), "100")
        april = service.create_invoice(InvoiceType.B2B, date(2024, 4, 2), "100")
        assert march.invoice_number == "B2B/2023-24/1"
        assert april.invoice_number == "B2B/2024-25/1"

    def test_explicit_rounded_amount_and_prior_payment(self, session):
        info = InvoiceService(session).create_invoice(
            InvoiceType.B2C,
            date(2024, 5, 10),
            grand_total="999.50",
            rounded_amount="999",
            total_paid="400",
        )
        assert info.rounded_amount == Decimal("999")
        assert info.balance_amount == Decimal("599")
        assert info.partial_payment is True
        assert info.paid is False

    def test_persisted(self, session):
        info = InvoiceService(session).create_invoice(InvoiceType.B2B, date(2024, 5, 10), "100")
        assert session.get(Invoice, info.id).invoice_number == info.invoice_number

    def test_unknown_business(self, session):
        with pytest.raises(BusinessNotFoundError):
            InvoiceService(session).create_invoice(
                InvoiceType.B2B, date(2024, 5, 10), "100", business_id=uuid4()
            )

    def test_unknown_type(self, session):
        with pytest.raises(ValidationError):
            InvoiceService(session).create_invoice("B2G", date(2024, 5, 10), "100")

    def test_non_positive_total(self, session):
        with pytest.raises(NonPositiveAmountError):
            InvoiceService(session).create_invoice(InvoiceType.B2B, date(2024, 5, 10), "0")

    def test_number_collision(self, session):
        session.add(
            Invoice(
                invoice_number="B2B/2024-25/5",
                invoice_type="B2B",
                invoice_date=date(2024, 5, 1),
                grand_total=Decimal("100"),
            )
        )
        session.commit()
        # A counter that lags behind stored numbers re-issues an existing one
        SequenceService(session).reset("invoice:B2B:2024-25", 4)
        session.commit()

        with pytest.raises(SequenceCollisionError) as exc_info:
            InvoiceService(session).create_invoice(InvoiceType.B2B, date(2024, 5, 10), "100")
        assert exc_info.value.value == "B2B/2024-25/5"


class TestUpdateInvoiceFinancials:
    def test_new_grand_total_rerounds(self, session, create_invoice):
        invoice = create_invoice(grand_total="1000")

        info = InvoiceService(session).update_invoice_financials(
            invoice.id, grand_total=Decimal("1499.70")
        )

        assert info.rounded_amount == Decimal("1500")
        assert info.rounded_difference == Decimal("0.30")
        assert info.balance_amount == Decimal("1500")

    def test_total_paid_update_settles(self, session, create_invoice):
        invoice = create_invoice(grand_total="1000")

        info = InvoiceService(session).update_invoice_financials(invoice.id, total_paid="1000")

        assert info.balance_amount == Decimal("0")
        assert info.paid is True
        assert info.partial_payment is False

    def test_explicit_rounded_amount_wins(self, session, create_invoice):
        invoice = create_invoice(grand_total="1000")

        info = InvoiceService(session).update_invoice_financials(
            invoice.id, grand_total="1200.40", rounded_amount="1201", total_paid="200"
        )

        assert info.rounded_amount == Decimal("1201")
        assert info.balance_amount == Decimal("1001")
        assert info.partial_payment is True

    def test_unknown_invoice(self, session):
        with pytest.raises(InvoiceNotFoundError):
            InvoiceService(session).update_invoice_financials(uuid4(), grand_total="10")

    def test_get_invoice(self, session, create_invoice):
        invoice = create_invoice(grand_total="750")
        info = InvoiceService(session).get_invoice(invoice.id)
        assert info.id == invoice.id
        assert info.grand_total == Decimal("750")
