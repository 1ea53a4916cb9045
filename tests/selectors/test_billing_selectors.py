"""Tests for the invoice, payment credit and expense selectors."""

from datetime import date
from decimal import Decimal

from billing_kernel.domain.financial_year import FinancialYear
from billing_kernel.models.expense import Expense
from billing_kernel.models.invoice import Invoice, InvoiceType
from billing_kernel.selectors.expense_selector import ExpenseSelector
from billing_kernel.selectors.invoice_selector import InvoiceSelector, parse_sequence_suffix
from billing_kernel.selectors.payment_credit_selector import PaymentCreditSelector
from billing_kernel.services.payment_allocation_service import (
    AllocationRequest,
    PaymentAllocationService,
)


def _invoice(number: str, invoice_type: str = "B2B") -> Invoice:
    return Invoice(
        invoice_number=number,
        invoice_type=invoice_type,
        invoice_date=date(2024, 5, 1),
        grand_total=Decimal("100"),
    )


class TestInvoiceSelector:
    def test_max_number_is_numeric_not_lexical(self, session):
        session.add_all([_invoice("B2B/2024-25/9"), _invoice("B2B/2024-25/10")])
        session.flush()
        selector = InvoiceSelector(session)
        assert selector.find_max_invoice_number_in_scope(InvoiceType.B2B, FinancialYear(2024)) == 10

    def test_max_number_scoped_by_type_and_year(self, session):
        session.add_all(
            [
                _invoice("B2B/2023-24/50"),
                _invoice("EXP/2024-25/7", invoice_type="EXPORT"),
            ]
        )
        session.flush()
        selector = InvoiceSelector(session)
        assert selector.find_max_invoice_number_in_scope(InvoiceType.B2B, FinancialYear(2024)) == 0
        assert selector.find_max_invoice_number_in_scope(InvoiceType.EXPORT, FinancialYear(2024)) == 7

    def test_find_by_id(self, session, create_invoice):
        invoice = create_invoice()
        assert InvoiceSelector(session).find_by_id(invoice.id) is invoice

    def test_parse_sequence_suffix(self):
        assert parse_sequence_suffix("B2B/2024-25/12", "B2B/2024-25/") == 12
        assert parse_sequence_suffix("B2B/2024-25/12a", "B2B/2024-25/") is None
        assert parse_sequence_suffix("B2C/2024-25/12", "B2B/2024-25/") is None


class TestPaymentCreditSelector:
    def test_max_credit_number_in_range(self, session, create_business, create_bank_account, create_invoice):
        business = create_business()
        account = create_bank_account()
        service = PaymentAllocationService(session)
        for day in (date(2024, 3, 30), date(2024, 3, 31), date(2024, 4, 2)):
            invoice = create_invoice(grand_total="100", invoice_date=day, business=business)
            service.allocate_payment("100", day, account.id, [AllocationRequest(invoice.id, "100")])

        selector = PaymentCreditSelector(session)
        assert selector.find_max_credit_number_in_range(date(2023, 4, 1), date(2024, 3, 31)) == 2
        assert selector.find_max_credit_number_in_range(date(2024, 4, 1), date(2025, 3, 31)) == 1
        assert selector.find_max_credit_number_in_range(date(2025, 4, 1), date(2026, 3, 31)) == 0
        assert selector.sum_for_business_before(business.id, date(2024, 4, 1)) == Decimal("200")


class TestExpenseSelector:
    def test_max_voucher_with_prefix(self, session):
        for number in ("2024251", "20242511", "2023249"):
            session.add(
                Expense(
                    vcr_number=number,
                    expense_type="Rent",
                    payment_method="UPI",
                    paid_on=date(2024, 5, 1),
                    total_amount=Decimal("10"),
                )
            )
        session.flush()

        selector = ExpenseSelector(session)
        assert selector.find_max_voucher_number_with_prefix("202425") == 11
        assert selector.find_max_voucher_number_with_prefix("202526") == 0
        assert selector.find_by_vcr_number("2023249").expense_type == "Rent"
