"""
Module: billing_kernel.models.expense
Responsibility: ORM persistence for expense vouchers and the vendor invoices
    they settle.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - vcr_number is unique (uq_expense_vcr_number) and formatted as
      ``<FYStart><FYEndYY><seq>``, e.g. ``2024253`` for the third voucher
      of 2024-25.
    - total_amount == sum(invoices.amount).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CHEQUE = "CHEQUE"
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    CARD = "CARD"


class Expense(TrackedBase):
    """An expense voucher."""

    __tablename__ = "expenses"

    __table_args__ = (
        UniqueConstraint("vcr_number", name="uq_expense_vcr_number"),
        Index("idx_expense_paid_on", "paid_on"),
    )

    vcr_number: Mapped[str] = mapped_column(String(20), nullable=False)

    expense_type: Mapped[str] = mapped_column(String(50), nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)

    cheque_number: Mapped[str | None] = mapped_column(String(30), nullable=True)

    paid_on: Mapped[date] = mapped_column(Date, nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoices: Mapped[list["ExpenseInvoice"]] = relationship(
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseInvoice.created_at",
    )

    def __repr__(self) -> str:
        return f"<Expense {self.vcr_number} {self.total_amount}>"


class ExpenseInvoice(TrackedBase):
    """A vendor bill settled by an expense voucher."""

    __tablename__ = "expense_invoices"

    expense_id: Mapped[UUID] = mapped_column(ForeignKey("expenses.id"), nullable=False)

    invoice_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expense_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vendor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    expense: Mapped[Expense] = relationship(back_populates="invoices")
