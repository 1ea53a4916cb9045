"""
Module: billing_kernel.models.payment_credit
Responsibility: ORM persistence for received bank payments (payment credits),
    their per-invoice allocation lines, and the partial-payment audit trail.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - (financial_year, credit_number) is unique (uq_payment_credit_number);
      credit numbers restart at 1 every April.
    - sum(lines.credit_amount) == credit_amount (checked by
      PaymentAllocationService before insert).
    - business_id is set only when every allocated invoice belongs to the
      same business.
    - PaymentCredit and InvoiceCredit rows are immutable once created;
      PartialPayment rows are append-only.

Audit relevance:
    Payment credits are the credit side of every ledger statement.  Partial
    payments are NOT read by the ledger (every partial payment originates
    from a payment credit, so reading both would double count).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase
from billing_kernel.models.business import BankAccount, Business
from billing_kernel.models.invoice import Invoice


class PaymentCredit(TrackedBase):
    """A single payment received into a company bank account."""

    __tablename__ = "payment_credits"

    __table_args__ = (
        UniqueConstraint(
            "financial_year", "credit_number", name="uq_payment_credit_number"
        ),
        Index("idx_payment_credit_business_date", "business_id", "credit_date"),
        Index("idx_payment_credit_date", "credit_date"),
    )

    credit_number: Mapped[int] = mapped_column(nullable=False)

    # "2024-25"; denormalized from credit_date to scope the unique number
    financial_year: Mapped[str] = mapped_column(String(7), nullable=False)

    credit_amount: Mapped[Decimal] = mapped_column(nullable=False)

    credit_date: Mapped[date] = mapped_column(Date, nullable=False)

    bank_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("bank_accounts.id"), nullable=False
    )

    business_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("businesses.id"), nullable=True
    )

    bank_account: Mapped[BankAccount] = relationship(lazy="joined")
    business: Mapped[Business | None] = relationship(lazy="joined")
    lines: Mapped[list["InvoiceCredit"]] = relationship(
        back_populates="payment_credit",
        cascade="all, delete-orphan",
        order_by="InvoiceCredit.line_no",
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentCredit {self.financial_year}#{self.credit_number} "
            f"{self.credit_amount}>"
        )


class InvoiceCredit(TrackedBase):
    """One allocation line: the part of a payment credit applied to an invoice."""

    __tablename__ = "invoice_credits"

    __table_args__ = (
        UniqueConstraint("payment_credit_id", "line_no", name="uq_invoice_credit_line"),
        Index("idx_invoice_credit_invoice", "invoice_id"),
    )

    payment_credit_id: Mapped[UUID] = mapped_column(
        ForeignKey("payment_credits.id"), nullable=False
    )

    # 1-based position in the order the allocations were supplied
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)

    credit_amount: Mapped[Decimal] = mapped_column(nullable=False)

    business_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("businesses.id"), nullable=True
    )

    payment_credit: Mapped[PaymentCredit] = relationship(back_populates="lines")
    invoice: Mapped[Invoice] = relationship(lazy="joined")


class PartialPayment(TrackedBase):
    """
    Audit record for an allocation that did not settle the invoice in one shot.

    Written when the allocated amount differs from the invoice's rounded
    amount, including the final instalment that clears the balance.
    """

    __tablename__ = "partial_payments"

    __table_args__ = (
        Index("idx_partial_payment_invoice", "invoice_id"),
        Index("idx_partial_payment_credit", "payment_credit_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)

    payment_amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)

    bank_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("bank_accounts.id"), nullable=False
    )

    business_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("businesses.id"), nullable=True
    )

    payment_credit_id: Mapped[UUID] = mapped_column(
        ForeignKey("payment_credits.id"), nullable=False
    )
