"""
Module: billing_kernel.models.invoice
Responsibility: ORM persistence for sales invoices and their payment state.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced (by the services that write these rows):
    - invoice_number is unique (uq_invoice_number) and scoped by type and
      financial year: ``B2B/2024-25/7``.
    - balance_amount == max(0, rounded_amount - total_paid) at all times.
    - paid is True iff balance_amount == 0.
    - partial_payment is True iff 0 < total_paid < rounded_amount.
    - Payment fields are written only by PaymentAllocationService;
      financial fields only by InvoiceService.  Invoices are never deleted.

Audit relevance:
    Invoices are the debit side of every ledger statement.  The rounded
    amount (falling back to grand_total) is the debit figure.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase
from billing_kernel.db.types import clamp_non_negative, round_to_unit
from billing_kernel.models.business import Business


class InvoiceType(str, Enum):
    """Invoice classification; each type has its own number sequence."""

    B2B = "B2B"
    B2C = "B2C"
    EXPORT = "EXPORT"

    @property
    def number_prefix(self) -> str:
        """Prefix used inside invoice numbers (EXPORT is abbreviated)."""
        return "EXP" if self is InvoiceType.EXPORT else self.value


class Invoice(TrackedBase):
    """
    A sales invoice.

    Guarantees:
        - rounded_amount is grand_total rounded half-up to a whole unit
          unless explicitly supplied at creation.
        - balance_amount is the authoritative running balance once any
          payment has been recorded; payable_amount and
          effective_balance are fallbacks for legacy rows where the
          stored values are unset.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_business_date", "business_id", "invoice_date"),
        Index("idx_invoice_type", "invoice_type"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)

    invoice_type: Mapped[InvoiceType] = mapped_column(String(10), nullable=False)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    # Owning business (B2B); B2C and export invoices may carry only a name
    business_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("businesses.id"), nullable=True
    )
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Financial details
    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_tax: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    grand_total: Mapped[Decimal] = mapped_column(nullable=False)
    rounded_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    rounded_difference: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Payment state
    total_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    balance_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    partial_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paid_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    business: Mapped[Business | None] = relationship(lazy="joined")

    @property
    def payable_amount(self) -> Decimal:
        """Rounded amount, falling back to grand_total rounded to a unit."""
        if self.rounded_amount is not None:
            return self.rounded_amount
        return round_to_unit(self.grand_total)

    @property
    def ledger_amount(self) -> Decimal:
        """Debit figure for ledgers: rounded amount, else grand total."""
        if self.rounded_amount is not None:
            return self.rounded_amount
        return self.grand_total

    @property
    def effective_balance(self) -> Decimal:
        """Stored balance; derived from payable minus paid only when unset."""
        if self.balance_amount is not None:
            return self.balance_amount
        return clamp_non_negative(self.payable_amount - (self.total_paid or Decimal("0")))

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} balance={self.balance_amount}>"
