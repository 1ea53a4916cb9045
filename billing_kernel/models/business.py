"""
Module: billing_kernel.models.business
Responsibility: ORM persistence for counterparties (businesses billed by the
    company) and the company's own bank accounts that receive payments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - gst_number is unique (uq_business_gst_number) and is the immutable
      identity of a business once created.
    - A bank account is referenced by every payment credit; the last five
      characters of account_number appear in ledger particulars.

Failure modes:
    - IntegrityError on duplicate gst_number (mapped to
      DuplicateBusinessError by BusinessService).
"""

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class Business(TrackedBase):
    """
    A business the company invoices.

    Guarantees:
        - gst_number is globally unique, stored upper-case without spaces.
        - Address parts are free text; the ledger joins the non-empty ones.
    """

    __tablename__ = "businesses"

    __table_args__ = (
        UniqueConstraint("gst_number", name="uq_business_gst_number"),
        Index("idx_business_name", "business_name"),
    )

    business_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Tax identity (GSTIN)
    gst_number: Mapped[str] = mapped_column(String(15), nullable=False)

    business_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    business_address2: Mapped[str | None] = mapped_column(String(500), nullable=True)
    business_district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_pincode: Mapped[str | None] = mapped_column(String(10), nullable=True)

    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    @property
    def formatted_address(self) -> str | None:
        """Non-empty address parts joined with ', ', or None."""
        parts = [
            self.business_address,
            self.business_address2,
            self.business_district,
            self.business_state,
            self.business_pincode,
        ]
        present = [p for p in parts if p]
        return ", ".join(present) if present else None

    def __repr__(self) -> str:
        return f"<Business {self.gst_number}: {self.business_name}>"


class BankAccount(TrackedBase):
    """A company bank account that receives payment credits."""

    __tablename__ = "bank_accounts"

    __table_args__ = (
        UniqueConstraint("account_number", "ifsc_code", name="uq_bank_account_number"),
    )

    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(34), nullable=False)
    ifsc_code: Mapped[str | None] = mapped_column(String(11), nullable=True)
    account_holder: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def account_suffix(self, length: int = 5) -> str:
        """Last ``length`` characters of the account number."""
        return self.account_number[-length:]

    def __repr__(self) -> str:
        return f"<BankAccount {self.bank_name} ...{self.account_suffix()}>"
