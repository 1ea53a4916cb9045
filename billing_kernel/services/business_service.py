"""
Service layer for Business and BankAccount operations.

Manages the counterparties the company invoices and the company's own bank
accounts that receive payment credits.  The GSTIN is the identity of a
business and cannot change after creation.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.domain.validation import normalize_gst_number
from billing_kernel.exceptions import (
    BankAccountNotFoundError,
    BusinessNotFoundError,
    DuplicateBusinessError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.business import BankAccount, Business
from billing_kernel.services.base import BaseService

logger = get_logger("services.business")


@dataclass(frozen=True)
class BusinessInfo:
    """Immutable DTO for business data."""

    id: UUID
    business_name: str
    gst_number: str
    business_address: str | None
    business_address2: str | None
    business_district: str | None
    business_state: str | None
    business_pincode: str | None
    contact_email: str | None
    contact_phone: str | None
    formatted_address: str | None


@dataclass(frozen=True)
class BankAccountInfo:
    """Immutable DTO for bank account data."""

    id: UUID
    bank_name: str
    account_number: str
    ifsc_code: str | None
    account_holder: str | None

    @property
    def account_suffix(self) -> str:
        return self.account_number[-5:]


class BusinessService(BaseService[Business]):
    """Service for business and bank account operations."""

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(session, auto_commit=auto_commit)

    def _to_dto(self, business: Business) -> BusinessInfo:
        return BusinessInfo(
            id=business.id,
            business_name=business.business_name,
            gst_number=business.gst_number,
            business_address=business.business_address,
            business_address2=business.business_address2,
            business_district=business.business_district,
            business_state=business.business_state,
            business_pincode=business.business_pincode,
            contact_email=business.contact_email,
            contact_phone=business.contact_phone,
            formatted_address=business.formatted_address,
        )

    @staticmethod
    def _account_to_dto(account: BankAccount) -> BankAccountInfo:
        return BankAccountInfo(
            id=account.id,
            bank_name=account.bank_name,
            account_number=account.account_number,
            ifsc_code=account.ifsc_code,
            account_holder=account.account_holder,
        )

    def get_business(self, business_id: UUID) -> BusinessInfo:
        """
        Get a business by ID.

        Raises:
            BusinessNotFoundError: If the business doesn't exist.
        """
        business = self.session.get(Business, business_id)
        if business is None:
            raise BusinessNotFoundError(str(business_id))
        return self._to_dto(business)

    def find_by_gst_number(self, gst_number: str) -> BusinessInfo | None:
        business = self.session.execute(
            select(Business).where(Business.gst_number == normalize_gst_number(gst_number))
        ).scalar_one_or_none()
        return self._to_dto(business) if business else None

    def get_bank_account(self, bank_account_id: UUID) -> BankAccountInfo:
        """
        Get a bank account by ID.

        Raises:
            BankAccountNotFoundError: If the account doesn't exist.
        """
        account = self.session.get(BankAccount, bank_account_id)
        if account is None:
            raise BankAccountNotFoundError(str(bank_account_id))
        return self._account_to_dto(account)

    def create_business(
        self,
        business_name: str,
        gst_number: str,
        business_address: str | None = None,
        business_address2: str | None = None,
        business_district: str | None = None,
        business_state: str | None = None,
        business_pincode: str | None = None,
        contact_email: str | None = None,
        contact_phone: str | None = None,
    ) -> BusinessInfo:
        """
        Register a business.

        The GSTIN is stripped of whitespace and upper-cased before it is
        validated and stored.

        Raises:
            InvalidTaxIdError: If the GSTIN is malformed.
            DuplicateBusinessError: If the GSTIN is already registered.
        """
        if not business_name or not business_name.strip():
            raise ValidationError("business_name is required")
        gstin = normalize_gst_number(gst_number)

        try:
            with self.unit_of_work("create_business"):
                existing = self.session.execute(
                    select(Business.id).where(Business.gst_number == gstin)
                ).scalar_one_or_none()
                if existing is not None:
                    raise DuplicateBusinessError(gstin)

                business = Business(
                    business_name=business_name.strip(),
                    gst_number=gstin,
                    business_address=business_address,
                    business_address2=business_address2,
                    business_district=business_district,
                    business_state=business_state,
                    business_pincode=business_pincode,
                    contact_email=contact_email,
                    contact_phone=contact_phone,
                )
                self.session.add(business)
                self.session.flush()
                result = self._to_dto(business)
        except IntegrityError as exc:
            raise DuplicateBusinessError(gstin) from exc

        logger.info(
            "business_created",
            extra={"business_id": str(result.id), "gst_number": gstin},
        )
        return result

    def create_bank_account(
        self,
        bank_name: str,
        account_number: str,
        ifsc_code: str | None = None,
        account_holder: str | None = None,
    ) -> BankAccountInfo:
        """Register a company bank account."""
        if not bank_name or not bank_name.strip():
            raise ValidationError("bank_name is required")
        cleaned_number = (account_number or "").replace(" ", "")
        if not cleaned_number:
            raise ValidationError("account_number is required")

        with self.unit_of_work("create_bank_account"):
            account = BankAccount(
                bank_name=bank_name.strip(),
                account_number=cleaned_number,
                ifsc_code=ifsc_code.upper() if ifsc_code else None,
                account_holder=account_holder,
            )
            self.session.add(account)
            self.session.flush()
            result = self._account_to_dto(account)

        logger.info(
            "bank_account_created",
            extra={"bank_account_id": str(result.id), "bank_name": result.bank_name},
        )
        return result
