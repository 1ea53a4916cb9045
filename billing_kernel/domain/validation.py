"""
Input normalization shared by services and selectors.

Pure functions; each raises a typed ``ValidationError`` subclass instead of
returning a flag so callers cannot forget to check the result.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from billing_kernel.db.types import ZERO, to_money
from billing_kernel.exceptions import (
    InvalidDateError,
    InvalidTaxIdError,
    NonPositiveAmountError,
    ValidationError,
)

# 2-digit state code, 10-char PAN, entity number, 'Z', check character
GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


def normalize_gst_number(gst_number: str) -> str:
    """
    Strip whitespace, upper-case, and validate a GSTIN.

    Raises:
        InvalidTaxIdError: If the cleaned value is not a 15-character GSTIN.
    """
    if not isinstance(gst_number, str):
        raise InvalidTaxIdError(str(gst_number))
    cleaned = re.sub(r"\s+", "", gst_number).upper()
    if len(cleaned) != 15 or not GSTIN_PATTERN.match(cleaned):
        raise InvalidTaxIdError(gst_number)
    return cleaned


def require_date(field: str, value: object) -> date:
    """Return ``value`` as a ``date``; datetimes are truncated to their day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidDateError(field, value)


def require_positive_amount(field: str, value: Decimal | int | str) -> Decimal:
    """Coerce to Decimal and require it to be strictly positive."""
    try:
        amount = to_money(value)
    except (TypeError, InvalidOperation) as exc:
        raise ValidationError(f"{field} is not a valid amount: {value!r}") from exc
    if not amount.is_finite() or amount <= ZERO:
        raise NonPositiveAmountError(field, amount)
    return amount
