"""
FinancialYear -- April-to-March accounting year value object.

Responsibility:
    Maps any calendar date to the financial year that contains it and renders
    the tokens used inside issued numbers.

    A date in April or later belongs to the year starting that April; a date
    in January to March belongs to the year that started the previous April.

Tokens:
    - ``label``          "2024-25"  (invoice numbers, counter names)
    - ``voucher_prefix`` "202425"   (expense voucher numbers)

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from dataclasses import dataclass
from datetime import date, datetime

FINANCIAL_YEAR_START_MONTH = 4


@dataclass(frozen=True, order=True)
class FinancialYear:
    """A financial year identified by its starting calendar year."""

    start_year: int

    @classmethod
    def containing(cls, reference: date | datetime) -> "FinancialYear":
        """Return the financial year that contains ``reference``."""
        if isinstance(reference, datetime):
            reference = reference.date()
        if reference.month >= FINANCIAL_YEAR_START_MONTH:
            return cls(reference.year)
        return cls(reference.year - 1)

    @property
    def end_year(self) -> int:
        return self.start_year + 1

    @property
    def start_date(self) -> date:
        """April 1 of the start year (inclusive)."""
        return date(self.start_year, FINANCIAL_YEAR_START_MONTH, 1)

    @property
    def end_date(self) -> date:
        """March 31 of the end year (inclusive)."""
        return date(self.end_year, FINANCIAL_YEAR_START_MONTH - 1, 31)

    @property
    def label(self) -> str:
        return f"{self.start_year}-{str(self.end_year)[-2:]}"

    @property
    def voucher_prefix(self) -> str:
        """
        Prefix of expense voucher numbers: the full start year followed by
        the two-digit end year, e.g. ``"202425"`` for 2024-25.

        The start year deliberately keeps all four digits (``202425``, not
        ``2425``) so that new vouchers continue the series already on file;
        voucher ``2024251`` is the first of 2024-25.
        """
        return f"{self.start_year}{str(self.end_year)[-2:]}"

    def contains(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    def __str__(self) -> str:
        return self.label
