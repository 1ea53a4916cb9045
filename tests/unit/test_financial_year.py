"""
Tests for FinancialYear.

Covers:
- April boundary (March 31 vs April 1)
- Label and voucher prefix tokens
- Date and datetime inputs
"""

from datetime import date, datetime

import pytest

from billing_kernel.domain.financial_year import FinancialYear


class TestContaining:
    """Mapping calendar dates to financial years."""

    @pytest.mark.parametrize(
        "day, start_year",
        [
            (date(2024, 4, 1), 2024),
            (date(2024, 3, 31), 2023),
            (date(2024, 12, 31), 2024),
            (date(2025, 1, 1), 2024),
            (date(2025, 3, 31), 2024),
        ],
    )
    def test_start_year(self, day, start_year):
        assert FinancialYear.containing(day).start_year == start_year

    def test_datetime_uses_its_day(self):
        assert FinancialYear.containing(datetime(2024, 3, 31, 23, 59)) == FinancialYear(2023)


class TestTokens:
    def test_label(self):
        assert FinancialYear(2024).label == "2024-25"
        assert str(FinancialYear(2024)) == "2024-25"

    def test_label_across_century(self):
        assert FinancialYear(2099).label == "2099-00"

    def test_voucher_prefix(self):
        assert FinancialYear(2024).voucher_prefix == "202425"

    def test_bounds(self):
        fy = FinancialYear(2024)
        assert fy.start_date == date(2024, 4, 1)
        assert fy.end_date == date(2025, 3, 31)
        assert fy.contains(date(2025, 3, 31))
        assert not fy.contains(date(2025, 4, 1))
