"""Pure domain helpers: clock, financial year, input validation."""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.financial_year import FinancialYear

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "FinancialYear",
]
