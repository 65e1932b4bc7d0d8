"""
Accrual calculator.

Pure functions; no I/O, no clock.  The rate is already per period (daily
for investments, hourly for live trades) and is never converted here.
"""

from decimal import Decimal

from accrual_kernel.db.types import round_money


def period_profit(principal: Decimal, rate: Decimal) -> Decimal:
    """Profit for one period: principal x rate, rounded half-up to cents."""
    return round_money(principal * rate)


def expected_total(principal: Decimal, rate: Decimal, periods: int) -> Decimal:
    """
    Profit credited after ``periods`` periods.

    Always the rounded period amount times the count, never a rounded
    product of the three, so it matches the sum of credited records.
    """
    if periods < 0:
        raise ValueError("periods must be non-negative")
    return period_profit(principal, rate) * periods
