"""
Rate and Time Utilities

Conversions between annual percentage rates, periodic rates and period
counts shared by every calculator. Rates that end in ``_percent`` are
percentages (6.5 for 6.5%); everything else is a decimal.
"""

import math
from typing import Dict

from fincalc.calculations.errors import InvalidInputError

MONTHS_PER_YEAR = 12

PERIODS_PER_YEAR: Dict[str, int] = {
    "annual": 1,
    "yearly": 1,
    "semiannual": 2,
    "half-yearly": 2,
    "quarterly": 4,
    "monthly": 12,
    "daily": 365,
}

OUT_OF_RANGE_MESSAGE = "Rate and term produce an out-of-range result"


def periods_per_year(frequency: str) -> int:
    """Number of compounding periods per year for a named frequency."""
    try:
        return PERIODS_PER_YEAR[frequency.lower()]
    except KeyError:
        raise InvalidInputError(f"Unknown compounding frequency: {frequency!r}")


def periodic_rate(annual_rate_percent: float, periods_per_year: int = MONTHS_PER_YEAR) -> float:
    """
    Convert an annual percentage rate to a periodic decimal rate.

    Defined for every real rate, including zero and negative rates.

    Args:
        annual_rate_percent: Annual rate as a percentage (e.g., 6 for 6%)
        periods_per_year: Periods per year (12 for monthly)

    Returns:
        Periodic rate as decimal (e.g., 0.005 for 6% monthly)
    """
    return annual_rate_percent / 100 / periods_per_year


def total_periods(years: float, periods_per_year: int = MONTHS_PER_YEAR) -> int:
    """Convert a term in years to a whole number of periods."""
    return int(round(years * periods_per_year))


def compound_growth(rate: float, periods: float) -> float:
    """
    Growth factor (1 + rate)^periods.

    Raises:
        InvalidInputError: If the rate is at or below -100% or the factor
            is too large to represent
    """
    if rate <= -1:
        raise InvalidInputError("Rate must be greater than -100%")
    try:
        growth = (1 + rate) ** periods
    except OverflowError:
        raise InvalidInputError(OUT_OF_RANGE_MESSAGE)
    return ensure_finite(growth)


def ensure_finite(value: float) -> float:
    """Reject results that overflowed to inf or nan."""
    if not math.isfinite(value):
        raise InvalidInputError(OUT_OF_RANGE_MESSAGE)
    return value


def effective_annual_rate(nominal_rate_percent: float, periods_per_year: int) -> float:
    """Effective annual rate (percent) for a nominal rate compounded n times a year."""
    rate = periodic_rate(nominal_rate_percent, periods_per_year)
    return ((1 + rate) ** periods_per_year - 1) * 100


def nominal_annual_rate(effective_rate_percent: float, periods_per_year: int) -> float:
    """Nominal annual rate (percent) that compounds to the given effective rate."""
    return (
        ((1 + effective_rate_percent / 100) ** (1 / periods_per_year) - 1)
        * periods_per_year
        * 100
    )


def monthly_to_annual_rate(monthly_rate: float) -> float:
    """Convert a monthly decimal rate to its compounded annual equivalent."""
    return ((1 + monthly_rate) ** 12) - 1


def annual_to_monthly_rate(annual_rate: float) -> float:
    """Convert an annual decimal rate to its compounded monthly equivalent."""
    return ((1 + annual_rate) ** (1 / 12)) - 1


def real_rate(nominal_rate: float, inflation_rate: float) -> float:
    """Inflation-adjusted rate (Fisher equation), both as decimals."""
    return (1 + nominal_rate) / (1 + inflation_rate) - 1


def percent_of(value: float, percent: float) -> float:
    """Return ``percent`` percent of ``value``."""
    return value * percent / 100


def ratio_percent(part: float, whole: float) -> float:
    """Express ``part`` as a percentage of ``whole``; 0 when whole is 0."""
    if whole == 0:
        return 0.0
    return part / whole * 100
