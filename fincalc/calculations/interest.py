"""
Simple and Compound Interest

Used by the interest, simple-interest, compound-interest and CD
calculators.
"""

from dataclasses import dataclass
from typing import Tuple

from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.rates import compound_growth, effective_annual_rate, periods_per_year


@dataclass(frozen=True)
class InterestYear:
    year: int
    opening_balance: float
    interest: float
    closing_balance: float


@dataclass(frozen=True)
class InterestResult:
    principal: float
    annual_rate_percent: float
    years: int
    interest: float
    total_amount: float
    breakdown: Tuple[InterestYear, ...]


def _validate(principal: float, years: int) -> None:
    if principal < 0:
        raise InvalidInputError("Principal cannot be negative")
    if years < 0:
        raise InvalidInputError("Time period cannot be negative")


def calculate_simple_interest(
    principal: float, annual_rate_percent: float, years: int
) -> InterestResult:
    """Interest = P * R * T / 100, accrued evenly each year."""
    _validate(principal, years)

    interest = principal * annual_rate_percent * years / 100
    yearly_interest = interest / years if years else 0.0

    breakdown = tuple(
        InterestYear(
            year=year,
            opening_balance=principal + yearly_interest * (year - 1),
            interest=yearly_interest,
            closing_balance=principal + yearly_interest * year,
        )
        for year in range(1, years + 1)
    )

    return InterestResult(
        principal=principal,
        annual_rate_percent=annual_rate_percent,
        years=years,
        interest=interest,
        total_amount=principal + interest,
        breakdown=breakdown,
    )


def calculate_compound_interest(
    principal: float,
    annual_rate_percent: float,
    years: int,
    frequency: str = "yearly",
) -> InterestResult:
    """
    A = P * (1 + r/n)^(n*t) for the given compounding frequency.

    Args:
        principal: Amount invested
        annual_rate_percent: Nominal annual rate (e.g., 5 for 5%)
        years: Whole years invested
        frequency: yearly, half-yearly, quarterly, monthly or daily
    """
    _validate(principal, years)
    n = periods_per_year(frequency)
    rate = annual_rate_percent / (100 * n)

    breakdown = []
    balance = principal
    for year in range(1, years + 1):
        closing = principal * compound_growth(rate, n * year)
        breakdown.append(
            InterestYear(
                year=year,
                opening_balance=balance,
                interest=closing - balance,
                closing_balance=closing,
            )
        )
        balance = closing

    total_amount = principal * compound_growth(rate, n * years)

    return InterestResult(
        principal=principal,
        annual_rate_percent=annual_rate_percent,
        years=years,
        interest=total_amount - principal,
        total_amount=total_amount,
        breakdown=tuple(breakdown),
    )


def calculate_apy(nominal_rate_percent: float, frequency: str) -> float:
    """Annual percentage yield (percent) for a nominal rate."""
    return effective_annual_rate(nominal_rate_percent, periods_per_year(frequency))
