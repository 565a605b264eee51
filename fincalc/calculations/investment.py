"""
Investment Growth Calculations

Future value projections for lumpsum, recurring (SIP), step-up and
combined contribution plans, with optional inflation and tax adjustment,
CAGR, goal planning and a year-by-year breakdown.

Recurring contributions are made at the start of each month and then
grow for that month (annuity-due), so the SIP closed form carries a
trailing (1 + r) factor.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.rates import (
    MONTHS_PER_YEAR,
    compound_growth,
    ensure_finite,
    periodic_rate,
    total_periods,
)


class InvestmentKind(str, Enum):
    LUMPSUM = "lumpsum"
    SIP = "sip"
    COMBINED = "combined"
    STEPUP = "stepup"


@dataclass(frozen=True)
class InvestmentInput:
    """A contribution plan. Which amounts are set decides the plan kind."""

    annual_rate_percent: float
    years: float
    lumpsum: float = 0.0
    monthly_contribution: float = 0.0
    step_up_percent: float = 0.0  # Annual increase of the monthly contribution
    inflation_rate_percent: Optional[float] = None
    tax_rate_percent: Optional[float] = None

    @property
    def kind(self) -> InvestmentKind:
        if self.monthly_contribution > 0 and self.step_up_percent != 0:
            return InvestmentKind.STEPUP
        if self.monthly_contribution > 0 and self.lumpsum > 0:
            return InvestmentKind.COMBINED
        if self.monthly_contribution > 0:
            return InvestmentKind.SIP
        return InvestmentKind.LUMPSUM

    @property
    def monthly_rate(self) -> float:
        return periodic_rate(self.annual_rate_percent, MONTHS_PER_YEAR)

    @property
    def months(self) -> int:
        return total_periods(self.years, MONTHS_PER_YEAR)


@dataclass(frozen=True)
class InvestmentResult:
    total_contributed: float
    future_value: float
    total_growth: float
    cagr: float  # Decimal, e.g. 0.07 for 7%
    real_value: Optional[float] = None
    after_tax_value: Optional[float] = None


@dataclass(frozen=True)
class YearlyBreakdown:
    year: int
    contribution: float  # Contributed during this year
    total_contributed: float
    growth: float  # Growth earned during this year
    total_growth: float
    balance: float


def _validate(inputs: InvestmentInput) -> None:
    if inputs.years < 0:
        raise InvalidInputError("Investment period cannot be negative")
    if inputs.lumpsum < 0 or inputs.monthly_contribution < 0:
        raise InvalidInputError("Investment amounts cannot be negative")
    if inputs.monthly_rate <= -1:
        raise InvalidInputError("Rate must be greater than -100%")
    if inputs.inflation_rate_percent is not None and inputs.inflation_rate_percent <= -100:
        raise InvalidInputError("Inflation rate must be greater than -100%")


def lumpsum_future_value(principal: float, rate: float, periods: int) -> float:
    """FV = P * (1 + r)^n"""
    return principal * compound_growth(rate, periods)


def sip_future_value(contribution: float, rate: float, periods: int) -> float:
    """FV = C * ((1 + r)^n - 1) / r * (1 + r); C * n when r is 0."""
    if rate == 0:
        return contribution * periods
    return contribution * ((compound_growth(rate, periods) - 1) / rate) * (1 + rate)


def calculate_cagr(initial: float, final: float, years: float) -> float:
    """
    Compound annual growth rate as a decimal.

    Returns 0 when there is nothing invested or no time elapsed, and -1
    (a total loss) when the final value is not positive.
    """
    if initial <= 0 or years <= 0:
        return 0.0
    if final <= 0:
        return -1.0
    return (final / initial) ** (1 / years) - 1


def adjust_for_inflation(value: float, inflation_rate_percent: float, years: float) -> float:
    """Today's purchasing power of a future amount."""
    return value / compound_growth(inflation_rate_percent / 100, years)


def after_tax_value(future_value: float, total_contributed: float, tax_rate_percent: float) -> float:
    """Tax is charged on growth only, never on the contributed principal."""
    growth = future_value - total_contributed
    return future_value - max(growth, 0.0) * tax_rate_percent / 100


def _finalize(inputs: InvestmentInput, total_contributed: float, future_value: float) -> InvestmentResult:
    ensure_finite(future_value)

    real = None
    if inputs.inflation_rate_percent is not None:
        real = adjust_for_inflation(future_value, inputs.inflation_rate_percent, inputs.years)

    taxed = None
    if inputs.tax_rate_percent is not None:
        taxed = after_tax_value(future_value, total_contributed, inputs.tax_rate_percent)

    return InvestmentResult(
        total_contributed=total_contributed,
        future_value=future_value,
        total_growth=future_value - total_contributed,
        cagr=calculate_cagr(total_contributed, future_value, inputs.years),
        real_value=real,
        after_tax_value=taxed,
    )


def calculate_lumpsum(inputs: InvestmentInput) -> InvestmentResult:
    """One-time investment compounded monthly."""
    _validate(inputs)
    fv = lumpsum_future_value(inputs.lumpsum, inputs.monthly_rate, inputs.months)
    return _finalize(inputs, inputs.lumpsum, fv)


def calculate_sip(inputs: InvestmentInput) -> InvestmentResult:
    """Fixed monthly contribution."""
    _validate(inputs)
    months = inputs.months
    fv = sip_future_value(inputs.monthly_contribution, inputs.monthly_rate, months)
    return _finalize(inputs, inputs.monthly_contribution * months, fv)


def calculate_combined(inputs: InvestmentInput) -> InvestmentResult:
    """Lumpsum plus monthly contributions; the two components compound independently."""
    _validate(inputs)
    rate = inputs.monthly_rate
    months = inputs.months

    fv = lumpsum_future_value(inputs.lumpsum, rate, months) + sip_future_value(
        inputs.monthly_contribution, rate, months
    )
    total_contributed = inputs.lumpsum + inputs.monthly_contribution * months
    return _finalize(inputs, total_contributed, fv)


def _simulate_months(inputs: InvestmentInput) -> Iterator[tuple]:
    """
    Month-by-month simulation: add this month's contribution, then grow.

    The contribution is stepped up at every year boundary. Yields
    (month index, contribution, balance) with month index starting at 1.
    """
    rate = inputs.monthly_rate
    contribution = inputs.monthly_contribution
    step = 1 + inputs.step_up_percent / 100
    balance = inputs.lumpsum

    for month in range(1, inputs.months + 1):
        if month > 1 and (month - 1) % MONTHS_PER_YEAR == 0:
            contribution *= step
        balance = (balance + contribution) * (1 + rate)
        yield month, contribution, balance


def calculate_step_up(inputs: InvestmentInput) -> InvestmentResult:
    """
    Monthly contribution that grows by ``step_up_percent`` every year.

    Geometric contribution growth has no simple closed form under monthly
    compounding, so this is simulated month by month.
    """
    _validate(inputs)
    total_contributed = inputs.lumpsum
    balance = inputs.lumpsum

    for _, contribution, balance in _simulate_months(inputs):
        total_contributed += contribution

    return _finalize(inputs, total_contributed, balance)


def project_investment(inputs: InvestmentInput) -> InvestmentResult:
    """Dispatch to the calculator for the plan's kind."""
    calculators = {
        InvestmentKind.LUMPSUM: calculate_lumpsum,
        InvestmentKind.SIP: calculate_sip,
        InvestmentKind.COMBINED: calculate_combined,
        InvestmentKind.STEPUP: calculate_step_up,
    }
    return calculators[inputs.kind](inputs)


def required_monthly_contribution(
    target_amount: float,
    current_savings: float,
    annual_rate_percent: float,
    years: float,
) -> float:
    """
    Monthly contribution needed to reach a target (goal planning).

    Inverts the SIP formula for whatever the current savings will not
    cover on their own. Returns 0 if the savings already reach the target.
    """
    if current_savings < 0:
        raise InvalidInputError("Current savings cannot be negative")

    months = total_periods(years, MONTHS_PER_YEAR)
    if months <= 0:
        raise InvalidInputError("Investment period must be positive")

    rate = periodic_rate(annual_rate_percent, MONTHS_PER_YEAR)
    if rate <= -1:
        raise InvalidInputError("Rate must be greater than -100%")

    remaining = target_amount - lumpsum_future_value(current_savings, rate, months)
    if remaining <= 0:
        return 0.0

    return remaining / sip_future_value(1.0, rate, months)


class YearlyBreakdownSeries:
    """
    Year-by-year growth of a plan.

    Lazy and restartable: every iteration re-runs the monthly simulation
    from scratch. A partial final year is reported as its own row.
    """

    def __init__(self, inputs: InvestmentInput):
        _validate(inputs)
        self.inputs = inputs

    def __len__(self) -> int:
        return math.ceil(self.inputs.months / MONTHS_PER_YEAR)

    def __iter__(self) -> Iterator[YearlyBreakdown]:
        months = self.inputs.months
        total_contributed = self.inputs.lumpsum
        year_contribution = self.inputs.lumpsum
        year_start_balance = 0.0
        balance = self.inputs.lumpsum

        for month, contribution, balance in _simulate_months(self.inputs):
            total_contributed += contribution
            year_contribution += contribution

            if month % MONTHS_PER_YEAR == 0 or month == months:
                growth = balance - year_start_balance - year_contribution
                yield YearlyBreakdown(
                    year=math.ceil(month / MONTHS_PER_YEAR),
                    contribution=year_contribution,
                    total_contributed=total_contributed,
                    growth=growth,
                    total_growth=balance - total_contributed,
                    balance=balance,
                )
                year_start_balance = balance
                year_contribution = 0.0


def generate_yearly_breakdown(inputs: InvestmentInput) -> YearlyBreakdownSeries:
    """Restartable year-by-year breakdown for any plan kind."""
    return YearlyBreakdownSeries(inputs)
