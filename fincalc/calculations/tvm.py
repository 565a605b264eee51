"""
Time Value of Money

Solves the savings equation

    PV * (1 + r)^n + PMT * ((1 + r)^n - 1) / r * (1 + r * t) = FV

for any one of FV, PV, PMT, N or the rate, where t is 1 for payments at
the beginning of each period and 0 for payments at the end. Amounts paid
into the account are positive.
"""

import math

from fincalc.calculations.amortization import PaymentTiming
from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.rates import compound_growth, ensure_finite, periodic_rate, periods_per_year
from fincalc.calculations.solver import SolverResult, newton_raphson

RATE_TOLERANCE = 1e-6


def _timing_factor(timing: PaymentTiming) -> int:
    return 1 if timing == PaymentTiming.BEGIN else 0


def _annuity_factor(rate: float, periods: float, timing: PaymentTiming) -> float:
    """Future value of 1 paid each period."""
    if rate == 0:
        return periods
    return (compound_growth(rate, periods) - 1) / rate * (1 + rate * _timing_factor(timing))


def future_value(
    present_value: float,
    payment: float,
    annual_rate_percent: float,
    periods: float,
    frequency: str = "monthly",
    timing: PaymentTiming = PaymentTiming.END,
) -> float:
    rate = periodic_rate(annual_rate_percent, periods_per_year(frequency))
    return ensure_finite(
        present_value * compound_growth(rate, periods) + payment * _annuity_factor(rate, periods, timing)
    )


def present_value(
    future_value: float,
    payment: float,
    annual_rate_percent: float,
    periods: float,
    frequency: str = "monthly",
    timing: PaymentTiming = PaymentTiming.END,
) -> float:
    """Amount needed today so that it, plus the payments, grows to ``future_value``."""
    rate = periodic_rate(annual_rate_percent, periods_per_year(frequency))
    return (future_value - payment * _annuity_factor(rate, periods, timing)) / compound_growth(rate, periods)


def payment(
    present_value: float,
    future_value: float,
    annual_rate_percent: float,
    periods: float,
    frequency: str = "monthly",
    timing: PaymentTiming = PaymentTiming.END,
) -> float:
    """Periodic payment that grows ``present_value`` into ``future_value``."""
    if periods <= 0:
        raise InvalidInputError("Number of periods must be positive")
    rate = periodic_rate(annual_rate_percent, periods_per_year(frequency))
    return (future_value - present_value * compound_growth(rate, periods)) / _annuity_factor(rate, periods, timing)


def number_of_periods(
    present_value: float,
    payment: float,
    future_value: float,
    annual_rate_percent: float,
    frequency: str = "monthly",
    timing: PaymentTiming = PaymentTiming.END,
) -> float:
    """
    Periods needed to reach ``future_value``.

    Raises:
        InvalidInputError: If the target can never be reached
    """
    rate = periodic_rate(annual_rate_percent, periods_per_year(frequency))

    if rate == 0:
        if payment == 0:
            raise InvalidInputError("Target is unreachable without growth or payments")
        periods = (future_value - present_value) / payment
    else:
        k = payment * (1 + rate * _timing_factor(timing)) / rate
        ratio = (future_value + k) / (present_value + k) if present_value + k != 0 else -1
        if ratio <= 0:
            raise InvalidInputError("Target is unreachable with these inputs")
        periods = math.log(ratio) / math.log(1 + rate)

    if periods < 0:
        raise InvalidInputError("Target is unreachable with these inputs")
    return periods


def solve_rate(
    present_value: float,
    payment: float,
    future_value: float,
    periods: int,
    timing: PaymentTiming = PaymentTiming.END,
    guess: float = 0.1,
) -> SolverResult:
    """Periodic rate (decimal) that balances the savings equation."""
    if periods <= 0:
        raise InvalidInputError("Number of periods must be positive")

    if abs(present_value + payment * periods - future_value) < 0.01:
        return SolverResult(rate=0.0, iterations=0, converged=True)

    n = periods
    t = _timing_factor(timing)

    def f(r: float) -> float:
        growth = (1 + r) ** n
        return present_value * growth + payment * (growth - 1) / r * (1 + r * t) - future_value

    def f_prime(r: float) -> float:
        growth = (1 + r) ** n
        series = (growth - 1) / r
        series_prime = (n * (1 + r) ** (n - 1) * r - (growth - 1)) / (r * r)
        return present_value * n * (1 + r) ** (n - 1) + payment * (
            series_prime * (1 + r * t) + series * t
        )

    return newton_raphson(f, f_prime, initial_guess=guess, tolerance=RATE_TOLERANCE, bounds=(-0.99, 10.0))


def interest_rate(
    present_value: float,
    payment: float,
    future_value: float,
    periods: int,
    frequency: str = "monthly",
    timing: PaymentTiming = PaymentTiming.END,
) -> float:
    """
    Nominal annual rate (percent) that balances the savings equation.

    Raises:
        NonConvergenceError: If the rate cannot be solved
    """
    rate = solve_rate(present_value, payment, future_value, periods, timing).unwrap()
    return rate * periods_per_year(frequency) * 100
