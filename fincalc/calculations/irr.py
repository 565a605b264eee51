"""
IRR and NPV Calculations

Implements NPV, IRR and XIRR using the shared Newton-Raphson solver,
matching Excel's NPV/IRR/XIRR conventions (first cash flow at period 0).
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

import numpy as np

from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.solver import (
    DEFAULT_GUESS,
    MAX_ITERATIONS,
    TOLERANCE,
    SolverResult,
    newton_raphson,
)

IRR_BOUNDS = (-0.99, 10.0)


@dataclass(frozen=True)
class CashFlowRow:
    """One row of a discounted cash flow schedule."""

    period: int
    cash_flow: float
    cumulative: float
    discounted: float
    npv: float  # Running NPV through this period


@dataclass(frozen=True)
class CashFlowAnalysis:
    """IRR, NPV and companion metrics for a cash flow series."""

    irr: SolverResult
    npv: float
    discount_rate: float
    mirr: Optional[float]
    payback_period: Optional[float]
    multiple: float
    profit: float
    schedule: Tuple[CashFlowRow, ...]


def calculate_npv(cash_flows: Sequence[float], discount_rate: float) -> float:
    """
    Calculate NPV (Net Present Value) of cash flows.

    Args:
        cash_flows: Array of cash flows (negative = outflow, positive = inflow)
        discount_rate: Periodic discount rate (e.g., 0.10 for 10%)

    Returns:
        NPV value
    """
    npv = 0.0
    for period, cf in enumerate(cash_flows):
        npv += cf / ((1 + discount_rate) ** period)
    return npv


def _npv_derivative(cash_flows: Sequence[float], rate: float) -> float:
    """Calculate derivative of NPV with respect to rate (for Newton-Raphson)."""
    dnpv = 0.0
    for period, cf in enumerate(cash_flows):
        dnpv -= (period * cf) / ((1 + rate) ** (period + 1))
    return dnpv


def _validate_cash_flows(cash_flows: Sequence[float]) -> None:
    if len(cash_flows) < 2:
        raise InvalidInputError("At least 2 cash flows required")

    has_positive = any(cf > 0 for cf in cash_flows)
    has_negative = any(cf < 0 for cf in cash_flows)

    if not has_positive or not has_negative:
        raise InvalidInputError("Cash flows must contain both positive and negative values")


def solve_irr(
    cash_flows: Sequence[float],
    guess: float = DEFAULT_GUESS,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS,
) -> SolverResult:
    """
    Solve for the periodic IRR of a cash flow series.

    Returns a SolverResult so a failed solve can never be mistaken for a
    0% return.

    Raises:
        InvalidInputError: Fewer than 2 cash flows, or no sign change
    """
    _validate_cash_flows(cash_flows)
    flows = list(cash_flows)

    return newton_raphson(
        lambda rate: calculate_npv(flows, rate),
        lambda rate: _npv_derivative(flows, rate),
        initial_guess=guess,
        tolerance=tolerance,
        max_iterations=max_iterations,
        bounds=IRR_BOUNDS,
    )


def calculate_irr(cash_flows: Sequence[float], guess: float = DEFAULT_GUESS) -> float:
    """
    Calculate IRR (Internal Rate of Return) using Newton-Raphson method.

    Matches Excel's IRR() function behavior for periodic cash flows.

    Args:
        cash_flows: Array of periodic cash flows
        guess: Initial guess for rate (default 0.1 = 10%)

    Returns:
        Periodic IRR as decimal (e.g., 0.15 for 15%)

    Raises:
        InvalidInputError: If the cash flows cannot have an IRR
        NonConvergenceError: If the solver does not converge
    """
    return solve_irr(cash_flows, guess=guess).unwrap()


def _year_fractions(dates: Sequence[date]) -> List[float]:
    """Years elapsed from the first date, actual/365."""
    base_date = dates[0]
    return [(d - base_date).days / 365.0 for d in dates]


def calculate_xnpv(
    cash_flows: Sequence[float], dates: Sequence[date], discount_rate: float
) -> float:
    """Calculate XNPV (NPV with specific dates)."""
    if len(cash_flows) != len(dates):
        raise InvalidInputError("Cash flows and dates arrays must have same length")

    xnpv = 0.0
    for cf, years in zip(cash_flows, _year_fractions(dates)):
        xnpv += cf / ((1 + discount_rate) ** years)
    return xnpv


def _xnpv_derivative(
    cash_flows: Sequence[float], year_fractions: Sequence[float], rate: float
) -> float:
    """Calculate derivative of XNPV with respect to rate."""
    dxnpv = 0.0
    for cf, years in zip(cash_flows, year_fractions):
        dxnpv -= (years * cf) / ((1 + rate) ** (years + 1))
    return dxnpv


def solve_xirr(
    cash_flows: Sequence[float], dates: Sequence[date], guess: float = DEFAULT_GUESS
) -> SolverResult:
    """Solve for the annual IRR of dated cash flows (Excel XIRR)."""
    if len(cash_flows) != len(dates):
        raise InvalidInputError("Cash flows and dates arrays must have same length")
    _validate_cash_flows(cash_flows)

    flows = list(cash_flows)
    year_fractions = _year_fractions(dates)

    def xnpv(rate: float) -> float:
        return sum(cf / ((1 + rate) ** years) for cf, years in zip(flows, year_fractions))

    return newton_raphson(
        xnpv,
        lambda rate: _xnpv_derivative(flows, year_fractions, rate),
        initial_guess=guess,
        bounds=IRR_BOUNDS,
    )


def calculate_xirr(
    cash_flows: Sequence[float], dates: Sequence[date], guess: float = DEFAULT_GUESS
) -> float:
    """
    Calculate XIRR (IRR with specific dates).

    Matches Excel's XIRR() function behavior for irregular cash flows.

    Returns:
        Annual IRR as decimal

    Raises:
        InvalidInputError: If the inputs are malformed
        NonConvergenceError: If the solver does not converge
    """
    return solve_xirr(cash_flows, dates, guess=guess).unwrap()


def calculate_mirr(
    cash_flows: Sequence[float], finance_rate: float, reinvestment_rate: float
) -> float:
    """
    Calculate Modified Internal Rate of Return.

    Outflows are discounted at ``finance_rate`` and inflows compounded to the
    final period at ``reinvestment_rate``. Returns 0 when the series has no
    outflows or no inflows.
    """
    n = len(cash_flows) - 1
    if n < 1:
        return 0.0

    pv_negative = 0.0
    fv_positive = 0.0
    for t, cf in enumerate(cash_flows):
        if cf < 0:
            pv_negative += cf / ((1 + finance_rate) ** t)
        else:
            fv_positive += cf * ((1 + reinvestment_rate) ** (n - t))

    if pv_negative == 0 or fv_positive == 0:
        return 0.0

    return (fv_positive / abs(pv_negative)) ** (1 / n) - 1


def calculate_payback_period(cash_flows: Sequence[float]) -> Optional[float]:
    """
    Periods needed to recover the initial outlay, interpolated within the
    recovery period. None if the investment is never recovered; 0 when
    there is no outlay to recover.
    """
    cumulative = 0.0
    invested = False
    for t, cf in enumerate(cash_flows):
        previous = cumulative
        cumulative += cf
        invested = invested or cf < 0
        if invested and cumulative >= 0:
            # Earlier inflows already covered the outlay
            if previous >= 0:
                return float(t)
            return t - 1 + abs(previous) / cf
    return None if invested else 0.0


def generate_cash_flow_schedule(
    cash_flows: Sequence[float], discount_rate: float
) -> List[CashFlowRow]:
    """Discounted cash flow schedule with cumulative and running-NPV columns."""
    schedule = []
    cumulative = 0.0
    running_npv = 0.0

    for period, cf in enumerate(cash_flows):
        cumulative += cf
        discounted = cf / ((1 + discount_rate) ** period)
        running_npv += discounted
        schedule.append(
            CashFlowRow(
                period=period,
                cash_flow=cf,
                cumulative=cumulative,
                discounted=discounted,
                npv=running_npv,
            )
        )

    return schedule


def npv_sensitivity(
    cash_flows: Sequence[float],
    min_rate: float = 0.0,
    max_rate: float = 0.5,
    steps: int = 20,
) -> List[Tuple[float, float]]:
    """NPV evaluated on an evenly spaced grid of discount rates."""
    if steps < 2:
        raise InvalidInputError("Sensitivity grid needs at least 2 steps")

    flows = np.asarray(cash_flows, dtype=float)
    periods = np.arange(len(flows))
    results = []
    for rate in np.linspace(min_rate, max_rate, steps):
        npv = float(np.sum(flows / np.power(1 + rate, periods)))
        results.append((float(rate), npv))
    return results


def calculate_multiple(cash_flows: Sequence[float]) -> float:
    """
    Calculate equity multiple.

    Args:
        cash_flows: Array of cash flows (investments are negative)

    Returns:
        Multiple (e.g., 2.0 = 2.0x return)
    """
    total_inflows = sum(cf for cf in cash_flows if cf > 0)
    total_outflows = abs(sum(cf for cf in cash_flows if cf < 0))

    if total_outflows == 0:
        raise InvalidInputError("No investment (outflows) found")

    return total_inflows / total_outflows


def calculate_profit(cash_flows: Sequence[float]) -> float:
    """Calculate profit (total inflows minus total outflows)."""
    return sum(cash_flows)


def analyze_cash_flows(
    cash_flows: Sequence[float],
    discount_rate: float = 0.10,
    guess: float = DEFAULT_GUESS,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS,
) -> CashFlowAnalysis:
    """
    Full IRR calculator output for a cash flow series.

    MIRR uses ``discount_rate`` as the finance rate and the IRR as the
    reinvestment rate; it is None when the IRR did not converge.
    """
    result = solve_irr(cash_flows, guess=guess, tolerance=tolerance, max_iterations=max_iterations)

    mirr = None
    if result.converged:
        mirr = calculate_mirr(cash_flows, discount_rate, result.rate)

    return CashFlowAnalysis(
        irr=result,
        npv=calculate_npv(cash_flows, discount_rate),
        discount_rate=discount_rate,
        mirr=mirr,
        payback_period=calculate_payback_period(cash_flows),
        multiple=calculate_multiple(cash_flows),
        profit=calculate_profit(cash_flows),
        schedule=tuple(generate_cash_flow_schedule(cash_flows, discount_rate)),
    )
