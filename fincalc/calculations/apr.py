"""
APR Calculations

Annual Percentage Rate: the rate at which the present value of the
scheduled payments equals the cash actually received (principal minus
fees), solved with Newton-Raphson.
"""

from dataclasses import dataclass

from fincalc.calculations.amortization import calculate_payment
from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.rates import MONTHS_PER_YEAR, periodic_rate
from fincalc.calculations.solver import SolverResult, newton_raphson

APR_TOLERANCE = 1e-7
APR_MAX_ITERATIONS = 50
APR_BOUNDS = (1e-9, 10.0)


@dataclass(frozen=True)
class LoanCostSummary:
    monthly_payment: float
    total_payment: float
    total_interest: float
    total_fees: float
    total_cost: float
    apr_percent: float


def solve_apr(
    principal: float,
    annual_rate_percent: float,
    term_months: int,
    total_fees: float,
) -> SolverResult:
    """
    Solve for the monthly rate that prices the loan at ``principal - fees``.

    The SolverResult holds the monthly rate as a decimal.

    Raises:
        InvalidInputError: Non-positive principal or term, negative rate or
            fees, or fees that consume the entire principal
    """
    if principal <= 0:
        raise InvalidInputError("Principal must be positive")
    if term_months <= 0:
        raise InvalidInputError("Term must be positive")
    if annual_rate_percent < 0:
        raise InvalidInputError("Interest rate cannot be negative")
    if total_fees < 0:
        raise InvalidInputError("Fees cannot be negative")

    amount_financed = principal - total_fees
    if amount_financed <= 0:
        raise InvalidInputError("Fees must be smaller than the loan amount")

    monthly_rate = periodic_rate(annual_rate_percent, MONTHS_PER_YEAR)

    if total_fees == 0:
        return SolverResult(rate=monthly_rate, iterations=0, converged=True)

    payment = calculate_payment(principal, monthly_rate, term_months)
    n = term_months

    def f(r: float) -> float:
        return payment * (1 - (1 + r) ** -n) / r - amount_financed

    def f_prime(r: float) -> float:
        rn = (1 + r) ** -n
        return payment * (n * r * (1 + r) ** (-n - 1) - 1 + rn) / (r * r)

    return newton_raphson(
        f,
        f_prime,
        initial_guess=monthly_rate or 0.001,
        tolerance=APR_TOLERANCE,
        max_iterations=APR_MAX_ITERATIONS,
        bounds=APR_BOUNDS,
    )


def calculate_apr(
    principal: float,
    annual_rate_percent: float,
    term_months: int,
    total_fees: float,
) -> float:
    """
    Calculate the APR for a loan with upfront fees.

    Args:
        principal: The loan amount
        annual_rate_percent: Nominal annual rate (e.g., 5.0 for 5%)
        term_months: Loan term in months
        total_fees: Fees and closing costs paid at origination

    Returns:
        APR as a percentage (e.g., 5.25)

    Raises:
        InvalidInputError: Malformed loan terms
        NonConvergenceError: Solver failure
    """
    monthly = solve_apr(principal, annual_rate_percent, term_months, total_fees).unwrap()
    return monthly * MONTHS_PER_YEAR * 100


def calculate_loan_summary(
    principal: float,
    annual_rate_percent: float,
    term_months: int,
    total_fees: float,
) -> LoanCostSummary:
    """Total cost of a loan including fees and interest, with its APR."""
    apr = calculate_apr(principal, annual_rate_percent, term_months, total_fees)
    monthly_payment = calculate_payment(
        principal, periodic_rate(annual_rate_percent, MONTHS_PER_YEAR), term_months
    )
    total_payment = monthly_payment * term_months

    return LoanCostSummary(
        monthly_payment=monthly_payment,
        total_payment=total_payment,
        total_interest=total_payment - principal,
        total_fees=total_fees,
        total_cost=total_payment + total_fees,
        apr_percent=apr,
    )
