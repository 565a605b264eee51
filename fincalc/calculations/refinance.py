"""
Refinance Comparison

Compares keeping the current loan against replacing it with a new one.
Both loans run through the shared amortization engine.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

from fincalc.calculations.amortization import LoanInput, LoanResult, amortize
from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.metrics import refinance_break_even_months
from fincalc.calculations.rates import MONTHS_PER_YEAR


@dataclass(frozen=True)
class RefinanceInput:
    current_balance: float
    current_rate_percent: float
    current_remaining_years: float
    new_rate_percent: float
    new_term_years: float
    closing_costs: float = 0.0
    cash_out_amount: float = 0.0
    new_loan_amount: Optional[float] = None  # Defaults to balance + cash out
    start_date: Optional[date] = None

    @property
    def financed_amount(self) -> float:
        if self.new_loan_amount is not None:
            return self.new_loan_amount
        return self.current_balance + self.cash_out_amount


@dataclass(frozen=True)
class RefinanceProjection:
    """Balances and running savings at the end of a year."""

    year: int
    month: int
    current_balance: float
    new_balance: float
    cumulative_savings: float  # Starts in the hole by the closing costs


@dataclass(frozen=True)
class RefinanceResult:
    current_payment: float
    new_payment: float
    monthly_savings: float
    current_total_interest: float
    new_total_interest: float
    interest_savings: float
    current_total_cost: float
    new_total_cost: float  # Includes closing costs
    net_lifetime_savings: float
    break_even_months: float  # NEVER_BREAKS_EVEN when the payment does not drop
    projections: Tuple[RefinanceProjection, ...]
    current_loan: LoanResult
    new_loan: LoanResult


def _balance_after(loan: LoanResult, month: int) -> float:
    if month <= 0:
        return loan.principal_financed
    if month > loan.periods:
        return 0.0
    return loan.schedule[month - 1].balance


def _payment_in(loan: LoanResult, month: int) -> float:
    if 1 <= month <= loan.periods:
        return loan.schedule[month - 1].payment
    return 0.0


def _project(current: LoanResult, new: LoanResult, closing_costs: float) -> List[RefinanceProjection]:
    projections = []
    cumulative = -closing_costs

    for month in range(1, max(current.periods, new.periods) + 1):
        cumulative += _payment_in(current, month) - _payment_in(new, month)

        if month % MONTHS_PER_YEAR == 0:
            projections.append(
                RefinanceProjection(
                    year=month // MONTHS_PER_YEAR,
                    month=month,
                    current_balance=_balance_after(current, month),
                    new_balance=_balance_after(new, month),
                    cumulative_savings=cumulative,
                )
            )

    return projections


def compare_refinance(inputs: RefinanceInput) -> RefinanceResult:
    """
    Compare the current loan with a refinance.

    Raises:
        InvalidInputError: Non-positive balance or terms, negative costs
    """
    if inputs.current_balance <= 0:
        raise InvalidInputError("Current loan balance must be positive")
    if inputs.closing_costs < 0:
        raise InvalidInputError("Closing costs cannot be negative")
    if inputs.cash_out_amount < 0:
        raise InvalidInputError("Cash-out amount cannot be negative")
    if inputs.financed_amount <= 0:
        raise InvalidInputError("New loan amount must be positive")

    current = amortize(
        LoanInput.from_years(
            inputs.current_balance,
            inputs.current_rate_percent,
            inputs.current_remaining_years,
            start_date=inputs.start_date,
        )
    )
    new = amortize(
        LoanInput.from_years(
            inputs.financed_amount,
            inputs.new_rate_percent,
            inputs.new_term_years,
            start_date=inputs.start_date,
        )
    )

    monthly_savings = current.payment - new.payment
    new_total_cost = new.total_paid + inputs.closing_costs

    return RefinanceResult(
        current_payment=current.payment,
        new_payment=new.payment,
        monthly_savings=monthly_savings,
        current_total_interest=current.total_interest,
        new_total_interest=new.total_interest,
        interest_savings=current.total_interest - new.total_interest,
        current_total_cost=current.total_paid,
        new_total_cost=new_total_cost,
        net_lifetime_savings=current.total_paid - new_total_cost,
        break_even_months=refinance_break_even_months(inputs.closing_costs, monthly_savings),
        projections=tuple(_project(current, new, inputs.closing_costs)),
        current_loan=current,
        new_loan=new,
    )
