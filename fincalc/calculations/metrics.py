"""
Real Estate Metrics

Ratios used by the rental property, cap rate, DSCR, refinance and
debt-to-income calculators. All ratios are returned as decimals (0.08 for 8%).
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.rates import MONTHS_PER_YEAR

RESIDENTIAL_RECOVERY_YEARS = 27.5

ONE_PERCENT_RULE_THRESHOLD = 0.01
FIFTY_PERCENT_RULE_RANGE = (0.40, 0.60)

NEVER_BREAKS_EVEN = -1.0

# (front-end, back-end) limits
CONVENTIONAL_DTI_LIMITS = (0.28, 0.36)
FHA_DTI_LIMITS = (0.31, 0.43)
VA_BACK_END_LIMIT = 0.41  # VA has no front-end limit


@dataclass(frozen=True)
class RuleCheck:
    passes: bool
    ratio: float


def net_operating_income(annual_income: float, annual_operating_expenses: float) -> float:
    """NOI excludes debt service."""
    return annual_income - annual_operating_expenses


def cap_rate(annual_noi: float, property_value: float) -> float:
    """
    Capitalization rate = NOI / property value.

    Raises:
        InvalidInputError: If the property value is not positive
    """
    if property_value <= 0:
        raise InvalidInputError("Property value must be positive")
    return annual_noi / property_value


def cash_on_cash_return(annual_cash_flow: float, total_cash_invested: float) -> float:
    """Annual pre-tax cash flow over the cash actually put in; 0 with nothing invested."""
    if total_cash_invested <= 0:
        return 0.0
    return annual_cash_flow / total_cash_invested


def dscr(annual_noi: float, annual_debt_service: float) -> float:
    """Debt service coverage ratio. Infinite when there is no debt."""
    if annual_debt_service <= 0:
        return math.inf
    return annual_noi / annual_debt_service


def break_even_occupancy(
    annual_operating_expenses: float,
    annual_debt_service: float,
    potential_gross_income: float,
) -> float:
    """Share of potential rent needed to cover expenses and debt service."""
    if potential_gross_income <= 0:
        raise InvalidInputError("Potential gross income must be positive")
    return (annual_operating_expenses + annual_debt_service) / potential_gross_income


def gross_rent_multiplier(purchase_price: float, annual_gross_rent: float) -> float:
    if annual_gross_rent <= 0:
        raise InvalidInputError("Annual gross rent must be positive")
    return purchase_price / annual_gross_rent


def operating_expense_ratio(annual_operating_expenses: float, annual_income: float) -> float:
    if annual_income <= 0:
        return 0.0
    return annual_operating_expenses / annual_income


def loan_constant(monthly_payment: float, loan_amount: float) -> float:
    """Annual debt service per dollar borrowed."""
    if loan_amount <= 0:
        raise InvalidInputError("Loan amount must be positive")
    return monthly_payment * MONTHS_PER_YEAR / loan_amount


def one_percent_rule(monthly_rent: float, purchase_price: float) -> RuleCheck:
    """Monthly rent should be at least 1% of the purchase price."""
    if purchase_price <= 0:
        raise InvalidInputError("Purchase price must be positive")
    ratio = monthly_rent / purchase_price
    return RuleCheck(passes=ratio >= ONE_PERCENT_RULE_THRESHOLD, ratio=ratio)


def fifty_percent_rule(monthly_operating_expenses: float, monthly_income: float) -> RuleCheck:
    """Operating expenses should run at roughly half of income."""
    ratio = operating_expense_ratio(monthly_operating_expenses, monthly_income)
    low, high = FIFTY_PERCENT_RULE_RANGE
    return RuleCheck(passes=low <= ratio <= high, ratio=ratio)


def straight_line_depreciation(
    depreciable_basis: float, recovery_years: float = RESIDENTIAL_RECOVERY_YEARS
) -> float:
    """Annual depreciation; residential rental property recovers over 27.5 years."""
    if recovery_years <= 0:
        raise InvalidInputError("Recovery period must be positive")
    return max(depreciable_basis, 0.0) / recovery_years


def refinance_break_even_months(closing_costs: float, monthly_savings: float) -> float:
    """
    Months of savings needed to recover closing costs.

    Returns NEVER_BREAKS_EVEN when the new loan does not lower the payment.
    """
    if monthly_savings <= 0:
        return NEVER_BREAKS_EVEN
    return closing_costs / monthly_savings


class DTIHealth(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    RISKY = "risky"
    HIGH_RISK = "high-risk"


# Upper bound of each back-end band; anything above the last is HIGH_RISK
DTI_HEALTH_BANDS = (
    (0.33, DTIHealth.EXCELLENT),
    (0.36, DTIHealth.GOOD),
    (0.43, DTIHealth.MODERATE),
    (0.50, DTIHealth.RISKY),
)


@dataclass(frozen=True)
class LoanQualification:
    conventional: bool
    fha: bool
    va: bool


@dataclass(frozen=True)
class DTIResult:
    gross_monthly_income: float
    housing_costs: float
    other_debts: float
    total_monthly_debts: float  # Housing plus other debts
    front_end_ratio: float
    back_end_ratio: float
    qualification: LoanQualification
    health: DTIHealth


def debt_to_income(monthly_debts: float, gross_monthly_income: float) -> float:
    """Monthly obligations over gross monthly income; 0 without income."""
    if gross_monthly_income <= 0:
        return 0.0
    return monthly_debts / gross_monthly_income


def check_loan_qualification(front_end_ratio: float, back_end_ratio: float) -> LoanQualification:
    """Compare DTI ratios against the conventional, FHA and VA guidelines."""
    return LoanQualification(
        conventional=(
            front_end_ratio <= CONVENTIONAL_DTI_LIMITS[0] and back_end_ratio <= CONVENTIONAL_DTI_LIMITS[1]
        ),
        fha=front_end_ratio <= FHA_DTI_LIMITS[0] and back_end_ratio <= FHA_DTI_LIMITS[1],
        va=back_end_ratio <= VA_BACK_END_LIMIT,
    )


def dti_health(back_end_ratio: float) -> DTIHealth:
    for upper, health in DTI_HEALTH_BANDS:
        if back_end_ratio <= upper:
            return health
    return DTIHealth.HIGH_RISK


def analyze_dti(
    gross_monthly_income: float,
    housing_costs: float,
    other_monthly_debts: Iterable[float] = (),
) -> DTIResult:
    """
    Front-end (housing) and back-end (all debts) debt-to-income analysis.

    Args:
        gross_monthly_income: Income from all sources before tax
        housing_costs: Mortgage or rent plus property tax, insurance and HOA
        other_monthly_debts: Minimum payments on non-housing debts

    Raises:
        InvalidInputError: Non-positive income or negative costs
    """
    debts = list(other_monthly_debts)
    if gross_monthly_income <= 0:
        raise InvalidInputError("Gross monthly income must be positive")
    if housing_costs < 0 or any(debt < 0 for debt in debts):
        raise InvalidInputError("Monthly costs cannot be negative")

    other_debts = math.fsum(debts)
    total_debts = housing_costs + other_debts
    front_end = debt_to_income(housing_costs, gross_monthly_income)
    back_end = debt_to_income(total_debts, gross_monthly_income)

    return DTIResult(
        gross_monthly_income=gross_monthly_income,
        housing_costs=housing_costs,
        other_debts=other_debts,
        total_monthly_debts=total_debts,
        front_end_ratio=front_end,
        back_end_ratio=back_end,
        qualification=check_loan_qualification(front_end, back_end),
        health=dti_health(back_end),
    )
