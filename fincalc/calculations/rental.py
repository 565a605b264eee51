"""
Rental Property Analysis

Generates monthly cash flow projections for a financed rental property,
rolls them up by year, and derives the usual investor metrics (cap rate,
cash-on-cash, DSCR, break-even occupancy, 1% and 50% rules, depreciation)
plus a holding-period analysis: sale at the end of the hold net of
selling costs, total and annualized ROI, and IRR.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from fincalc.calculations import metrics
from fincalc.calculations.amortization import LoanInput, LoanResult, amortize
from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.irr import solve_irr
from fincalc.calculations.rates import MONTHS_PER_YEAR, percent_of, total_periods
from fincalc.calculations.solver import SolverResult

DEFAULT_HOLD_YEARS = 10


@dataclass(frozen=True)
class RentalPropertyInput:
    """Percent fields take whole numbers (8 for 8%)."""

    purchase_price: float
    down_payment_percent: float
    annual_rate_percent: float
    loan_term_years: float
    monthly_rent: float
    closing_costs: float = 0.0
    rehab_costs: float = 0.0
    other_monthly_income: float = 0.0
    annual_rent_increase_percent: float = 0.0

    # Operating expenses
    annual_property_tax: float = 0.0
    annual_insurance: float = 0.0
    monthly_hoa: float = 0.0
    management_percent: float = 0.0  # Of gross income
    maintenance_percent: float = 0.0
    vacancy_percent: float = 0.0
    capex_percent: float = 0.0
    monthly_utilities: float = 0.0
    annual_expense_increase_percent: float = 0.0  # Applies to the fixed costs

    # Tax and appreciation
    marginal_tax_rate_percent: float = 0.0
    building_value_percent: float = 80.0  # Depreciable share of the price
    annual_appreciation_percent: float = 0.0

    # Exit
    holding_period_years: int = DEFAULT_HOLD_YEARS
    selling_costs_percent: float = 0.0  # Of the sale price
    start_date: Optional[date] = None

    @property
    def down_payment(self) -> float:
        return percent_of(self.purchase_price, self.down_payment_percent)

    @property
    def loan_amount(self) -> float:
        return self.purchase_price - self.down_payment

    @property
    def total_cash_invested(self) -> float:
        return self.down_payment + self.closing_costs + self.rehab_costs

    @property
    def gross_monthly_income(self) -> float:
        return self.monthly_rent + self.other_monthly_income


@dataclass(frozen=True)
class MonthlyCashFlow:
    month: int
    year: int
    period_date: date
    rental_income: float
    operating_expenses: float
    noi: float
    debt_service: float
    cash_flow: float
    principal_payment: float
    interest_payment: float
    loan_balance: float
    property_value: float
    equity: float


@dataclass(frozen=True)
class AnnualCashFlow:
    year: int
    rental_income: float
    operating_expenses: float
    noi: float
    debt_service: float
    cash_flow: float
    cumulative_cash_flow: float
    cash_on_cash_return: float
    mortgage_interest: float
    principal_paydown: float
    depreciation: float
    tax_savings: float  # From a paper loss offsetting other income
    property_value: float
    appreciation: float
    loan_balance: float
    equity: float
    roi: float  # (cash flow + principal paydown + appreciation) / cash invested


@dataclass(frozen=True)
class HoldingPeriodSummary:
    """Buy, hold for ``hold_years`` and sell."""

    hold_years: int
    sale_price: float
    selling_costs: float
    loan_payoff: float
    net_sale_proceeds: float
    total_cash_flow: float
    total_profit: float
    total_roi: float  # Decimal
    annualized_roi: float


@dataclass(frozen=True)
class RentalPropertyResult:
    down_payment: float
    loan_amount: float
    total_cash_invested: float
    monthly_payment: float
    monthly_income: float
    monthly_expenses: float
    monthly_cash_flow: float
    annual_income: float
    annual_expenses: float
    noi: float
    annual_cash_flow: float
    cap_rate: float
    cash_on_cash_return: float
    dscr: Optional[float]  # None when the purchase is not financed
    break_even_occupancy: float
    gross_rent_multiplier: float
    one_percent_rule: metrics.RuleCheck
    fifty_percent_rule: metrics.RuleCheck
    annual_depreciation: float
    first_year_tax_savings: float
    holding_period: HoldingPeriodSummary
    irr: SolverResult  # Annual, over the holding period including the sale
    monthly: Tuple[MonthlyCashFlow, ...]
    annual: Tuple[AnnualCashFlow, ...]


def calculate_escalation_factor(annual_rate_percent: float, month: int, frequency: str = "monthly") -> float:
    """
    Growth applied to month ``month`` (1-based).

    Args:
        annual_rate_percent: Annual escalation rate (e.g., 3 for 3%)
        month: Month number, month 1 is unescalated
        frequency: 'monthly' compounds smoothly, 'annual' steps up each year
    """
    growth = 1 + annual_rate_percent / 100
    if frequency == "monthly":
        return growth ** ((month - 1) / MONTHS_PER_YEAR)
    return growth ** ((month - 1) // MONTHS_PER_YEAR)


def monthly_operating_expenses(
    inputs: RentalPropertyInput,
    gross_monthly_income: float,
    fixed_cost_escalation: float = 1.0,
) -> float:
    """
    Fixed costs plus the percentage-of-income costs (management,
    maintenance, vacancy and capex reserve) for one month.
    """
    fixed = (
        inputs.annual_property_tax / MONTHS_PER_YEAR
        + inputs.annual_insurance / MONTHS_PER_YEAR
        + inputs.monthly_hoa
        + inputs.monthly_utilities
    )
    variable_percent = (
        inputs.management_percent
        + inputs.maintenance_percent
        + inputs.vacancy_percent
        + inputs.capex_percent
    )
    return fixed * fixed_cost_escalation + percent_of(gross_monthly_income, variable_percent)


def _validate(inputs: RentalPropertyInput) -> None:
    if inputs.purchase_price <= 0:
        raise InvalidInputError("Purchase price must be positive")
    if not 0 <= inputs.down_payment_percent <= 100:
        raise InvalidInputError("Down payment must be between 0% and 100%")
    if inputs.monthly_rent < 0 or inputs.other_monthly_income < 0:
        raise InvalidInputError("Income cannot be negative")
    if inputs.closing_costs < 0 or inputs.rehab_costs < 0:
        raise InvalidInputError("Costs cannot be negative")
    if not 0 <= inputs.building_value_percent <= 100:
        raise InvalidInputError("Building value must be between 0% and 100%")
    if inputs.holding_period_years < 1:
        raise InvalidInputError("Holding period must be at least one year")
    if not 0 <= inputs.selling_costs_percent <= 100:
        raise InvalidInputError("Selling costs must be between 0% and 100%")
    if inputs.annual_expense_increase_percent <= -100 or inputs.annual_rent_increase_percent <= -100:
        raise InvalidInputError("Growth rates must be greater than -100%")


def generate_monthly_cash_flows(inputs: RentalPropertyInput, loan: LoanResult) -> List[MonthlyCashFlow]:
    """
    Month-by-month projection.

    Runs for the loan term, and at least long enough to cover the holding
    period. Debt service stops once the loan is paid off.
    """
    start_date = inputs.start_date or date.today()
    term_months = total_periods(inputs.loan_term_years, MONTHS_PER_YEAR)
    horizon = max(term_months, inputs.holding_period_years * MONTHS_PER_YEAR)

    cash_flows = []
    for month in range(1, horizon + 1):
        escalation = calculate_escalation_factor(inputs.annual_rent_increase_percent, month)
        income = inputs.gross_monthly_income * escalation
        expenses = monthly_operating_expenses(
            inputs,
            income,
            calculate_escalation_factor(inputs.annual_expense_increase_percent, month),
        )
        noi = income - expenses

        if month <= loan.periods:
            row = loan.schedule[month - 1]
            debt_service, principal, interest, balance = row.payment, row.principal, row.interest, row.balance
        else:
            debt_service, principal, interest, balance = 0.0, 0.0, 0.0, 0.0

        property_value = inputs.purchase_price * (
            1 + inputs.annual_appreciation_percent / 100
        ) ** (month / MONTHS_PER_YEAR)

        cash_flows.append(
            MonthlyCashFlow(
                month=month,
                year=math.ceil(month / MONTHS_PER_YEAR),
                period_date=start_date + relativedelta(months=month - 1),
                rental_income=income,
                operating_expenses=expenses,
                noi=noi,
                debt_service=debt_service,
                cash_flow=noi - debt_service,
                principal_payment=principal,
                interest_payment=interest,
                loan_balance=balance,
                property_value=property_value,
                equity=property_value - balance,
            )
        )

    return cash_flows


def annualize_cash_flows(
    monthly_cash_flows: Sequence[MonthlyCashFlow],
    purchase_price: float,
    total_cash_invested: float,
    annual_depreciation: float,
    marginal_tax_rate_percent: float,
) -> List[AnnualCashFlow]:
    """
    Convert monthly cash flows to annual totals.
    """
    annual = []
    cumulative = 0.0
    value_at_start = purchase_price

    for year in sorted({cf.year for cf in monthly_cash_flows}):
        months = [cf for cf in monthly_cash_flows if cf.year == year]
        last = months[-1]

        income = math.fsum(cf.rental_income for cf in months)
        expenses = math.fsum(cf.operating_expenses for cf in months)
        debt_service = math.fsum(cf.debt_service for cf in months)
        interest = math.fsum(cf.interest_payment for cf in months)
        principal = math.fsum(cf.principal_payment for cf in months)
        noi = income - expenses
        cash_flow = noi - debt_service
        cumulative += cash_flow
        appreciation = last.property_value - value_at_start
        value_at_start = last.property_value

        taxable_income = noi - interest - annual_depreciation
        tax_savings = percent_of(-taxable_income, marginal_tax_rate_percent) if taxable_income < 0 else 0.0

        total_return = cash_flow + principal + appreciation

        annual.append(
            AnnualCashFlow(
                year=year,
                rental_income=income,
                operating_expenses=expenses,
                noi=noi,
                debt_service=debt_service,
                cash_flow=cash_flow,
                cumulative_cash_flow=cumulative,
                cash_on_cash_return=metrics.cash_on_cash_return(cash_flow, total_cash_invested),
                mortgage_interest=interest,
                principal_paydown=principal,
                depreciation=annual_depreciation,
                tax_savings=tax_savings,
                property_value=last.property_value,
                appreciation=appreciation,
                loan_balance=last.loan_balance,
                equity=last.equity,
                roi=total_return / total_cash_invested if total_cash_invested > 0 else 0.0,
            )
        )

    return annual


def _net_sale_proceeds(exit_year: AnnualCashFlow, selling_costs_percent: float) -> float:
    sale_price = exit_year.property_value
    return sale_price - percent_of(sale_price, selling_costs_percent) - exit_year.loan_balance


def summarize_holding_period(
    total_cash_invested: float,
    annual: Sequence[AnnualCashFlow],
    hold_years: int = DEFAULT_HOLD_YEARS,
    selling_costs_percent: float = 0.0,
) -> HoldingPeriodSummary:
    """
    Profit and ROI of selling at the end of year ``hold_years``.

    ROI is 0 when nothing was invested, and the annualized ROI bottoms
    out at -1 (a total loss).
    """
    if not 1 <= hold_years <= len(annual):
        raise InvalidInputError("Holding period is outside the projection")

    exit_year = annual[hold_years - 1]
    selling_costs = percent_of(exit_year.property_value, selling_costs_percent)
    net_sale_proceeds = _net_sale_proceeds(exit_year, selling_costs_percent)
    total_cash_flow = exit_year.cumulative_cash_flow
    total_profit = total_cash_flow + net_sale_proceeds - total_cash_invested

    if total_cash_invested > 0:
        total_roi = total_profit / total_cash_invested
        annualized_roi = (1 + total_roi) ** (1 / hold_years) - 1 if total_roi > -1 else -1.0
    else:
        total_roi = annualized_roi = 0.0

    return HoldingPeriodSummary(
        hold_years=hold_years,
        sale_price=exit_year.property_value,
        selling_costs=selling_costs,
        loan_payoff=exit_year.loan_balance,
        net_sale_proceeds=net_sale_proceeds,
        total_cash_flow=total_cash_flow,
        total_profit=total_profit,
        total_roi=total_roi,
        annualized_roi=annualized_roi,
    )


def holding_period_irr(
    total_cash_invested: float,
    annual: Sequence[AnnualCashFlow],
    hold_years: int = DEFAULT_HOLD_YEARS,
    selling_costs_percent: float = 0.0,
) -> SolverResult:
    """
    Annual IRR of buying, holding for ``hold_years`` and selling at the
    final year's value, net of selling costs and the loan payoff.
    """
    if total_cash_invested <= 0:
        return SolverResult(rate=None, iterations=0, converged=False, reason="no cash invested")
    if len(annual) < hold_years:
        return SolverResult(rate=None, iterations=0, converged=False, reason="projection too short")

    flows = [-total_cash_invested] + [year.cash_flow for year in annual[:hold_years]]
    flows[-1] += _net_sale_proceeds(annual[hold_years - 1], selling_costs_percent)

    if not any(cf > 0 for cf in flows):
        return SolverResult(rate=None, iterations=0, converged=False, reason="investment never returns cash")

    return solve_irr(flows)


def analyze_rental_property(inputs: RentalPropertyInput) -> RentalPropertyResult:
    """
    Full rental property analysis.

    First-year figures use today's rent; the monthly and annual
    projections apply rent and expense growth and appreciation.

    Raises:
        InvalidInputError: Non-positive price, out-of-range percentages,
            negative income or costs, or a holding period under a year
    """
    _validate(inputs)

    loan = amortize(
        LoanInput.from_years(
            inputs.loan_amount,
            inputs.annual_rate_percent,
            inputs.loan_term_years,
            start_date=inputs.start_date,
        )
    )
    monthly_payment = loan.payment

    monthly_income = inputs.gross_monthly_income
    monthly_expenses = monthly_operating_expenses(inputs, monthly_income)
    monthly_cash_flow = monthly_income - monthly_expenses - monthly_payment

    annual_income = monthly_income * MONTHS_PER_YEAR
    annual_expenses = monthly_expenses * MONTHS_PER_YEAR
    noi = metrics.net_operating_income(annual_income, annual_expenses)
    annual_cash_flow = monthly_cash_flow * MONTHS_PER_YEAR
    annual_debt_service = monthly_payment * MONTHS_PER_YEAR

    total_cash_invested = inputs.total_cash_invested
    depreciation = metrics.straight_line_depreciation(
        percent_of(inputs.purchase_price, inputs.building_value_percent)
    )

    monthly = generate_monthly_cash_flows(inputs, loan)
    annual = annualize_cash_flows(
        monthly,
        inputs.purchase_price,
        total_cash_invested,
        depreciation,
        inputs.marginal_tax_rate_percent,
    )
    hold_years = inputs.holding_period_years

    return RentalPropertyResult(
        down_payment=inputs.down_payment,
        loan_amount=inputs.loan_amount,
        total_cash_invested=total_cash_invested,
        monthly_payment=monthly_payment,
        monthly_income=monthly_income,
        monthly_expenses=monthly_expenses,
        monthly_cash_flow=monthly_cash_flow,
        annual_income=annual_income,
        annual_expenses=annual_expenses,
        noi=noi,
        annual_cash_flow=annual_cash_flow,
        cap_rate=metrics.cap_rate(noi, inputs.purchase_price),
        cash_on_cash_return=metrics.cash_on_cash_return(annual_cash_flow, total_cash_invested),
        dscr=metrics.dscr(noi, annual_debt_service) if annual_debt_service > 0 else None,
        break_even_occupancy=(
            metrics.break_even_occupancy(annual_expenses, annual_debt_service, annual_income)
            if annual_income > 0
            else 0.0
        ),
        gross_rent_multiplier=(
            metrics.gross_rent_multiplier(inputs.purchase_price, inputs.monthly_rent * MONTHS_PER_YEAR)
            if inputs.monthly_rent > 0
            else 0.0
        ),
        one_percent_rule=metrics.one_percent_rule(inputs.monthly_rent, inputs.purchase_price),
        fifty_percent_rule=metrics.fifty_percent_rule(monthly_expenses, monthly_income),
        annual_depreciation=depreciation,
        first_year_tax_savings=percent_of(depreciation, inputs.marginal_tax_rate_percent),
        holding_period=summarize_holding_period(
            total_cash_invested, annual, hold_years, inputs.selling_costs_percent
        ),
        irr=holding_period_irr(total_cash_invested, annual, hold_years, inputs.selling_costs_percent),
        monthly=tuple(monthly),
        annual=tuple(annual),
    )
