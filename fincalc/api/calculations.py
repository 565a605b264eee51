"""
Financial calculation API endpoints.

These endpoints accept inputs and return calculated results. They hold
no state; every request runs the calculation engine from scratch.
"""

import logging
from dataclasses import asdict
from datetime import date
from typing import Callable, List, Optional, TypeVar

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator

from fincalc.config import get_settings
from fincalc.calculations import (
    amortization,
    apr,
    interest,
    investment,
    irr,
    metrics,
    overlays,
    refinance,
    rental,
    tvm,
)

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


def _calculate(func: Callable[..., T], *args, **kwargs) -> T:
    """Run a calculation, turning calculation errors into HTTP 400."""
    try:
        return func(*args, **kwargs)
    except ValueError as e:
        logger.warning("%s rejected: %s", func.__name__, e)
        raise HTTPException(status_code=400, detail=str(e))


def _check_term_months(months: int) -> int:
    limit = get_settings().max_term_months
    if months > limit:
        raise ValueError(f"Term cannot exceed {limit} months")
    return months


def _check_term_years(years: float) -> float:
    _check_term_months(int(round(years * 12)))
    return years


# --- Loans -----------------------------------------------------------------


class ExtraPaymentInput(BaseModel):
    amount: float = Field(ge=0)
    kind: amortization.ExtraPaymentKind = amortization.ExtraPaymentKind.MONTHLY
    start_period: Optional[int] = Field(default=None, ge=1)
    mode: amortization.PrepaymentMode = amortization.PrepaymentMode.REDUCE_TERM


class RateChangeInput(BaseModel):
    start_period: int = Field(ge=1)
    annual_rate_percent: float


class AmortizationInput(BaseModel):
    """Input for amortization calculation."""

    principal: float
    annual_rate_percent: float
    term_months: int = Field(gt=0)
    payment_timing: amortization.PaymentTiming = amortization.PaymentTiming.END
    start_date: Optional[date] = None
    extra_payments: List[ExtraPaymentInput] = []
    rate_changes: List[RateChangeInput] = []

    @field_validator("term_months")
    @classmethod
    def check_term(cls, value):
        return _check_term_months(value)


@router.post("/amortization")
async def calculate_amortization(inputs: AmortizationInput):
    """Generate loan amortization schedule."""
    loan = amortization.LoanInput(
        principal=inputs.principal,
        annual_rate_percent=inputs.annual_rate_percent,
        term_months=inputs.term_months,
        payment_timing=inputs.payment_timing,
        start_date=inputs.start_date,
    )
    extras = [
        amortization.ExtraPayment(amount=e.amount, kind=e.kind, start_period=e.start_period, mode=e.mode)
        for e in inputs.extra_payments
    ]
    rate_changes = [
        amortization.RateChange(start_period=c.start_period, annual_rate_percent=c.annual_rate_percent)
        for c in inputs.rate_changes
    ]

    result = _calculate(amortization.amortize, loan, extras, rate_changes)

    return {
        **asdict(result),
        "yearly": [asdict(year) for year in amortization.summarize_by_year(result.schedule)],
    }


class EscrowInput(BaseModel):
    monthly_tax: float = Field(default=0.0, ge=0)
    monthly_insurance: float = Field(default=0.0, ge=0)
    monthly_hoa: float = Field(default=0.0, ge=0)

    def to_costs(self) -> overlays.EscrowCosts:
        return overlays.EscrowCosts(
            monthly_tax=self.monthly_tax,
            monthly_insurance=self.monthly_insurance,
            monthly_hoa=self.monthly_hoa,
        )


class HomeLoanInput(BaseModel):
    home_price: float
    down_payment: float
    annual_rate_percent: float
    term_years: float = Field(gt=0)
    escrow: EscrowInput = EscrowInput()
    start_date: Optional[date] = None

    @field_validator("term_years")
    @classmethod
    def check_term(cls, value):
        return _check_term_years(value)


class MortgageInput(HomeLoanInput):
    pmi_rate_percent: float = Field(default=0.0, ge=0)
    financed_costs: float = 0.0


class FHAInput(HomeLoanInput):
    upfront_mip_rate_percent: float = Field(default=overlays.FHA_UPFRONT_MIP_PERCENT, ge=0)
    annual_mip_rate_percent: float = Field(default=overlays.FHA_ANNUAL_MIP_PERCENT, ge=0)


class VAInput(HomeLoanInput):
    loan_purpose: overlays.VALoanPurpose = overlays.VALoanPurpose.PURCHASE
    is_first_use: bool = True
    is_disabled: bool = False


def _mortgage_response(result: overlays.MortgageResult) -> dict:
    return {
        **asdict(result),
        "down_payment_percent": result.down_payment_percent,
        "total_cost": result.total_cost,
    }


@router.post("/mortgage")
async def calculate_mortgage(inputs: MortgageInput):
    """Conventional mortgage with PMI and escrow."""
    result = _calculate(
        overlays.calculate_mortgage,
        overlays.MortgageInput(
            home_price=inputs.home_price,
            down_payment=inputs.down_payment,
            annual_rate_percent=inputs.annual_rate_percent,
            term_years=inputs.term_years,
            escrow=inputs.escrow.to_costs(),
            pmi_rate_percent=inputs.pmi_rate_percent,
            financed_costs=inputs.financed_costs,
            start_date=inputs.start_date,
        ),
    )
    return _mortgage_response(result)


@router.post("/fha")
async def calculate_fha(inputs: FHAInput):
    """FHA loan with financed upfront MIP and monthly MIP."""
    result = _calculate(
        overlays.calculate_fha,
        overlays.FHAInput(
            home_price=inputs.home_price,
            down_payment=inputs.down_payment,
            annual_rate_percent=inputs.annual_rate_percent,
            term_years=inputs.term_years,
            upfront_mip_rate_percent=inputs.upfront_mip_rate_percent,
            annual_mip_rate_percent=inputs.annual_mip_rate_percent,
            escrow=inputs.escrow.to_costs(),
            start_date=inputs.start_date,
        ),
    )
    return _mortgage_response(result)


@router.post("/va")
async def calculate_va(inputs: VAInput):
    """VA loan with financed funding fee."""
    result = _calculate(
        overlays.calculate_va,
        overlays.VAInput(
            home_price=inputs.home_price,
            down_payment=inputs.down_payment,
            annual_rate_percent=inputs.annual_rate_percent,
            term_years=inputs.term_years,
            loan_purpose=inputs.loan_purpose,
            is_first_use=inputs.is_first_use,
            is_disabled=inputs.is_disabled,
            escrow=inputs.escrow.to_costs(),
            start_date=inputs.start_date,
        ),
    )
    return _mortgage_response(result)


class APRInput(BaseModel):
    principal: float
    annual_rate_percent: float
    term_months: int = Field(gt=0)
    total_fees: float = 0.0

    @field_validator("term_months")
    @classmethod
    def check_term(cls, value):
        return _check_term_months(value)


@router.post("/apr")
async def calculate_apr(inputs: APRInput):
    """APR and total cost of a loan with upfront fees."""
    summary = _calculate(
        apr.calculate_loan_summary,
        inputs.principal,
        inputs.annual_rate_percent,
        inputs.term_months,
        inputs.total_fees,
    )
    return asdict(summary)


# --- Cash flows ------------------------------------------------------------


class IRRInput(BaseModel):
    """Input for IRR calculation."""

    cash_flows: List[float]
    dates: Optional[List[date]] = None
    discount_rate: Optional[float] = None


@router.post("/irr")
async def calculate_irr_endpoint(inputs: IRRInput):
    """Calculate IRR for given cash flows."""
    settings = get_settings()
    discount_rate = (
        inputs.discount_rate if inputs.discount_rate is not None else settings.default_discount_rate
    )

    if inputs.dates:
        xirr = _calculate(irr.calculate_xirr, inputs.cash_flows, inputs.dates, settings.solver_initial_guess)
        return {
            "irr": xirr,
            "npv": _calculate(irr.calculate_xnpv, inputs.cash_flows, inputs.dates, discount_rate),
            "discount_rate": discount_rate,
            "multiple": _calculate(irr.calculate_multiple, inputs.cash_flows),
            "profit": irr.calculate_profit(inputs.cash_flows),
        }

    analysis = _calculate(
        irr.analyze_cash_flows,
        inputs.cash_flows,
        discount_rate=discount_rate,
        guess=settings.solver_initial_guess,
        tolerance=settings.solver_tolerance,
        max_iterations=settings.solver_max_iterations,
    )

    rate = _calculate(analysis.irr.unwrap)

    return {**asdict(analysis), "irr": rate, "irr_iterations": analysis.irr.iterations}


class NPVInput(BaseModel):
    cash_flows: List[float] = Field(min_length=1)
    discount_rate: float = Field(gt=-1)


@router.post("/npv")
async def calculate_npv_endpoint(inputs: NPVInput):
    """Net present value with the discounted cash flow schedule."""
    return {
        "npv": irr.calculate_npv(inputs.cash_flows, inputs.discount_rate),
        "schedule": [
            asdict(row) for row in irr.generate_cash_flow_schedule(inputs.cash_flows, inputs.discount_rate)
        ],
    }


# --- Savings and investments -----------------------------------------------


class InvestmentInput(BaseModel):
    annual_rate_percent: float
    years: float = Field(ge=0)
    lumpsum: float = Field(default=0.0, ge=0)
    monthly_contribution: float = Field(default=0.0, ge=0)
    step_up_percent: float = 0.0
    inflation_rate_percent: Optional[float] = None
    tax_rate_percent: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator("years")
    @classmethod
    def check_term(cls, value):
        return _check_term_years(value)


@router.post("/investment")
async def calculate_investment(inputs: InvestmentInput):
    """Future value of a lumpsum, SIP, step-up or combined plan."""
    plan = investment.InvestmentInput(**inputs.model_dump())
    result = _calculate(investment.project_investment, plan)

    return {
        **asdict(result),
        "kind": plan.kind,
        "yearly": [asdict(year) for year in investment.generate_yearly_breakdown(plan)],
    }


class GoalInput(BaseModel):
    target_amount: float = Field(gt=0)
    current_savings: float = 0.0
    annual_rate_percent: float
    years: float = Field(gt=0)

    @field_validator("years")
    @classmethod
    def check_term(cls, value):
        return _check_term_years(value)


@router.post("/goal")
async def calculate_goal(inputs: GoalInput):
    """Monthly contribution needed to reach a savings target."""
    contribution = _calculate(
        investment.required_monthly_contribution,
        inputs.target_amount,
        inputs.current_savings,
        inputs.annual_rate_percent,
        inputs.years,
    )
    return {"monthly_contribution": contribution}


class InterestInput(BaseModel):
    principal: float
    annual_rate_percent: float
    years: int = Field(ge=0, le=100)
    compounding: Optional[str] = None  # None = simple interest


@router.post("/interest")
async def calculate_interest(inputs: InterestInput):
    """Simple interest, or compound interest at the given frequency."""
    if inputs.compounding is None:
        result = _calculate(
            interest.calculate_simple_interest,
            inputs.principal,
            inputs.annual_rate_percent,
            inputs.years,
        )
        return asdict(result)

    result = _calculate(
        interest.calculate_compound_interest,
        inputs.principal,
        inputs.annual_rate_percent,
        inputs.years,
        inputs.compounding,
    )
    return {
        **asdict(result),
        "apy_percent": interest.calculate_apy(inputs.annual_rate_percent, inputs.compounding),
    }


class TVMInput(BaseModel):
    """Supply every value except ``solve_for``."""

    solve_for: str = Field(pattern="^(fv|pv|pmt|n|rate)$")
    present_value: float = 0.0
    payment: float = 0.0
    future_value: float = 0.0
    annual_rate_percent: float = 0.0
    periods: float = 0.0
    frequency: str = "monthly"
    timing: amortization.PaymentTiming = amortization.PaymentTiming.END


@router.post("/tvm")
async def calculate_tvm(inputs: TVMInput):
    """Time value of money solver."""
    if inputs.solve_for == "fv":
        value = _calculate(
            tvm.future_value, inputs.present_value, inputs.payment, inputs.annual_rate_percent,
            inputs.periods, inputs.frequency, inputs.timing,
        )
    elif inputs.solve_for == "pv":
        value = _calculate(
            tvm.present_value, inputs.future_value, inputs.payment, inputs.annual_rate_percent,
            inputs.periods, inputs.frequency, inputs.timing,
        )
    elif inputs.solve_for == "pmt":
        value = _calculate(
            tvm.payment, inputs.present_value, inputs.future_value, inputs.annual_rate_percent,
            inputs.periods, inputs.frequency, inputs.timing,
        )
    elif inputs.solve_for == "n":
        value = _calculate(
            tvm.number_of_periods, inputs.present_value, inputs.payment, inputs.future_value,
            inputs.annual_rate_percent, inputs.frequency, inputs.timing,
        )
    else:
        value = _calculate(
            tvm.interest_rate, inputs.present_value, inputs.payment, inputs.future_value,
            int(inputs.periods), inputs.frequency, inputs.timing,
        )

    return {"solve_for": inputs.solve_for, "value": value}


# --- Real estate -----------------------------------------------------------


class RefinanceInput(BaseModel):
    current_balance: float
    current_rate_percent: float
    current_remaining_years: float = Field(gt=0)
    new_rate_percent: float
    new_term_years: float = Field(gt=0)
    closing_costs: float = 0.0
    cash_out_amount: float = 0.0
    new_loan_amount: Optional[float] = None
    start_date: Optional[date] = None

    @field_validator("current_remaining_years", "new_term_years")
    @classmethod
    def check_term(cls, value):
        return _check_term_years(value)


@router.post("/refinance")
async def calculate_refinance(inputs: RefinanceInput):
    """Compare the current loan with a refinance."""
    result = _calculate(refinance.compare_refinance, refinance.RefinanceInput(**inputs.model_dump()))

    response = asdict(result)
    # Totals are enough here; /amortization serves full schedules
    for key in ("current_loan", "new_loan"):
        response[key].pop("schedule")
    return response


class RentalInput(BaseModel):
    purchase_price: float
    down_payment_percent: float = Field(ge=0, le=100)
    annual_rate_percent: float
    loan_term_years: float = Field(gt=0)
    monthly_rent: float = Field(ge=0)
    closing_costs: float = 0.0
    rehab_costs: float = 0.0
    other_monthly_income: float = 0.0
    annual_rent_increase_percent: float = 0.0
    annual_property_tax: float = 0.0
    annual_insurance: float = 0.0
    monthly_hoa: float = 0.0
    management_percent: float = 0.0
    maintenance_percent: float = 0.0
    vacancy_percent: float = 0.0
    capex_percent: float = 0.0
    monthly_utilities: float = 0.0
    annual_expense_increase_percent: float = 0.0
    marginal_tax_rate_percent: float = 0.0
    building_value_percent: float = Field(default=80.0, ge=0, le=100)
    annual_appreciation_percent: float = 0.0
    holding_period_years: int = Field(default=rental.DEFAULT_HOLD_YEARS, ge=1, le=100)
    selling_costs_percent: float = Field(default=0.0, ge=0, le=100)
    start_date: Optional[date] = None
    include_monthly: bool = False

    @field_validator("loan_term_years")
    @classmethod
    def check_term(cls, value):
        return _check_term_years(value)


@router.post("/rental")
async def calculate_rental(inputs: RentalInput):
    """Rental property cash flow and return analysis."""
    property_input = rental.RentalPropertyInput(**inputs.model_dump(exclude={"include_monthly"}))
    result = _calculate(rental.analyze_rental_property, property_input)

    response = asdict(result)
    response["irr"] = result.irr.rate
    response["irr_converged"] = result.irr.converged
    if not inputs.include_monthly:
        response.pop("monthly")
    return response


class BreakEvenInput(BaseModel):
    closing_costs: float = Field(ge=0)
    monthly_savings: float


@router.post("/metrics/refinance-break-even")
async def calculate_refinance_break_even(inputs: BreakEvenInput):
    """Months until a refinance pays for itself (-1 if never)."""
    months = metrics.refinance_break_even_months(inputs.closing_costs, inputs.monthly_savings)
    return {
        "break_even_months": months,
        "breaks_even": months != metrics.NEVER_BREAKS_EVEN,
    }


class DTIInput(BaseModel):
    """Monthly amounts for a debt-to-income check."""

    gross_monthly_income: float
    mortgage_or_rent: float = Field(default=0.0, ge=0)
    property_tax: float = Field(default=0.0, ge=0)
    home_insurance: float = Field(default=0.0, ge=0)
    hoa_fees: float = Field(default=0.0, ge=0)
    other_monthly_debts: List[float] = []

    @property
    def housing_costs(self) -> float:
        return self.mortgage_or_rent + self.property_tax + self.home_insurance + self.hoa_fees


@router.post("/metrics/dti")
async def calculate_dti(inputs: DTIInput):
    """Front-end and back-end debt-to-income ratios with loan qualification."""
    result = _calculate(
        metrics.analyze_dti,
        inputs.gross_monthly_income,
        inputs.housing_costs,
        inputs.other_monthly_debts,
    )
    return asdict(result)
