"""
Escrow and Fee Overlays

Loan-type specific costs layered on top of the shared amortization engine:
financed upfront fees (FHA upfront MIP, VA funding fee), monthly mortgage
insurance (FHA annual MIP, conventional PMI) and fixed escrow adders
(property tax, homeowners insurance, HOA dues).

Overlays never change the principal/interest math; they recompute the
base loan on the financed amount and attach a per-period fee.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Callable, Optional, Tuple

from fincalc.calculations.amortization import (
    AmortizationPeriod,
    LoanInput,
    LoanResult,
    amortize,
)
from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.rates import MONTHS_PER_YEAR, ratio_percent, total_periods

FeeFunction = Callable[[AmortizationPeriod], float]

# FHA defaults
FHA_UPFRONT_MIP_PERCENT = 1.75
FHA_ANNUAL_MIP_PERCENT = 0.55

# Conventional PMI: charged below 20% down, dropped at 78% of the original value
PMI_REQUIRED_BELOW_DOWN_PERCENT = 20.0
PMI_CANCEL_LTV = 0.78


class VALoanPurpose(str, Enum):
    PURCHASE = "purchase"
    CASH_OUT = "cash-out"
    IRRRL = "irrrl"


@dataclass(frozen=True)
class EscrowCosts:
    """Fixed monthly adders paid alongside principal and interest."""

    monthly_tax: float = 0.0
    monthly_insurance: float = 0.0
    monthly_hoa: float = 0.0

    @property
    def total(self) -> float:
        return self.monthly_tax + self.monthly_insurance + self.monthly_hoa


@dataclass(frozen=True)
class MortgageInput:
    """Conventional mortgage with optional PMI."""

    home_price: float
    down_payment: float
    annual_rate_percent: float
    term_years: float
    escrow: EscrowCosts = field(default_factory=EscrowCosts)
    pmi_rate_percent: float = 0.0  # Annual, on the loan amount
    financed_costs: float = 0.0  # One-time closing costs rolled into the loan
    start_date: Optional[date] = None


@dataclass(frozen=True)
class FHAInput:
    home_price: float
    down_payment: float
    annual_rate_percent: float
    term_years: float
    upfront_mip_rate_percent: float = FHA_UPFRONT_MIP_PERCENT
    annual_mip_rate_percent: float = FHA_ANNUAL_MIP_PERCENT
    escrow: EscrowCosts = field(default_factory=EscrowCosts)
    start_date: Optional[date] = None


@dataclass(frozen=True)
class VAInput:
    home_price: float
    down_payment: float
    annual_rate_percent: float
    term_years: float
    loan_purpose: VALoanPurpose = VALoanPurpose.PURCHASE
    is_first_use: bool = True
    is_disabled: bool = False  # Service-connected disability: fee waived
    escrow: EscrowCosts = field(default_factory=EscrowCosts)
    start_date: Optional[date] = None


@dataclass(frozen=True)
class FundingFee:
    rate_percent: float
    amount: float


@dataclass(frozen=True)
class MortgageResult:
    """Mortgage payment breakdown with overlay costs."""

    home_price: float
    down_payment: float
    base_loan_amount: float
    upfront_fee_rate_percent: float
    upfront_fee: float
    total_loan_amount: float
    monthly_principal_and_interest: float
    monthly_mortgage_insurance: float  # First month's MIP/PMI
    escrow: EscrowCosts
    total_monthly_payment: float
    total_mortgage_insurance: float
    total_escrow: float
    loan: LoanResult

    @property
    def down_payment_percent(self) -> float:
        return ratio_percent(self.down_payment, self.home_price)

    @property
    def total_cost(self) -> float:
        """Everything paid over the term, excluding the down payment."""
        return self.loan.total_paid + self.total_mortgage_insurance + self.total_escrow


def apply_overlay(result: LoanResult, fee_for: FeeFunction) -> LoanResult:
    """
    Attach a per-period fee to every row of a base amortization.

    The interest/principal split and balances are left untouched.
    """
    schedule = tuple(replace(row, fee=row.fee + fee_for(row)) for row in result.schedule)
    return replace(
        result,
        schedule=schedule,
        total_fees=math.fsum(row.fee for row in schedule),
    )


def constant_fee(amount: float) -> FeeFunction:
    """Same fee every period (FHA annual MIP in this model)."""
    return lambda row: amount


def pmi_fee(monthly_pmi: float, cancel_balance: float) -> FeeFunction:
    """PMI charged while the balance is above ``cancel_balance``."""
    return lambda row: monthly_pmi if row.beginning_balance > cancel_balance else 0.0


def finance_upfront_fee(base_principal: float, upfront_fee_rate_percent: float) -> Tuple[float, float]:
    """
    Roll an upfront fee into the loan.

    Returns:
        (fee amount, financed principal)
    """
    fee = base_principal * upfront_fee_rate_percent / 100
    return fee, base_principal + fee


def base_loan_amount(home_price: float, down_payment: float) -> float:
    """
    Purchase price minus down payment.

    Raises:
        InvalidInputError: Non-positive price, negative down payment, or a
            down payment larger than the price
    """
    if home_price <= 0:
        raise InvalidInputError("Home price must be positive")
    if down_payment < 0:
        raise InvalidInputError("Down payment cannot be negative")
    if down_payment > home_price:
        raise InvalidInputError("Down payment cannot exceed home price")
    return home_price - down_payment


def _term_months(term_years: float) -> int:
    months = total_periods(term_years, MONTHS_PER_YEAR)
    if months <= 0:
        raise InvalidInputError("Loan term must be positive")
    return months


def _build_result(
    home_price: float,
    down_payment: float,
    base_amount: float,
    upfront_rate: float,
    upfront_fee: float,
    loan: LoanResult,
    escrow: EscrowCosts,
    term_months: int,
) -> MortgageResult:
    first_fee = loan.schedule[0].fee if loan.schedule else 0.0

    return MortgageResult(
        home_price=home_price,
        down_payment=down_payment,
        base_loan_amount=base_amount,
        upfront_fee_rate_percent=upfront_rate,
        upfront_fee=upfront_fee,
        total_loan_amount=loan.principal_financed,
        monthly_principal_and_interest=loan.payment,
        monthly_mortgage_insurance=first_fee,
        escrow=escrow,
        total_monthly_payment=loan.payment + escrow.total + first_fee,
        total_mortgage_insurance=loan.total_fees,
        total_escrow=escrow.total * term_months,
        loan=loan,
    )


def calculate_mortgage(inputs: MortgageInput) -> MortgageResult:
    """
    Conventional mortgage payment.

    PMI is charged when the down payment is under 20% of the price and is
    dropped once the balance falls to 78% of the original home value.
    """
    base_amount = base_loan_amount(inputs.home_price, inputs.down_payment)
    if inputs.financed_costs < 0:
        raise InvalidInputError("Financed costs cannot be negative")

    term_months = _term_months(inputs.term_years)
    financed = base_amount + inputs.financed_costs

    loan = amortize(
        LoanInput(
            principal=financed,
            annual_rate_percent=inputs.annual_rate_percent,
            term_months=term_months,
            start_date=inputs.start_date,
        )
    )

    down_percent = ratio_percent(inputs.down_payment, inputs.home_price)
    if inputs.pmi_rate_percent > 0 and down_percent < PMI_REQUIRED_BELOW_DOWN_PERCENT:
        monthly_pmi = financed * inputs.pmi_rate_percent / 100 / MONTHS_PER_YEAR
        loan = apply_overlay(loan, pmi_fee(monthly_pmi, inputs.home_price * PMI_CANCEL_LTV))

    return _build_result(
        inputs.home_price,
        inputs.down_payment,
        base_amount,
        0.0,
        0.0,
        loan,
        inputs.escrow,
        term_months,
    )


def calculate_fha(inputs: FHAInput) -> MortgageResult:
    """
    FHA loan: upfront MIP is financed, annual MIP is charged monthly.

    Monthly MIP = financed principal * annual MIP rate / 12, held constant
    for the whole term (no cancellation in this model).
    """
    base_amount = base_loan_amount(inputs.home_price, inputs.down_payment)
    term_months = _term_months(inputs.term_years)

    upfront_mip, financed = finance_upfront_fee(base_amount, inputs.upfront_mip_rate_percent)

    loan = amortize(
        LoanInput(
            principal=financed,
            annual_rate_percent=inputs.annual_rate_percent,
            term_months=term_months,
            start_date=inputs.start_date,
        )
    )

    monthly_mip = financed * inputs.annual_mip_rate_percent / 100 / MONTHS_PER_YEAR
    loan = apply_overlay(loan, constant_fee(monthly_mip))

    return _build_result(
        inputs.home_price,
        inputs.down_payment,
        base_amount,
        inputs.upfront_mip_rate_percent,
        upfront_mip,
        loan,
        inputs.escrow,
        term_months,
    )


def va_funding_fee_rate(
    down_payment_percent: float,
    loan_purpose: VALoanPurpose,
    is_first_use: bool,
    is_disabled: bool,
) -> float:
    """VA funding fee as a percentage of the loan amount."""
    if is_disabled:
        return 0.0

    if loan_purpose == VALoanPurpose.IRRRL:
        return 0.5

    if loan_purpose == VALoanPurpose.CASH_OUT:
        return 2.15 if is_first_use else 3.3

    # Purchase: tiered on down payment
    if down_payment_percent < 5:
        return 2.15 if is_first_use else 3.3
    if down_payment_percent < 10:
        return 1.5
    return 1.25


def calculate_va_funding_fee(
    home_price: float,
    down_payment: float,
    loan_purpose: VALoanPurpose = VALoanPurpose.PURCHASE,
    is_first_use: bool = True,
    is_disabled: bool = False,
) -> FundingFee:
    """Funding fee rate and amount; zero whenever the borrower is exempt."""
    base_amount = base_loan_amount(home_price, down_payment)
    rate = va_funding_fee_rate(
        ratio_percent(down_payment, home_price), loan_purpose, is_first_use, is_disabled
    )
    return FundingFee(rate_percent=rate, amount=base_amount * rate / 100)


def calculate_va(inputs: VAInput) -> MortgageResult:
    """VA loan: funding fee financed into the loan, no monthly mortgage insurance."""
    base_amount = base_loan_amount(inputs.home_price, inputs.down_payment)
    term_months = _term_months(inputs.term_years)

    fee = calculate_va_funding_fee(
        inputs.home_price,
        inputs.down_payment,
        inputs.loan_purpose,
        inputs.is_first_use,
        inputs.is_disabled,
    )

    loan = amortize(
        LoanInput(
            principal=base_amount + fee.amount,
            annual_rate_percent=inputs.annual_rate_percent,
            term_months=term_months,
            start_date=inputs.start_date,
        )
    )

    return _build_result(
        inputs.home_price,
        inputs.down_payment,
        base_amount,
        fee.rate_percent,
        fee.amount,
        loan,
        inputs.escrow,
        term_months,
    )
