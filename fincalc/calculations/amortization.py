"""
Loan Amortization Calculations

Implements loan payment and amortization schedule calculations,
matching Excel's PMT, IPMT, and PPMT functions. This is the single
amortization engine behind the mortgage, auto, personal, FHA, VA,
refinance and rental property calculators.
"""

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.rates import (
    MONTHS_PER_YEAR,
    compound_growth,
    ensure_finite,
    periodic_rate,
    total_periods,
)


class PaymentTiming(str, Enum):
    """When in each period the payment is made."""

    END = "end"  # Ordinary annuity (loans)
    BEGIN = "begin"  # Annuity-due


class ExtraPaymentKind(str, Enum):
    MONTHLY = "monthly"
    LUMP = "lump"


class PrepaymentMode(str, Enum):
    """What a prepayment buys: a shorter loan or a smaller payment."""

    REDUCE_TERM = "reduce-term"
    REDUCE_PAYMENT = "reduce-payment"  # Re-amortize over the remaining term


@dataclass(frozen=True)
class ExtraPayment:
    """Prepayment applied directly to principal."""

    amount: float
    kind: ExtraPaymentKind = ExtraPaymentKind.MONTHLY
    start_period: Optional[int] = None  # 1-based; None = from the first period
    mode: PrepaymentMode = PrepaymentMode.REDUCE_TERM

    def amount_for(self, period: int) -> float:
        if self.kind == ExtraPaymentKind.LUMP:
            return self.amount if period == (self.start_period or 1) else 0.0
        if self.start_period is None or period >= self.start_period:
            return self.amount
        return 0.0


@dataclass(frozen=True)
class RateChange:
    """New annual rate from ``start_period`` (1-based) onward."""

    start_period: int
    annual_rate_percent: float

    @property
    def monthly_rate(self) -> float:
        return periodic_rate(self.annual_rate_percent, MONTHS_PER_YEAR)


@dataclass(frozen=True)
class LoanInput:
    """Inputs for a fixed-rate, fully amortizing loan."""

    principal: float
    annual_rate_percent: float
    term_months: int
    payment_timing: PaymentTiming = PaymentTiming.END
    start_date: Optional[date] = None

    @classmethod
    def from_years(
        cls,
        principal: float,
        annual_rate_percent: float,
        term_years: float,
        payment_timing: PaymentTiming = PaymentTiming.END,
        start_date: Optional[date] = None,
    ) -> "LoanInput":
        return cls(
            principal=principal,
            annual_rate_percent=annual_rate_percent,
            term_months=total_periods(term_years, MONTHS_PER_YEAR),
            payment_timing=payment_timing,
            start_date=start_date,
        )

    @property
    def monthly_rate(self) -> float:
        return periodic_rate(self.annual_rate_percent, MONTHS_PER_YEAR)


@dataclass(frozen=True)
class AmortizationPeriod:
    """A single row of an amortization schedule."""

    period: int
    payment_date: date
    beginning_balance: float
    payment: float  # Principal + interest (includes any extra principal)
    principal: float
    interest: float
    balance: float  # Remaining balance after this payment
    fee: float = 0.0  # Overlay cost for the period (MIP, PMI, ...)

    @property
    def total_payment(self) -> float:
        return self.payment + self.fee


@dataclass(frozen=True)
class LoanResult:
    """Loan aggregates plus the full amortization schedule."""

    payment: float  # Scheduled periodic payment
    total_interest: float
    total_paid: float
    principal_financed: float
    schedule: Tuple[AmortizationPeriod, ...] = ()
    total_fees: float = 0.0
    final_payment: Optional[float] = None  # Scheduled payment after any recasts

    @property
    def periods(self) -> int:
        return len(self.schedule)


@dataclass(frozen=True)
class YearlyAmortization:
    """Amortization schedule rolled up to a loan year."""

    year: int
    payment: float
    principal: float
    interest: float
    fees: float
    ending_balance: float


def _validate_loan_terms(principal: float, rate: float, periods: int) -> None:
    if not math.isfinite(principal):
        raise InvalidInputError("Principal must be a finite number")
    if principal < 0:
        raise InvalidInputError("Principal cannot be negative")
    if periods <= 0:
        raise InvalidInputError("Number of periods must be positive")
    if not math.isfinite(rate) or rate <= -1:
        raise InvalidInputError("Periodic rate must be greater than -100%")


def calculate_payment(
    principal: float,
    rate: float,
    periods: int,
    timing: PaymentTiming = PaymentTiming.END,
) -> float:
    """
    Calculate the fixed periodic payment that retires a loan.

    Matches Excel's PMT() function.

    Args:
        principal: Loan principal amount
        rate: Periodic interest rate as decimal (e.g., 0.005 for 6%/12)
        periods: Number of payments
        timing: END for an ordinary annuity, BEGIN for annuity-due

    Returns:
        Periodic payment amount (positive number)

    Raises:
        InvalidInputError: Negative principal, non-positive period count,
            or a rate at or below -100%
    """
    _validate_loan_terms(principal, rate, periods)

    if principal == 0:
        return 0.0

    if rate == 0:
        return principal / periods

    growth = compound_growth(rate, periods)
    payment = ensure_finite(principal * rate * growth / (growth - 1))

    if timing == PaymentTiming.BEGIN:
        payment = payment / (1 + rate)

    return payment


def calculate_monthly_payment(
    principal: float, annual_rate_percent: float, term_months: int
) -> float:
    """Monthly payment for an annual percentage rate and a term in months."""
    return calculate_payment(
        principal, periodic_rate(annual_rate_percent, MONTHS_PER_YEAR), term_months
    )


def _rate_for(period: int, base_rate: float, rate_changes: Sequence[RateChange]) -> float:
    """Monthly rate in force for ``period``; ``rate_changes`` is sorted."""
    rate = base_rate
    for change in rate_changes:
        if change.start_period > period:
            break
        rate = change.monthly_rate
    return rate


def amortize(
    loan: LoanInput,
    extra_payments: Iterable[ExtraPayment] = (),
    rate_changes: Iterable[RateChange] = (),
) -> LoanResult:
    """
    Generate a full amortization schedule.

    Interest accrues on the outstanding balance each period; the final
    period is clamped so the remaining balance lands exactly on zero.
    Extra payments go straight to principal. In REDUCE_TERM mode they can
    end the loan early; in REDUCE_PAYMENT mode the payment is
    re-amortized over the remaining term instead.

    A rate change recasts the payment so the balance still reaches zero
    at the end of the original term.

    Args:
        loan: Loan terms
        extra_payments: Optional prepayments
        rate_changes: Optional rate resets, by starting period

    Returns:
        LoanResult with totals and the schedule. A zero principal yields a
        zero-valued result with an empty schedule.
    """
    n = loan.term_months
    _validate_loan_terms(loan.principal, loan.monthly_rate, n)

    extras = list(extra_payments)
    for extra in extras:
        if extra.amount < 0:
            raise InvalidInputError("Extra payment amount cannot be negative")

    changes = sorted(rate_changes, key=lambda change: change.start_period)
    for change in changes:
        if change.start_period < 1:
            raise InvalidInputError("Rate change period must be 1 or later")
        if not math.isfinite(change.monthly_rate) or change.monthly_rate <= -1:
            raise InvalidInputError("Periodic rate must be greater than -100%")

    if loan.principal == 0:
        return LoanResult(payment=0.0, total_interest=0.0, total_paid=0.0, principal_financed=0.0)

    rate = _rate_for(1, loan.monthly_rate, changes)
    payment = calculate_payment(loan.principal, rate, n, loan.payment_timing)
    scheduled_payment = payment
    start_date = loan.start_date or date.today()

    schedule = []
    balance = loan.principal

    for period in range(1, n + 1):
        beginning_balance = balance

        period_rate = _rate_for(period, loan.monthly_rate, changes)
        if period_rate != rate:
            rate = period_rate
            scheduled_payment = calculate_payment(balance, rate, n - period + 1)

        # Annuity-due: the first payment falls before any interest accrues
        if loan.payment_timing == PaymentTiming.BEGIN and period == 1:
            interest = 0.0
        else:
            interest = balance * rate

        extra_amount = 0.0
        recast = False
        for extra in extras:
            amount = extra.amount_for(period)
            extra_amount += amount
            recast = recast or (amount > 0 and extra.mode == PrepaymentMode.REDUCE_PAYMENT)

        principal_pmt = scheduled_payment - interest + extra_amount

        if period == n or principal_pmt >= balance:
            principal_pmt = balance

        balance = balance - principal_pmt

        schedule.append(
            AmortizationPeriod(
                period=period,
                payment_date=start_date + relativedelta(months=period - 1),
                beginning_balance=beginning_balance,
                payment=principal_pmt + interest,
                principal=principal_pmt,
                interest=interest,
                balance=balance,
            )
        )

        if balance == 0:
            break

        if recast:
            scheduled_payment = calculate_payment(balance, rate, n - period)

    total_paid = math.fsum(row.payment for row in schedule)

    return LoanResult(
        payment=payment,
        total_interest=math.fsum(row.interest for row in schedule),
        total_paid=total_paid,
        principal_financed=loan.principal,
        schedule=tuple(schedule),
        final_payment=scheduled_payment,
    )


def calculate_remaining_balance(
    principal: float,
    annual_rate_percent: float,
    term_months: int,
    payments_completed: int,
) -> float:
    """Calculate remaining loan balance after N payments."""
    monthly_rate = periodic_rate(annual_rate_percent, MONTHS_PER_YEAR)
    payment = calculate_payment(principal, monthly_rate, term_months)

    if payments_completed >= term_months:
        return 0.0

    if monthly_rate == 0:
        return max(0.0, principal - payment * payments_completed)

    growth = compound_growth(monthly_rate, payments_completed)
    balance = principal * growth - payment * (growth - 1) / monthly_rate

    return max(0.0, balance)


def calculate_loan_term(
    principal: float, annual_rate_percent: float, monthly_payment: float
) -> int:
    """
    Number of monthly payments needed to retire a loan at a fixed payment.

    Raises:
        InvalidInputError: If the payment never pays the loan off
    """
    if principal <= 0:
        raise InvalidInputError("Principal must be positive")
    if monthly_payment <= 0:
        raise InvalidInputError("Monthly payment must be positive")

    monthly_rate = periodic_rate(annual_rate_percent, MONTHS_PER_YEAR)

    if monthly_rate == 0:
        return math.ceil(principal / monthly_payment)

    if monthly_payment <= principal * monthly_rate:
        raise InvalidInputError(
            "Monthly payment is too low to cover interest; the loan is never paid off"
        )

    months = -math.log(1 - monthly_rate * principal / monthly_payment) / math.log(1 + monthly_rate)
    # Guard against 359.9999999 style float noise before rounding up
    return math.ceil(round(months, 9))


def summarize_by_year(schedule: Sequence[AmortizationPeriod]) -> List[YearlyAmortization]:
    """
    Roll a monthly schedule up into loan years (months 1-12 = year 1).
    """
    years: List[YearlyAmortization] = []
    totals = None
    current_year = 0

    for row in schedule:
        row_year = (row.period - 1) // MONTHS_PER_YEAR + 1

        if row_year != current_year:
            if totals is not None:
                years.append(YearlyAmortization(**totals))
            current_year = row_year
            totals = {
                "year": row_year,
                "payment": 0.0,
                "principal": 0.0,
                "interest": 0.0,
                "fees": 0.0,
                "ending_balance": row.balance,
            }

        totals["payment"] += row.payment
        totals["principal"] += row.principal
        totals["interest"] += row.interest
        totals["fees"] += row.fee
        totals["ending_balance"] = row.balance

    if totals is not None:
        years.append(YearlyAmortization(**totals))

    return years


def calculate_total_interest(schedule: Sequence[AmortizationPeriod]) -> float:
    """Calculate total interest paid over loan term."""
    return math.fsum(row.interest for row in schedule)


def calculate_debt_service(
    schedule: Sequence[AmortizationPeriod], start_period: int, end_period: int
) -> float:
    """Calculate total debt service (P+I) for a range of periods."""
    return math.fsum(
        row.payment
        for row in schedule
        if start_period <= row.period <= end_period
    )
