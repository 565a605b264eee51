"""
Tests for the shared amortization engine.
"""

import math

import pytest
from datetime import date

from fincalc.calculations.amortization import (
    ExtraPayment,
    ExtraPaymentKind,
    LoanInput,
    PaymentTiming,
    PrepaymentMode,
    RateChange,
    amortize,
    calculate_debt_service,
    calculate_loan_term,
    calculate_monthly_payment,
    calculate_payment,
    calculate_remaining_balance,
    calculate_total_interest,
    summarize_by_year,
)
from fincalc.calculations.errors import InvalidInputError


class TestPayment:
    """Test the fixed periodic payment (PMT)."""

    def test_thirty_year_mortgage_payment(self):
        """240k at 6% for 30 years costs 1,438.92 a month."""
        payment = calculate_monthly_payment(240000, 6.0, 360)
        assert abs(payment - 1438.92) < 0.01

    def test_zero_rate_is_straight_division(self):
        """At 0% the payment is principal / n."""
        assert calculate_payment(12000, 0.0, 12) == 1000.0

    def test_zero_principal(self):
        """A zero principal needs no payment."""
        assert calculate_payment(0, 0.005, 360) == 0.0

    def test_annuity_due_payment_is_discounted(self):
        """Paying at the start of each period discounts the payment by one period."""
        end = calculate_payment(100000, 0.005, 60)
        begin = calculate_payment(100000, 0.005, 60, PaymentTiming.BEGIN)
        assert abs(begin - end / 1.005) < 1e-9

    def test_negative_rates_are_allowed(self):
        """A small negative rate still produces a payment below principal / n."""
        payment = calculate_payment(12000, -0.001, 12)
        assert payment < 1000

    @pytest.mark.parametrize(
        "principal,rate,periods",
        [
            (-1, 0.005, 12),
            (1000, 0.005, 0),
            (1000, -1.0, 12),
            (math.inf, 0.005, 12),
        ],
    )
    def test_invalid_terms(self, principal, rate, periods):
        """Negative principal, no periods or a rate at -100% are rejected."""
        with pytest.raises(InvalidInputError):
            calculate_payment(principal, rate, periods)


class TestSchedule:
    """Test full schedule generation."""

    def test_mortgage_scenario_totals(self, start_date):
        """240k at 6% for 30 years pays about 278,011 in interest."""
        result = amortize(LoanInput(240000, 6.0, 360, start_date=start_date))

        assert result.periods == 360
        assert abs(result.payment - 1438.92) < 0.01
        assert abs(result.total_interest - 278011) < 5

    def test_principal_sums_to_amount_financed(self):
        """Principal portions add back to the original principal."""
        result = amortize(LoanInput(185000, 7.25, 240))
        total_principal = math.fsum(row.principal for row in result.schedule)
        assert abs(total_principal - 185000) < 1e-6

    def test_final_balance_is_exactly_zero(self):
        """The last period is clamped so no residual balance remains."""
        result = amortize(LoanInput(100000, 6.0, 60))
        assert result.schedule[-1].balance == 0.0

    def test_balance_never_increases(self):
        """Every payment reduces (or keeps) the remaining balance."""
        result = amortize(LoanInput(100000, 6.0, 60))
        balances = [row.balance for row in result.schedule]
        assert all(later <= earlier for earlier, later in zip(balances, balances[1:]))

    def test_each_row_splits_payment(self):
        """Principal plus interest equals the row payment."""
        result = amortize(LoanInput(50000, 4.5, 36))
        for row in result.schedule:
            assert abs(row.principal + row.interest - row.payment) < 1e-9

    def test_totals_are_consistent(self):
        """Total paid minus principal is the total interest."""
        result = amortize(LoanInput(50000, 4.5, 36))
        assert abs(result.total_paid - result.principal_financed - result.total_interest) < 1e-6
        assert abs(calculate_total_interest(result.schedule) - result.total_interest) < 1e-9

    def test_zero_rate_schedule(self):
        """At 0% every row is principal only."""
        result = amortize(LoanInput(12000, 0.0, 12))
        assert result.total_interest == 0.0
        assert all(row.payment == 1000.0 for row in result.schedule)

    def test_zero_principal_returns_empty_schedule(self):
        """A zero loan is valid and produces no rows."""
        result = amortize(LoanInput(0, 5.0, 360))
        assert result.payment == 0.0
        assert result.schedule == ()

    def test_negative_principal_is_rejected(self):
        """Negative principal raises an input error."""
        with pytest.raises(InvalidInputError):
            amortize(LoanInput(-100, 5.0, 12))

    def test_out_of_range_rate_is_rejected(self):
        """A rate and term whose growth overflows raise an input error."""
        with pytest.raises(InvalidInputError, match="out-of-range"):
            amortize(LoanInput(1000, 10000, 1200))

    def test_payment_dates_are_monthly(self, start_date):
        """Payment dates step by calendar month from the start date."""
        result = amortize(LoanInput(10000, 5.0, 3, start_date=start_date))
        assert [row.payment_date for row in result.schedule] == [
            date(2025, 1, 1),
            date(2025, 2, 1),
            date(2025, 3, 1),
        ]

    def test_annuity_due_first_period_has_no_interest(self):
        """With payments in advance, period 1 is all principal."""
        result = amortize(LoanInput(100000, 6.0, 60, payment_timing=PaymentTiming.BEGIN))
        first = result.schedule[0]
        assert first.interest == 0.0
        assert first.principal == first.payment
        assert result.schedule[-1].balance == 0.0

    def test_from_years(self):
        """Terms in years convert to months."""
        loan = LoanInput.from_years(100000, 5.0, 15)
        assert loan.term_months == 180


class TestExtraPayments:
    """Test prepayments applied to principal."""

    def test_monthly_extra_shortens_loan(self):
        """A recurring extra payment retires the loan early and saves interest."""
        base = amortize(LoanInput(200000, 6.0, 360))
        faster = amortize(LoanInput(200000, 6.0, 360), [ExtraPayment(200)])

        assert faster.periods < base.periods
        assert faster.total_interest < base.total_interest
        assert faster.schedule[-1].balance == 0.0

    def test_lump_sum_applies_once(self):
        """A lump sum only affects its own period."""
        result = amortize(
            LoanInput(100000, 6.0, 120),
            [ExtraPayment(10000, ExtraPaymentKind.LUMP, start_period=12)],
        )
        row_11, row_12, row_13 = result.schedule[10:13]
        assert row_12.principal - row_11.principal > 9000
        assert row_13.principal < 2000

    def test_recurring_extra_starts_later(self):
        """A recurring extra payment is ignored before its start period."""
        extra = ExtraPayment(100, start_period=6)
        assert extra.amount_for(5) == 0.0
        assert extra.amount_for(6) == 100

    def test_negative_extra_is_rejected(self):
        """Extra payments cannot be negative."""
        with pytest.raises(InvalidInputError):
            amortize(LoanInput(100000, 6.0, 120), [ExtraPayment(-5)])

    def test_reduce_payment_keeps_the_term(self):
        """A payment-reducing prepayment re-amortizes over the remaining term."""
        result = amortize(
            LoanInput(100000, 6.0, 360),
            [ExtraPayment(10000, ExtraPaymentKind.LUMP, start_period=12, mode=PrepaymentMode.REDUCE_PAYMENT)],
        )
        balance_after_prepayment = result.schedule[11].balance

        assert result.periods == 360
        assert abs(result.final_payment - calculate_payment(balance_after_prepayment, 0.005, 348)) < 1e-9
        assert result.final_payment < result.payment
        assert abs(result.schedule[12].payment - result.final_payment) < 1e-9
        assert result.schedule[-1].balance == 0.0

    def test_reduce_term_keeps_the_payment(self):
        """The default mode leaves the scheduled payment alone."""
        result = amortize(
            LoanInput(100000, 6.0, 360),
            [ExtraPayment(10000, ExtraPaymentKind.LUMP, start_period=12)],
        )
        assert result.periods < 360
        assert result.final_payment == result.payment


class TestRateChanges:
    """Test rate resets on an adjustable-rate loan."""

    def test_rate_change_recasts_payment(self):
        """After a reset the payment retires the balance over the remaining term."""
        result = amortize(LoanInput(200000, 6.0, 360), rate_changes=[RateChange(61, 7.0)])
        reset_row = result.schedule[60]
        expected = calculate_payment(result.schedule[59].balance, 0.07 / 12, 300)

        assert abs(reset_row.interest - reset_row.beginning_balance * 0.07 / 12) < 1e-9
        assert abs(reset_row.payment - expected) < 1e-9
        assert abs(result.final_payment - expected) < 1e-9
        assert result.periods == 360
        assert result.schedule[-1].balance == 0.0

    def test_principal_still_sums_to_amount_financed(self):
        """Multiple resets keep the schedule exact."""
        result = amortize(
            LoanInput(150000, 5.0, 240),
            rate_changes=[RateChange(121, 3.5), RateChange(37, 6.5)],
        )
        assert abs(math.fsum(row.principal for row in result.schedule) - 150000) < 1e-6
        assert abs(result.schedule[40].interest - result.schedule[40].beginning_balance * 0.065 / 12) < 1e-9
        assert abs(result.schedule[130].interest - result.schedule[130].beginning_balance * 0.035 / 12) < 1e-9

    def test_first_period_change_sets_the_rate(self):
        """A reset at period 1 replaces the note rate."""
        result = amortize(LoanInput(100000, 6.0, 120), rate_changes=[RateChange(1, 5.0)])
        assert abs(result.payment - calculate_monthly_payment(100000, 5.0, 120)) < 1e-9

    def test_unchanged_rate_is_a_no_op(self):
        """A reset to the same rate leaves the schedule as it was."""
        plain = amortize(LoanInput(100000, 6.0, 120))
        reset = amortize(LoanInput(100000, 6.0, 120), rate_changes=[RateChange(24, 6.0)])
        assert reset.schedule == plain.schedule

    @pytest.mark.parametrize("change", [RateChange(0, 5.0), RateChange(12, -1200.0)])
    def test_invalid_rate_change(self, change):
        """Resets before period 1 or at -100% are rejected."""
        with pytest.raises(InvalidInputError):
            amortize(LoanInput(100000, 6.0, 120), rate_changes=[change])


class TestLoanHelpers:
    """Test term, balance and roll-up helpers."""

    def test_loan_term_round_trip(self):
        """The exact payment for a 30-year loan takes 360 months."""
        payment = calculate_monthly_payment(240000, 6.0, 360)
        assert calculate_loan_term(240000, 6.0, payment) == 360

    def test_loan_term_zero_rate(self):
        """At 0% the term is principal / payment rounded up."""
        assert calculate_loan_term(10000, 0.0, 300) == 34

    def test_loan_term_payment_below_interest(self):
        """A payment that never covers interest is rejected."""
        with pytest.raises(InvalidInputError):
            calculate_loan_term(240000, 6.0, 1000)

    def test_remaining_balance(self):
        """Balance after N payments matches the schedule."""
        result = amortize(LoanInput(100000, 6.0, 60))
        balance = calculate_remaining_balance(100000, 6.0, 60, 24)
        assert abs(balance - result.schedule[23].balance) < 1e-6
        assert calculate_remaining_balance(100000, 6.0, 60, 60) == 0.0

    def test_summarize_by_year(self):
        """Yearly roll-up covers every month and preserves totals."""
        result = amortize(LoanInput(100000, 6.0, 30))
        years = summarize_by_year(result.schedule)

        assert [y.year for y in years] == [1, 2, 3]
        assert abs(sum(y.interest for y in years) - result.total_interest) < 1e-6
        assert years[-1].ending_balance == 0.0

    def test_debt_service_range(self):
        """Debt service sums payments over an inclusive range."""
        result = amortize(LoanInput(12000, 0.0, 12))
        assert calculate_debt_service(result.schedule, 1, 6) == 6000.0
