"""
Tests for the investment growth engine and interest calculators.
"""

import pytest

from fincalc.calculations.errors import InvalidInputError
from fincalc.calculations.interest import (
    calculate_apy,
    calculate_compound_interest,
    calculate_simple_interest,
)
from fincalc.calculations.investment import (
    InvestmentInput,
    InvestmentKind,
    adjust_for_inflation,
    after_tax_value,
    calculate_cagr,
    calculate_combined,
    calculate_lumpsum,
    calculate_sip,
    calculate_step_up,
    generate_yearly_breakdown,
    project_investment,
    required_monthly_contribution,
    sip_future_value,
)


class TestGrowth:
    """Test future value projections."""

    def test_lumpsum(self):
        """10k at 12% for a year compounds monthly."""
        result = calculate_lumpsum(InvestmentInput(12.0, 1, lumpsum=10000))
        assert abs(result.future_value - 10000 * 1.01 ** 12) < 1e-6
        assert result.total_contributed == 10000

    def test_sip_annuity_due(self):
        """Monthly contributions are made at the start of each month."""
        result = calculate_sip(InvestmentInput(12.0, 1, monthly_contribution=1000))
        expected = 1000 * ((1.01 ** 12 - 1) / 0.01) * 1.01
        assert abs(result.future_value - expected) < 1e-6
        assert abs(result.future_value - 12809.33) < 0.01

    def test_sip_zero_rate(self):
        """At 0% the future value is simply the contributions."""
        result = calculate_sip(InvestmentInput(0.0, 10, monthly_contribution=500))
        assert result.future_value == 60000
        assert result.total_growth == 0

    def test_combined_is_sum_of_parts(self):
        """Lumpsum and SIP components compound independently."""
        plan = InvestmentInput(8.0, 5, lumpsum=5000, monthly_contribution=200)
        combined = calculate_combined(plan)
        lumpsum = calculate_lumpsum(InvestmentInput(8.0, 5, lumpsum=5000))
        sip = calculate_sip(InvestmentInput(8.0, 5, monthly_contribution=200))

        assert abs(combined.future_value - (lumpsum.future_value + sip.future_value)) < 1e-6
        assert combined.total_contributed == 5000 + 200 * 60

    def test_step_up_without_increase_matches_sip(self):
        """A 0% step-up simulation agrees with the SIP closed form."""
        result = calculate_step_up(InvestmentInput(10.0, 3, monthly_contribution=500))
        expected = sip_future_value(500, 10.0 / 100 / 12, 36)
        assert abs(result.future_value - expected) < 1e-6

    def test_step_up_increases_each_year(self):
        """Contributions rise by the step-up at every year boundary."""
        result = calculate_step_up(
            InvestmentInput(0.0, 2, monthly_contribution=1000, step_up_percent=10)
        )
        assert abs(result.total_contributed - (12 * 1000 + 12 * 1100)) < 1e-6
        assert abs(result.future_value - result.total_contributed) < 1e-6

    @pytest.mark.parametrize(
        "plan,kind",
        [
            (InvestmentInput(8.0, 5, lumpsum=1000), InvestmentKind.LUMPSUM),
            (InvestmentInput(8.0, 5, monthly_contribution=100), InvestmentKind.SIP),
            (InvestmentInput(8.0, 5, lumpsum=1000, monthly_contribution=100), InvestmentKind.COMBINED),
            (InvestmentInput(8.0, 5, monthly_contribution=100, step_up_percent=5), InvestmentKind.STEPUP),
        ],
    )
    def test_plan_kind(self, plan, kind):
        """Plan kind follows from which amounts are set."""
        assert plan.kind == kind
        assert project_investment(plan).future_value > 0

    def test_negative_amounts_rejected(self):
        """Negative contributions are rejected."""
        with pytest.raises(InvalidInputError):
            calculate_lumpsum(InvestmentInput(8.0, 5, lumpsum=-1))

    @pytest.mark.parametrize(
        "plan",
        [
            InvestmentInput(10000, 100, lumpsum=1000),
            InvestmentInput(10000, 100, monthly_contribution=100),
            InvestmentInput(10000, 100, monthly_contribution=100, step_up_percent=10),
        ],
    )
    def test_out_of_range_growth_is_rejected(self, plan):
        """Growth too large to represent raises an input error."""
        with pytest.raises(InvalidInputError, match="out-of-range"):
            project_investment(plan)

    def test_inflation_at_minus_hundred_rejected(self):
        """Inflation at -100% has no real value."""
        with pytest.raises(InvalidInputError):
            calculate_lumpsum(InvestmentInput(8.0, 5, lumpsum=1000, inflation_rate_percent=-100))


class TestAdjustments:
    """Test CAGR, inflation and tax adjustments."""

    def test_cagr_scenario(self):
        """Doubling over 10 years is about 7.177% a year."""
        assert abs(calculate_cagr(10000, 20000, 10) - 0.071773) < 1e-6

    def test_cagr_round_trip(self):
        """A lumpsum grown at its CAGR reproduces the future value."""
        result = calculate_lumpsum(InvestmentInput(9.0, 7, lumpsum=25000))
        assert abs(25000 * (1 + result.cagr) ** 7 - result.future_value) < 1e-6

    def test_cagr_edges(self):
        """Nothing invested or no time gives 0; a total loss gives -1."""
        assert calculate_cagr(0, 100, 5) == 0.0
        assert calculate_cagr(100, 200, 0) == 0.0
        assert calculate_cagr(100, 0, 5) == -1.0

    def test_real_value(self):
        """Real value discounts by inflation over the term."""
        result = calculate_lumpsum(
            InvestmentInput(8.0, 10, lumpsum=10000, inflation_rate_percent=3.0)
        )
        assert abs(result.real_value - result.future_value / 1.03 ** 10) < 1e-6
        assert adjust_for_inflation(1000, 0.0, 10) == 1000

    def test_after_tax_value_taxes_growth_only(self):
        """Tax applies to growth, never to contributions."""
        assert after_tax_value(15000, 10000, 20) == 14000
        assert after_tax_value(9000, 10000, 20) == 9000

    def test_optional_adjustments_absent(self):
        """Real and after-tax values are only computed when requested."""
        result = calculate_lumpsum(InvestmentInput(8.0, 10, lumpsum=10000))
        assert result.real_value is None
        assert result.after_tax_value is None


class TestGoalPlanning:
    """Test the required monthly contribution."""

    def test_goal_scenario(self):
        """100k in 10 years at 7% needs about 574.40 a month."""
        contribution = required_monthly_contribution(100000, 0, 7.0, 10)
        assert abs(contribution - 574.40) < 0.05

    def test_goal_round_trip(self):
        """Investing the required amount reaches the target."""
        contribution = required_monthly_contribution(50000, 5000, 6.0, 8)
        plan = InvestmentInput(6.0, 8, lumpsum=5000, monthly_contribution=contribution)
        assert abs(calculate_combined(plan).future_value - 50000) < 1e-6

    def test_goal_already_met(self):
        """No contribution is needed when savings already reach the target."""
        assert required_monthly_contribution(10000, 20000, 5.0, 5) == 0.0

    def test_goal_zero_rate(self):
        """At 0% the gap is spread evenly."""
        assert required_monthly_contribution(12000, 0, 0.0, 1) == 1000


class TestYearlyBreakdown:
    """Test the restartable yearly breakdown."""

    def test_rows_per_year(self):
        """One row per year; the last balance is the future value."""
        plan = InvestmentInput(8.0, 5, lumpsum=1000, monthly_contribution=100)
        rows = list(generate_yearly_breakdown(plan))

        assert [row.year for row in rows] == [1, 2, 3, 4, 5]
        assert abs(rows[-1].balance - project_investment(plan).future_value) < 1e-6
        assert abs(rows[-1].total_contributed - (1000 + 100 * 60)) < 1e-9

    def test_growth_adds_up(self):
        """Yearly growth sums to the total growth."""
        plan = InvestmentInput(8.0, 5, monthly_contribution=100, step_up_percent=5)
        rows = list(generate_yearly_breakdown(plan))
        assert abs(sum(row.growth for row in rows) - rows[-1].total_growth) < 1e-6

    def test_restartable(self):
        """Iterating twice yields the same rows."""
        series = generate_yearly_breakdown(InvestmentInput(8.0, 3, monthly_contribution=100))
        assert list(series) == list(series)
        assert len(series) == 3

    def test_partial_final_year(self):
        """A partial final year is reported as its own row."""
        series = generate_yearly_breakdown(InvestmentInput(0.0, 1.5, monthly_contribution=100))
        rows = list(series)

        assert len(series) == 2
        assert rows[-1].year == 2
        assert rows[-1].contribution == 600


class TestInterest:
    """Test simple and compound interest."""

    def test_simple_interest(self):
        """Interest = P * R * T / 100."""
        result = calculate_simple_interest(10000, 5.0, 3)
        assert result.interest == 1500
        assert result.total_amount == 11500
        assert len(result.breakdown) == 3

    def test_compound_interest_quarterly(self):
        """Quarterly compounding follows A = P(1 + r/n)^(nt)."""
        result = calculate_compound_interest(10000, 8.0, 2, "quarterly")
        assert abs(result.total_amount - 10000 * 1.02 ** 8) < 1e-6
        assert abs(sum(y.interest for y in result.breakdown) - result.interest) < 1e-6

    def test_unknown_frequency(self):
        """Unknown compounding frequencies are rejected."""
        with pytest.raises(InvalidInputError):
            calculate_compound_interest(10000, 8.0, 2, "fortnightly")

    def test_compound_interest_out_of_range(self):
        """Compounding that overflows raises an input error."""
        with pytest.raises(InvalidInputError):
            calculate_compound_interest(10000, 1e6, 100, "daily")

    def test_apy(self):
        """12% compounded monthly yields about 12.68%."""
        assert abs(calculate_apy(12.0, "monthly") - 12.6825) < 1e-4
