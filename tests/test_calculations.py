"""
Tests for the rate utilities, root-finding solver and IRR/NPV functions.
"""

import pytest
from datetime import date

from fincalc.calculations.errors import InvalidInputError, NonConvergenceError
from fincalc.calculations.irr import (
    analyze_cash_flows,
    calculate_irr,
    calculate_mirr,
    calculate_multiple,
    calculate_npv,
    calculate_payback_period,
    calculate_xirr,
    calculate_xnpv,
    generate_cash_flow_schedule,
    npv_sensitivity,
    solve_irr,
)
from fincalc.calculations.rates import (
    annual_to_monthly_rate,
    effective_annual_rate,
    monthly_to_annual_rate,
    nominal_annual_rate,
    percent_of,
    periodic_rate,
    periods_per_year,
    ratio_percent,
    real_rate,
    total_periods,
)
from fincalc.calculations.solver import SolverResult, newton_raphson


class TestRates:
    """Test rate and period conversions."""

    def test_periodic_rate(self):
        """6% a year is 0.5% a month."""
        assert abs(periodic_rate(6.0) - 0.005) < 1e-15
        assert periodic_rate(0.0) == 0.0
        assert periodic_rate(-12.0) < 0

    def test_total_periods(self):
        """Years convert to the nearest whole number of periods."""
        assert total_periods(30) == 360
        assert total_periods(2.5, 4) == 10

    @pytest.mark.parametrize(
        "frequency,expected",
        [("annual", 1), ("Yearly", 1), ("half-yearly", 2), ("quarterly", 4), ("monthly", 12), ("daily", 365)],
    )
    def test_periods_per_year(self, frequency, expected):
        """Named frequencies map to periods per year."""
        assert periods_per_year(frequency) == expected

    def test_unknown_frequency(self):
        """Unknown frequencies raise an input error."""
        with pytest.raises(InvalidInputError):
            periods_per_year("weekly-ish")

    def test_effective_and_nominal_are_inverse(self):
        """Nominal -> effective -> nominal returns the original rate."""
        effective = effective_annual_rate(6.0, 12)
        assert abs(effective - 6.1678) < 1e-4
        assert abs(nominal_annual_rate(effective, 12) - 6.0) < 1e-9

    def test_monthly_annual_conversion(self):
        """Compounded monthly/annual conversions round-trip."""
        monthly = annual_to_monthly_rate(0.12)
        assert abs(monthly_to_annual_rate(monthly) - 0.12) < 1e-12

    def test_real_rate(self):
        """Fisher equation."""
        assert abs(real_rate(0.08, 0.03) - (1.08 / 1.03 - 1)) < 1e-15

    def test_percentage_helpers(self):
        """Percent of a value and ratio as a percent."""
        assert percent_of(200, 15) == 30
        assert ratio_percent(25, 200) == 12.5
        assert ratio_percent(25, 0) == 0.0


class TestSolver:
    """Test the generic Newton-Raphson solver."""

    def test_finds_square_root(self):
        """Solves x^2 - 2 = 0."""
        result = newton_raphson(lambda x: x * x - 2, lambda x: 2 * x, initial_guess=1.0)
        assert result.converged
        assert abs(result.rate - 2 ** 0.5) < 1e-6

    def test_zero_derivative_fails(self):
        """A flat derivative is reported, not hidden."""
        result = newton_raphson(lambda x: x * x + 1, lambda x: 2 * x, initial_guess=0.0)
        assert result.failed
        assert result.rate is None
        assert "derivative" in result.reason

    def test_iteration_cap(self):
        """Running out of iterations is a failure."""
        result = newton_raphson(lambda x: x * x - 2, lambda x: 2 * x, initial_guess=100.0, max_iterations=2)
        assert not result.converged

    def test_root_outside_bounds(self):
        """A root beyond the bounds is not reported as converged."""
        result = newton_raphson(lambda x: x - 5, lambda x: 1.0, initial_guess=0.0, bounds=(-1.0, 1.0))
        assert result.failed

    def test_unwrap(self):
        """unwrap returns the rate or raises NonConvergenceError."""
        assert SolverResult(rate=0.1, iterations=3, converged=True).unwrap() == 0.1
        with pytest.raises(NonConvergenceError):
            SolverResult(rate=None, iterations=100, converged=False, reason="test").unwrap()


class TestIRRCalculations:
    """Test IRR calculation functions."""

    def test_calculate_irr_simple(self):
        """Test IRR calculation with simple cash flows."""
        # Investment of 100, returns of 110 after 1 year = 10% return
        cash_flows = [-100, 110]
        irr = calculate_irr(cash_flows)
        assert abs(irr - 0.10) < 0.001

    def test_calculate_irr_multi_period(self):
        """Test IRR with multiple periods."""
        # Investment of 100, annual returns of 20, sale of 100 at end
        cash_flows = [-100, 20, 20, 20, 20, 120]
        irr = calculate_irr(cash_flows)
        assert abs(irr - 0.20) < 1e-6

    def test_textbook_irr(self):
        """-1000 followed by three 500 inflows returns about 23.38%."""
        irr = calculate_irr([-1000, 500, 500, 500])
        assert abs(irr - 0.23375) < 1e-4

    def test_npv_is_zero_at_irr(self):
        """NPV evaluated at the IRR is zero."""
        cash_flows = [-5000, 1200, 1500, 1800, 2100]
        irr = calculate_irr(cash_flows)
        assert abs(calculate_npv(cash_flows, irr)) < 1e-3

    def test_irr_negative_returns(self):
        """Test IRR with negative return scenario."""
        cash_flows = [-100, 40, 40, 10]  # Total return < investment
        irr = calculate_irr(cash_flows)
        assert irr < 0  # Should be negative IRR

    def test_no_sign_change(self):
        """All-positive or all-negative flows have no IRR."""
        with pytest.raises(InvalidInputError):
            calculate_irr([100, 200, 300])
        with pytest.raises(InvalidInputError):
            calculate_irr([-100, -200])

    def test_too_few_flows(self):
        """A single flow has no IRR."""
        with pytest.raises(InvalidInputError):
            calculate_irr([-100])

    def test_non_convergence_is_reported(self):
        """A failed solve returns a failed result instead of 0."""
        result = solve_irr([-1000, 500, 500, 500], max_iterations=1)
        assert not result.converged
        assert result.rate is None

    def test_calculate_xirr(self):
        """Test XIRR calculation with actual dates."""
        dates = [
            date(2025, 1, 1),
            date(2026, 1, 1),
            date(2027, 1, 1),
        ]
        cash_flows = [-100, 50, 60]
        xirr = calculate_xirr(cash_flows, dates)
        assert xirr > 0  # Should be positive return
        assert xirr < 0.20  # Should be reasonable
        assert abs(calculate_xnpv(cash_flows, dates, xirr)) < 1e-3

    def test_xirr_mismatched_lengths(self):
        """Dates and flows must line up."""
        with pytest.raises(InvalidInputError):
            calculate_xirr([-100, 110], [date(2025, 1, 1)])


class TestCashFlowMetrics:
    """Test NPV and companion metrics."""

    def test_calculate_npv(self):
        """Test NPV calculation."""
        cash_flows = [-100, 50, 50, 50]
        npv = calculate_npv(cash_flows, 0.10)
        assert abs(npv - 24.3426) < 1e-4

    def test_npv_at_zero_rate_is_sum(self):
        """At 0% NPV is the plain sum."""
        assert calculate_npv([-100, 30, 30, 60], 0.0) == 20

    def test_mirr(self):
        """MIRR compounds inflows at the reinvestment rate."""
        mirr = calculate_mirr([-1000, 500, 500, 500], 0.10, 0.10)
        assert abs(mirr - ((1655 / 1000) ** (1 / 3) - 1)) < 1e-9

    def test_payback_period(self):
        """Payback is interpolated within the recovery period."""
        assert calculate_payback_period([-1000, 400, 400, 400]) == 2.5
        assert calculate_payback_period([-1000, 100, 100]) is None

    def test_payback_waits_for_the_outlay(self):
        """Leading zero flows do not count as an immediate payback."""
        assert calculate_payback_period([0, -100, 200]) == 1.5
        assert calculate_payback_period([0, 0, -100, 50, 50]) == 4.0

    def test_payback_without_outlay(self):
        """Nothing invested means nothing to recover."""
        assert calculate_payback_period([0, 100, 100]) == 0.0
        assert calculate_payback_period([100, -50, 10]) == 1.0

    def test_multiple(self):
        """Equity multiple is inflows over outflows."""
        assert calculate_multiple([-100, 50, 150]) == 2.0

    def test_schedule(self):
        """The running NPV in the last row equals the NPV."""
        cash_flows = [-100, 50, 50, 50]
        schedule = generate_cash_flow_schedule(cash_flows, 0.10)
        assert len(schedule) == 4
        assert schedule[-1].cumulative == 50
        assert abs(schedule[-1].npv - calculate_npv(cash_flows, 0.10)) < 1e-9

    def test_sensitivity_is_decreasing(self):
        """For a conventional investment NPV falls as the rate rises."""
        grid = npv_sensitivity([-1000, 500, 500, 500], 0.0, 0.5, 11)
        npvs = [npv for _, npv in grid]
        assert len(grid) == 11
        assert grid[0] == (0.0, 500.0)
        assert all(later < earlier for earlier, later in zip(npvs, npvs[1:]))

    def test_analyze_cash_flows(self):
        """Full analysis bundles IRR, NPV, MIRR and payback."""
        analysis = analyze_cash_flows([-1000, 500, 500, 500], discount_rate=0.10)
        assert analysis.irr.converged
        assert abs(analysis.irr.rate - 0.23375) < 1e-4
        assert analysis.mirr is not None
        assert analysis.payback_period == 2.0
        assert analysis.profit == 500
