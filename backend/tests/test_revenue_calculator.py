"""
Revenue Calculator Tests — marginal vs flat over the slab tables.

1 crore = 10,000,000; amounts below are in minor units.
"""

import math

import pytest

from revenue.calculator import (
    RevenueMode,
    compute_monthly_revenue,
    compute_revenue,
    compute_revenue_flat,
    compute_revenue_marginal,
    revenue_breakdown,
)
from revenue.slabs import CRORE, CURRENT_SLABS, LEGACY_SLABS


class TestMarginalRevenue:
    def test_nine_crore(self):
        """5cr @1.75% + 3cr @1.65% + 1cr @1.55%."""
        assert compute_revenue_marginal(9 * CRORE, CURRENT_SLABS) == pytest.approx(1_525_000)

    def test_within_first_slab(self):
        assert compute_revenue_marginal(2 * CRORE, CURRENT_SLABS) == pytest.approx(350_000)

    def test_twenty_crore(self):
        assert compute_revenue_marginal(20 * CRORE, CURRENT_SLABS) == pytest.approx(3_050_000)

    def test_open_top_slab(self):
        """Everything above 20 crore is charged at 1.15%."""
        assert compute_revenue_marginal(30 * CRORE, CURRENT_SLABS) == pytest.approx(3_050_000 + 1_150_000)

    def test_legacy_table(self):
        assert compute_revenue_marginal(20 * CRORE, LEGACY_SLABS) == pytest.approx(3_128_000)

    def test_continuous_at_boundaries(self):
        for slab in CURRENT_SLABS[:-1]:
            bound = slab.max * CRORE
            below = compute_revenue_marginal(bound - 1, CURRENT_SLABS)
            above = compute_revenue_marginal(bound + 1, CURRENT_SLABS)
            assert above - below == pytest.approx(0.0, abs=0.1)

    @pytest.mark.parametrize("value", [0, -5 * CRORE, math.nan, math.inf, -math.inf, None, "abc"])
    def test_non_chargeable_input_is_zero(self, value):
        assert compute_revenue_marginal(value, CURRENT_SLABS) == 0.0


class TestFlatRevenue:
    def test_five_crore_matches_marginal(self):
        """The 5 crore boundary stays in the first slab."""
        flat = compute_revenue_flat(5 * CRORE, CURRENT_SLABS, "upper")
        assert flat == pytest.approx(875_000)
        assert flat == pytest.approx(compute_revenue_marginal(5 * CRORE, CURRENT_SLABS))

    def test_whole_amount_rerated(self):
        """9 crore sits in 8-11, so all of it is charged at 1.55%."""
        assert compute_revenue_flat(9 * CRORE, CURRENT_SLABS, "upper") == pytest.approx(1_395_000)

    def test_twenty_crore_upper_boundary(self):
        assert compute_revenue_flat(20 * CRORE, CURRENT_SLABS, "upper") == pytest.approx(2_500_000)

    def test_twenty_crore_lower_boundary(self):
        assert compute_revenue_flat(20 * CRORE, CURRENT_SLABS, "lower") == pytest.approx(2_300_000)

    def test_discontinuous_at_boundary(self):
        """One unit past 5 crore re-rates the whole amount at 1.65%."""
        at_bound = compute_revenue_flat(5 * CRORE, CURRENT_SLABS, "upper")
        past_bound = compute_revenue_flat(5 * CRORE + 1, CURRENT_SLABS, "upper")
        assert past_bound < at_bound
        assert past_bound == pytest.approx((5 * CRORE + 1) * 0.0165)

    @pytest.mark.parametrize("amount", [1, CRORE // 2, CRORE, 2.5 * CRORE, 4 * CRORE, 5 * CRORE - 1, 5 * CRORE])
    def test_first_slab_matches_marginal(self, amount):
        """Anything up to 5 crore sits wholly in the first slab under both modes."""
        assert compute_revenue_flat(amount, CURRENT_SLABS, "upper") == pytest.approx(
            compute_revenue_marginal(amount, CURRENT_SLABS)
        )

    @pytest.mark.parametrize("value", [0, -1, math.nan, math.inf])
    def test_non_chargeable_input_is_zero(self, value):
        assert compute_revenue_flat(value, CURRENT_SLABS, "upper") == 0.0

    def test_boundary_defaults_to_settings(self):
        """Default settings own the upper bound."""
        assert compute_revenue_flat(20 * CRORE, CURRENT_SLABS) == pytest.approx(2_500_000)


class TestDispatch:
    def test_compute_revenue_by_mode(self):
        assert compute_revenue(9 * CRORE, RevenueMode.MARGINAL) == pytest.approx(1_525_000)
        assert compute_revenue(9 * CRORE, "flat") == pytest.approx(1_395_000)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            compute_revenue(CRORE, "average")

    def test_monthly_figures(self):
        figures = compute_monthly_revenue(9 * CRORE, CURRENT_SLABS)
        assert figures.marginal == pytest.approx(1_525_000)
        assert figures.flat == pytest.approx(1_395_000)


class TestBreakdown:
    def test_marginal_lines_per_slab(self):
        rows = revenue_breakdown(9 * CRORE, "marginal", CURRENT_SLABS)
        assert [row["slab"] for row in rows] == ["0-5 cr", "5-8 cr", "8-11 cr"]
        assert [row["amount"] for row in rows] == pytest.approx([5 * CRORE, 3 * CRORE, CRORE])
        assert sum(row["revenue"] for row in rows) == pytest.approx(1_525_000)

    def test_flat_is_one_bracket(self):
        rows = revenue_breakdown(9 * CRORE, RevenueMode.FLAT, CURRENT_SLABS)
        assert rows == [{"slab": "8-11 cr", "amount": 9 * CRORE, "rate": 1.55, "revenue": pytest.approx(1_395_000)}]

    @pytest.mark.parametrize("mode", list(RevenueMode))
    def test_empty_for_zero(self, mode):
        assert revenue_breakdown(0, mode) == []
