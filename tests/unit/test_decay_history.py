import pytest

from electoral.schemas.projection import ExternalFactor, HistoricalResult
from electoral.services.projection.decay import DecayPolicy
from electoral.services.projection.history import (
    analyze_history,
    average_growth_rate,
    residual_share,
    resolve_baseline_year,
    trend_slope,
)


class TestDecayPolicy:
    def test_exponential_half_life(self):
        policy = DecayPolicy(curve="exponential")
        assert policy.factor("medium", 0) == 1.0
        assert policy.factor("medium", 60) == pytest.approx(0.5)
        assert policy.factor("long", 360) == pytest.approx(0.25)

    def test_linear_reaches_zero(self):
        policy = DecayPolicy(curve="linear")
        assert policy.factor("short", 14) == pytest.approx(0.5)
        assert policy.factor("short", 100) == 0.0

    def test_none_keeps_full_magnitude(self):
        assert DecayPolicy(curve="none").factor("short", 365) == 1.0

    def test_signed_effect(self):
        event = ExternalFactor(
            description="debate", polarity="negative", magnitude=0.04,
            affected_entities=("A",), duration="short", days_before_election=14,
        )
        assert DecayPolicy().signed_effect(event) == pytest.approx(-0.02)

    def test_rejects_unknown_curve(self):
        with pytest.raises(ValueError):
            DecayPolicy(curve="cubic")

    def test_rejects_non_positive_half_life(self):
        with pytest.raises(ValueError):
            DecayPolicy(half_lives={"short": 0.0, "medium": 60.0, "long": 180.0})


class TestHistory:
    results = (
        HistoricalResult(entity_id="A", share=0.20, year=2014),
        HistoricalResult(entity_id="A", share=0.25, year=2018),
        HistoricalResult(entity_id="A", share=0.30, year=2022),
        HistoricalResult(entity_id="B", share=0.40, year=2018),
        HistoricalResult(entity_id="B", share=0.10, year=2026),
    )

    def test_baseline_year_respects_base_year(self):
        assert resolve_baseline_year(self.results, 2022) == 2022
        assert resolve_baseline_year(self.results, 2020) == 2018
        assert resolve_baseline_year(self.results) == 2026
        assert resolve_baseline_year(self.results, 2010) is None

    def test_analyze(self):
        history = analyze_history(self.results, base_year=2022)
        a = history["A"]
        assert a.baseline_share == pytest.approx(0.30)
        assert a.baseline_year == 2022
        assert a.trend_slope == pytest.approx(0.0125)
        assert a.volatility == pytest.approx(0.05)
        # B has no 2022 result and its 2026 row is past the base year
        assert history["B"].baseline_share is None
        assert history["B"].points == [(2018, 0.40)]

    def test_same_year_rows_are_summed(self):
        rows = (
            HistoricalResult(entity_id="A", share=0.1, year=2022),
            HistoricalResult(entity_id="A", share=0.2, year=2022),
        )
        assert analyze_history(rows)["A"].baseline_share == pytest.approx(0.3)

    def test_trend_slope_degenerate(self):
        assert trend_slope([]) == 0.0
        assert trend_slope([(2022, 0.3)]) == 0.0
        assert trend_slope([(2022, 0.3), (2022, 0.4)]) == 0.0

    def test_average_growth_rate(self):
        assert average_growth_rate([0.2, 0.3, 0.15]) == pytest.approx((0.5 - 0.5) / 2)
        assert average_growth_rate([0.0, 0.1]) == 0.0

    def test_residual_share(self):
        history = analyze_history(self.results, base_year=2022)
        assert residual_share(history, 2022) == pytest.approx(0.70)
        assert residual_share(history, None) == 0.0
