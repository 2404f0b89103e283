import numpy as np
import pytest

from electoral.services.projection.aggregator import aggregate_inputs
from electoral.services.projection.history import EntityHistory
from electoral.services.projection.sampler import ProjectionEnsemble, sample_ensemble
from electoral.services.projection.summarizer import (
    classify_trend,
    competitiveness,
    overall_confidence,
    summarize_ensemble,
)


def fixed_ensemble(rows, entity_ids=("A", "B")):
    return ProjectionEnsemble(entity_ids=entity_ids, shares=np.array(rows, dtype=float), seed=0)


class TestTrend:
    def test_labels(self):
        assert classify_trend(0.01, 0.005) == "growing"
        assert classify_trend(-0.01, 0.005) == "declining"
        assert classify_trend(0.005, 0.005) == "stable"
        assert classify_trend(0.0, 0.0) == "stable"

    def test_trend_against_baseline(self, scope):
        ensemble = fixed_ensemble([[0.60, 0.40], [0.62, 0.38]])
        result = summarize_ensemble(ensemble, 0.9, scope, {"A": 0.5, "B": 0.5}, trend_epsilon=0.005)
        assert result.entity("A").trend == "growing"
        assert result.entity("B").trend == "declining"


class TestSummary:
    def test_bounds_contain_point_estimate(self, make_request, scope):
        base = aggregate_inputs(make_request())
        ensemble = sample_ensemble(base, 2000, seed=9, workers=1)
        result = summarize_ensemble(ensemble, 0.95, scope, base.baseline_shares)
        for e in result.entities:
            assert 0.0 <= e.lower <= e.point_estimate <= e.upper <= 1.0

    def test_skewed_column_is_clamped(self, scope):
        rows = [[0.5, 0.5]] * 99 + [[1.0, 0.0]]
        result = summarize_ensemble(fixed_ensemble(rows), 0.5, scope, {})
        a = result.entity("A")
        assert a.lower <= a.point_estimate <= a.upper

    def test_seats_sum_to_total(self, make_request, scope):
        base = aggregate_inputs(make_request())
        ensemble = sample_ensemble(base, 1000, seed=9, workers=1)
        result = summarize_ensemble(ensemble, 0.9, scope, base.baseline_shares)
        assert sum(result.seats().values()) == scope.total_seats

    def test_sorted_by_point_estimate(self, make_request, scope):
        base = aggregate_inputs(make_request())
        result = summarize_ensemble(sample_ensemble(base, 500, seed=9, workers=1), 0.9, scope, {})
        points = [e.point_estimate for e in result.entities]
        assert points == sorted(points, reverse=True)
        assert result.favorite == result.entities[0].entity_id

    def test_wider_confidence_widens_interval(self, make_request, scope):
        base = aggregate_inputs(make_request())
        ensemble = sample_ensemble(base, 2000, seed=9, workers=1)
        narrow = summarize_ensemble(ensemble, 0.5, scope, {})
        wide = summarize_ensemble(ensemble, 0.99, scope, {})
        for entity_id in ensemble.entity_ids:
            n, w = narrow.entity(entity_id), wide.entity(entity_id)
            assert w.lower <= n.lower and w.upper >= n.upper

    def test_interval_width_does_not_grow_with_iterations(self, make_request, scope):
        base = aggregate_inputs(make_request())
        widths = []
        for iterations in (4000, 16000, 64000):
            ensemble = sample_ensemble(base, iterations, seed=1, workers=4)
            result = summarize_ensemble(ensemble, 0.95, scope, {})
            widths.append({e.entity_id: e.upper - e.lower for e in result.entities})
        for smaller, larger in zip(widths, widths[1:]):
            for entity_id, width in larger.items():
                assert width <= smaller[entity_id] * 1.1
        for entity_id, width in widths[-1].items():
            assert width == pytest.approx(widths[-2][entity_id], rel=0.05)

    def test_others_excluded_from_seats_and_favorite(self, scope):
        ensemble = fixed_ensemble([[0.3, 0.7], [0.3, 0.7]], entity_ids=("A", "others"))
        result = summarize_ensemble(ensemble, 0.9, scope, {})
        assert result.favorite == "A"
        assert result.entity("others").seats == 0
        assert result.entity("A").seats == scope.total_seats

    def test_history_figures(self, scope):
        history = {"A": EntityHistory(entity_id="A", trend_slope=0.01, avg_growth_rate=0.2)}
        result = summarize_ensemble(fixed_ensemble([[0.6, 0.4]]), 0.9, scope, {}, history=history)
        assert result.entity("A").historical_trend == 0.01
        assert result.entity("A").growth_rate == 0.2
        assert result.entity("B").historical_trend == 0.0

    def test_warnings_carried(self, scope):
        result = summarize_ensemble(fixed_ensemble([[0.5, 0.5]]), 0.9, scope, {}, warnings=("w1",))
        assert result.warnings == ["w1"]
        assert result.entity("A").std_dev == 0.0


class TestIndicators:
    def test_competitiveness(self):
        assert competitiveness({"A": 0.40, "B": 0.38}) == "high"
        assert competitiveness({"A": 0.45, "B": 0.35}) == "medium"
        assert competitiveness({"A": 0.60, "B": 0.20}) == "low"
        assert competitiveness({"A": 1.0}) == "low"

    def test_overall_confidence_floor(self):
        assert overall_confidence(np.array([0.5, 0.5]), np.array([0.0, 0.0])) == pytest.approx(1.0)
        assert overall_confidence(np.array([0.5, 0.5]), np.array([2.0, 2.0])) == pytest.approx(0.3)
