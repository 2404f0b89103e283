"""
Ensemble summary

Reduces an ensemble to point estimates (mean), empirical percentile bounds,
seats (apportioned once, from the point-estimate vector) and trend labels.
"""
from __future__ import annotations

from collections.abc import Mapping

import numpy as np

from electoral.config import settings
from electoral.schemas.projection import EntityProjection, ProjectionResult, Scope

from .apportionment import apportion_seats
from .errors import InternalError
from .history import EntityHistory
from .sampler import ProjectionEnsemble

HIGH_COMPETITION_MARGIN = 0.05
MEDIUM_COMPETITION_MARGIN = 0.15
CONFIDENCE_FLOOR = 0.3


def classify_trend(change: float, epsilon: float) -> str:
    if change > epsilon:
        return "growing"
    if change < -epsilon:
        return "declining"
    return "stable"


def percentile_bounds(shares: np.ndarray, confidence_level: float) -> tuple[np.ndarray, np.ndarray]:
    """Empirical [(1-c)/2, 1-(1-c)/2] interval per column."""
    alpha = (1.0 - confidence_level) / 2.0
    lower, upper = np.quantile(shares, [alpha, 1.0 - alpha], axis=0)
    return lower, upper


def overall_confidence(points: np.ndarray, std_devs: np.ndarray) -> float:
    """Share-weighted mean of max(0.3, 1 - sd/mean * 0.5)."""
    total = float(points.sum())
    if total <= 0:
        return CONFIDENCE_FLOOR
    per_entity = np.where(
        points > 0,
        np.maximum(CONFIDENCE_FLOOR, 1.0 - 0.5 * std_devs / np.where(points > 0, points, 1.0)),
        CONFIDENCE_FLOOR,
    )
    return float(min(1.0, (points * per_entity).sum() / total))


def competitiveness(points: Mapping[str, float]) -> str:
    ranked = sorted(points.values(), reverse=True)
    if len(ranked) < 2:
        return "low"
    margin = ranked[0] - ranked[1]
    if margin < HIGH_COMPETITION_MARGIN:
        return "high"
    if margin < MEDIUM_COMPETITION_MARGIN:
        return "medium"
    return "low"


def summarize_ensemble(
    ensemble: ProjectionEnsemble,
    confidence_level: float,
    scope: Scope,
    baseline_shares: Mapping[str, float],
    trend_epsilon: float | None = None,
    viability_threshold: float | None = None,
    warnings: tuple[str, ...] | list[str] = (),
    history: Mapping[str, EntityHistory] | None = None,
) -> ProjectionResult:
    """Summarize one ensemble into a ProjectionResult.

    ``history`` carries each entity's historical trend slope and growth rate
    into the result; entities without history report 0 for both.
    """
    epsilon = settings.TREND_EPSILON if trend_epsilon is None else trend_epsilon
    others_id = settings.OTHERS_ENTITY_ID
    shares = ensemble.shares

    points = shares.mean(axis=0)
    std_devs = shares.std(axis=0, ddof=1) if ensemble.iterations > 1 else np.zeros(len(points))
    lower, upper = percentile_bounds(shares, confidence_level)
    # A skewed column can put its mean outside a narrow percentile band
    lower = np.minimum(lower, points)
    upper = np.maximum(upper, points)

    if not (np.isfinite(points).all() and np.isfinite(lower).all() and np.isfinite(upper).all()):
        raise InternalError("summary statistics are not finite")

    point_map = dict(zip(ensemble.entity_ids, points.tolist()))
    seats = apportion_seats(
        point_map,
        scope.total_seats,
        threshold=viability_threshold,
        excluded=(others_id,),
    )

    entities = []
    for i, entity_id in enumerate(ensemble.entity_ids):
        baseline = baseline_shares.get(entity_id, point_map[entity_id])
        past = history.get(entity_id) if history else None
        entities.append(EntityProjection(
            entity_id=entity_id,
            point_estimate=point_map[entity_id],
            lower=float(lower[i]),
            upper=float(upper[i]),
            std_dev=float(std_devs[i]),
            seats=seats[entity_id],
            trend=classify_trend(point_map[entity_id] - baseline, epsilon),
            baseline_share=baseline,
            historical_trend=past.trend_slope if past else 0.0,
            growth_rate=past.avg_growth_rate if past else 0.0,
        ))
    entities.sort(key=lambda e: (-e.point_estimate, e.entity_id))

    competitors = {e: p for e, p in point_map.items() if e != others_id}
    favorite = min(competitors, key=lambda e: (-competitors[e], e)) if competitors else None

    return ProjectionResult(
        scope=scope,
        iterations=ensemble.iterations,
        confidence_level=confidence_level,
        total_seats=scope.total_seats,
        entities=entities,
        overall_confidence=overall_confidence(points, std_devs),
        favorite=favorite,
        competitiveness=competitiveness(competitors),
        warnings=list(warnings),
    )
