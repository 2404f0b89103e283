"""
Input aggregation

Blends poll samples, the historical baseline and analyst/event deltas into
one base distribution: a (mean, variance) pair per entity.

    base     = w_poll * poll_mean + w_hist * hist_share + w_adj * 0
    adjusted = clamp(base + sum(adjustment deltas) + sum(event effects), 0, 1)

Channels an entity has no data for hand their weight to the remaining
channels in proportion. Means are renormalized to sum to 1 afterwards.
"""
from __future__ import annotations

import statistics
from collections import defaultdict
from dataclasses import dataclass, field

import numpy as np

from electoral.config import settings
from electoral.schemas.projection import ProjectionRequest
from electoral.utils.logger import get_logger

from .decay import DecayPolicy
from .history import EntityHistory, analyze_history, residual_share, resolve_baseline_year
from .validators import ValidationReport, normalize_weights, validate_request

logger = get_logger(__name__)


@dataclass(frozen=True)
class BaseDistribution:
    entity_ids: tuple[str, ...]
    means: np.ndarray                 # normalized, sums to 1
    variances: np.ndarray
    raw_means: dict[str, float]       # adjusted means before renormalization
    baseline_shares: dict[str, float]
    history: dict[str, EntityHistory] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    def mean_of(self, entity_id: str) -> float:
        return float(self.means[self.entity_ids.index(entity_id)])

    def variance_of(self, entity_id: str) -> float:
        return float(self.variances[self.entity_ids.index(entity_id)])


def blend_channels(
    poll_mean: float | None,
    hist_share: float | None,
    poll_weight: float,
    history_weight: float,
    adjustment_weight: float,
) -> float:
    """Weighted blend; missing channels redistribute their weight proportionally."""
    channels = [(adjustment_weight, 0.0)]
    if poll_mean is not None:
        channels.append((poll_weight, poll_mean))
    if hist_share is not None:
        channels.append((history_weight, hist_share))

    available = sum(w for w, _ in channels)
    if available <= 0:
        return 0.0
    return sum(w * v for w, v in channels) / available


def entity_variance(
    poll_shares: list[float],
    history: EntityHistory | None,
    min_variance: float,
) -> float:
    """Poll dispersion, else historical volatility, never below the floor."""
    if len(poll_shares) >= 2:
        return max(min_variance, statistics.variance(poll_shares))
    if len(poll_shares) == 1:
        return min_variance
    if history is not None and len(history.points) >= 2:
        return max(min_variance, history.volatility ** 2)
    return min_variance


def normalize_means(
    entity_ids: tuple[str, ...],
    adjusted: dict[str, float],
    report: ValidationReport,
) -> np.ndarray:
    """Scale means to sum to 1; "others" (or the largest entity) absorbs rounding."""
    others_id = settings.OTHERS_ENTITY_ID
    values = np.array([adjusted[e] for e in entity_ids], dtype=float)
    total = float(values.sum())

    if total <= 0:
        # All-zero fallback: uniform over the named entities
        named = [i for i, e in enumerate(entity_ids) if e != others_id] or list(range(len(entity_ids)))
        values = np.zeros(len(entity_ids))
        values[named] = 1.0 / len(named)
        report.add_warning("all adjusted shares are zero; using a uniform distribution")
    else:
        values = values / total

    residual = 1.0 - float(values.sum())
    if residual != 0.0:
        if others_id in entity_ids:
            absorb = entity_ids.index(others_id)
        else:
            absorb = int(np.argmax(values))
        values[absorb] = max(0.0, values[absorb] + residual)
    return values


def aggregate_inputs(
    request: ProjectionRequest,
    decay_policy: DecayPolicy | None = None,
    min_variance: float | None = None,
) -> BaseDistribution:
    """Produce the base distribution for a request.

    Raises:
        ValidationError: empty universe, all-zero weights, non-positive
            iteration count or another inconsistent request field.
    """
    report = validate_request(request)
    weights = normalize_weights(request.weights, report)
    decay_policy = decay_policy or DecayPolicy.from_settings()
    min_variance = settings.MIN_VARIANCE if min_variance is None else min_variance

    universe = set(request.entities)
    entity_ids = tuple(request.entities)

    polls: dict[str, list[float]] = defaultdict(list)
    for p in request.polls:
        if p.entity_id in universe:
            polls[p.entity_id].append(p.share)

    history = analyze_history(request.history, request.scope.base_year)
    baseline_year = resolve_baseline_year(request.history, request.scope.base_year)
    hist_shares = {e: h.baseline_share for e, h in history.items() if e in universe}
    others_id = settings.OTHERS_ENTITY_ID
    if others_id in universe and hist_shares.get(others_id) is None and baseline_year is not None:
        hist_shares[others_id] = residual_share(
            {e: h for e, h in history.items() if e in universe}, baseline_year
        )

    deltas: dict[str, float] = defaultdict(float)
    for a in request.adjustments:
        if a.entity_id in universe:
            deltas[a.entity_id] += a.delta
    for event in request.external_factors:
        effect = decay_policy.signed_effect(event)
        for entity_id in set(event.affected_entities) & universe:
            deltas[entity_id] += effect

    raw_means: dict[str, float] = {}
    variances = np.empty(len(entity_ids))
    for i, entity_id in enumerate(entity_ids):
        shares = polls.get(entity_id, [])
        poll_mean = sum(shares) / len(shares) if shares else None
        base = blend_channels(
            poll_mean,
            hist_shares.get(entity_id),
            weights.poll_weight,
            weights.history_weight,
            weights.adjustment_weight,
        )
        raw_means[entity_id] = min(1.0, max(0.0, base + deltas[entity_id]))
        variances[i] = entity_variance(shares, history.get(entity_id), min_variance)

    means = normalize_means(entity_ids, raw_means, report)
    baseline_shares = {
        e: hist_shares[e] if hist_shares.get(e) is not None else float(means[i])
        for i, e in enumerate(entity_ids)
    }

    logger.debug(
        "Aggregated %d entities (%d polled, %d with history)",
        len(entity_ids), len(polls), len(hist_shares),
    )

    return BaseDistribution(
        entity_ids=entity_ids,
        means=means,
        variances=variances,
        raw_means=raw_means,
        baseline_shares=baseline_shares,
        history=history,
        warnings=tuple(report.warnings),
    )
