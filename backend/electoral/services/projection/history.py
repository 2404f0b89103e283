"""
Historical baseline analysis

Per entity: baseline share (latest year <= base year), least-squares trend
slope over years, year-to-year volatility and average growth rate.
"""
from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field

from electoral.schemas.projection import HistoricalResult


@dataclass
class EntityHistory:
    entity_id: str
    points: list[tuple[int, float]] = field(default_factory=list)  # (year, share), sorted
    baseline_share: float | None = None
    baseline_year: int | None = None
    trend_slope: float = 0.0      # share per year
    volatility: float = 0.0       # sample std of shares
    avg_growth_rate: float = 0.0


def trend_slope(points: list[tuple[int, float]]) -> float:
    """Least-squares slope of share against year."""
    n = len(points)
    if n < 2:
        return 0.0
    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_x2 = sum(x * x for x, _ in points)
    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return 0.0
    slope = (n * sum_xy - sum_x * sum_y) / denom
    return slope if math.isfinite(slope) else 0.0


def volatility(values: list[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / (len(values) - 1))


def average_growth_rate(values: list[float]) -> float:
    rates = [
        (cur - prev) / prev
        for prev, cur in zip(values, values[1:])
        if prev > 0
    ]
    return sum(rates) / len(rates) if rates else 0.0


def resolve_baseline_year(
    results: list[HistoricalResult] | tuple[HistoricalResult, ...],
    base_year: int | None = None,
) -> int | None:
    """Latest year with results, not after ``base_year``."""
    years = [r.year for r in results if base_year is None or r.year <= base_year]
    return max(years) if years else None


def analyze_history(
    results: list[HistoricalResult] | tuple[HistoricalResult, ...],
    base_year: int | None = None,
) -> dict[str, EntityHistory]:
    """Group historical results by entity and derive baseline and trend figures.

    The baseline is each entity's share in the resolved baseline year (see
    ``resolve_baseline_year``); entities absent that year have no baseline.
    Results later than ``base_year`` are ignored. Repeated (entity, year)
    rows are summed, matching how per-state rows roll up into one scope.
    """
    year = resolve_baseline_year(results, base_year)
    by_entity: dict[str, dict[int, float]] = defaultdict(lambda: defaultdict(float))
    for r in results:
        if base_year is not None and r.year > base_year:
            continue
        by_entity[r.entity_id][r.year] += r.share

    analyzed: dict[str, EntityHistory] = {}
    for entity_id, years in by_entity.items():
        points = sorted(years.items())
        shares = [s for _, s in points]
        baseline = years.get(year)
        analyzed[entity_id] = EntityHistory(
            entity_id=entity_id,
            points=points,
            baseline_share=min(1.0, baseline) if baseline is not None else None,
            baseline_year=year if baseline is not None else None,
            trend_slope=trend_slope(points),
            volatility=volatility(shares),
            avg_growth_rate=average_growth_rate(shares),
        )
    return analyzed


def residual_share(history: dict[str, EntityHistory], year: int | None) -> float:
    """Share not claimed by any listed entity in ``year`` ("others")."""
    if year is None:
        return 0.0
    claimed = sum(
        h.baseline_share or 0.0
        for h in history.values()
        if h.baseline_year == year
    )
    return max(0.0, 1.0 - claimed)
