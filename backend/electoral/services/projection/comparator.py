"""
Scenario comparison

Per-entity delta between two projections over the same universe
(baseline vs. modified, before vs. after an event).

Shares are carried as Decimal built from the float's shortest repr, so
``after == before + change`` holds exactly.
"""
from __future__ import annotations

from decimal import Decimal, localcontext

from electoral.config import settings
from electoral.schemas.projection import ComparisonResult, EntityComparison, ProjectionResult

from .errors import MismatchError
from .summarizer import classify_trend


def _exact(value: float) -> Decimal:
    return Decimal(repr(float(value)))


def _exact_difference(after: Decimal, before: Decimal) -> Decimal:
    """``after - before`` with enough digits that nothing is rounded."""
    digits = max(after.adjusted(), before.adjusted()) - min(
        after.as_tuple().exponent, before.as_tuple().exponent
    ) + 2
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, digits)
        return after - before


def compare_projections(
    before: ProjectionResult,
    after: ProjectionResult,
    trend_epsilon: float | None = None,
    label_before: str = "before",
    label_after: str = "after",
) -> ComparisonResult:
    """Compare two projections entity by entity.

    Raises:
        MismatchError: the two projections cover different entity universes.
    """
    ids_before = set(before.entity_ids)
    ids_after = set(after.entity_ids)
    if ids_before != ids_after:
        only_before = sorted(ids_before - ids_after)
        only_after = sorted(ids_after - ids_before)
        raise MismatchError(
            f"entity universes differ (only in {label_before}: {only_before}, "
            f"only in {label_after}: {only_after})"
        )

    epsilon = settings.TREND_EPSILON if trend_epsilon is None else trend_epsilon

    entities = []
    for b in before.entities:
        a = after.entity(b.entity_id)
        value_before = _exact(b.point_estimate)
        value_after = _exact(a.point_estimate)
        change = _exact_difference(value_after, value_before)
        entities.append(EntityComparison(
            entity_id=b.entity_id,
            before=value_before,
            after=value_after,
            change=change,
            trend=classify_trend(float(change), epsilon),
            seats_before=b.seats,
            seats_after=a.seats,
            seat_change=a.seats - b.seats,
        ))

    gainers = [e for e in entities if e.change > 0]
    losers = [e for e in entities if e.change < 0]
    biggest_gainer = min(gainers, key=lambda e: (-e.change, e.entity_id)).entity_id if gainers else None
    biggest_loser = min(losers, key=lambda e: (e.change, e.entity_id)).entity_id if losers else None

    volatility = float(sum(abs(e.change) for e in entities)) / 2

    return ComparisonResult(
        label_before=label_before,
        label_after=label_after,
        entities=entities,
        biggest_gainer=biggest_gainer,
        biggest_loser=biggest_loser,
        volatility=volatility,
        before=before,
        after=after,
    )


def format_comparison_report(result: ComparisonResult) -> str:
    """Plain-text comparison report."""
    lines = []
    lines.append("=" * 60)
    lines.append("Scenario comparison")
    lines.append("=" * 60)
    lines.append(f"  {result.label_before} -> {result.label_after}")
    lines.append(f"  Total volatility: {result.volatility:.2%}")
    if result.biggest_gainer:
        lines.append(f"  Biggest gainer: {result.biggest_gainer}")
    if result.biggest_loser:
        lines.append(f"  Biggest loser: {result.biggest_loser}")
    lines.append("")

    lines.append(f"  {'entity':12s} {'before':>8s} {'after':>8s} {'change':>8s} {'seats':>9s}  trend")
    for e in sorted(result.entities, key=lambda e: (-abs(e.change), e.entity_id)):
        lines.append(
            f"  {e.entity_id:12s} {float(e.before):8.2%} {float(e.after):8.2%} "
            f"{float(e.change):+8.2%} {e.seats_before:4d}{e.seat_change:+5d}  {e.trend}"
        )

    lines.append("=" * 60)
    return "\n".join(lines)
