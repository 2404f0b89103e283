"""
Request validation

Runs before any sampling. Hard problems raise ValidationError; recoverable
ones (unnormalized weights, inputs for unknown entities) are recorded as
warnings and carried into the result.
"""
from __future__ import annotations

import math
from collections import defaultdict

from electoral.config import settings
from electoral.schemas.projection import ProjectionRequest, WeightConfig
from electoral.utils.logger import get_logger

from .errors import ValidationError

logger = get_logger(__name__)


class ValidationReport:
    def __init__(self):
        self.checks: list[dict] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def add_check(self, name: str, passed: bool, detail: str):
        self.checks.append({"name": name, "passed": passed, "detail": detail})
        if not passed:
            self.errors.append(f"{name}: {detail}")

    def add_warning(self, message: str):
        logger.warning(message)
        self.warnings.append(message)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def raise_for_errors(self):
        if not self.passed:
            raise ValidationError("; ".join(self.errors))


def normalize_weights(weights: WeightConfig, report: ValidationReport) -> WeightConfig:
    """Scale the three channel weights to sum to 1, warning when they didn't."""
    total = weights.total
    if total <= 0:
        raise ValidationError("weights are all zero; cannot normalize")
    if math.isclose(total, 1.0, abs_tol=settings.SHARE_SUM_TOLERANCE):
        return weights
    report.add_warning(f"weights summed to {total:.4f}; renormalized to 1")
    return WeightConfig(
        poll_weight=weights.poll_weight / total,
        history_weight=weights.history_weight / total,
        adjustment_weight=weights.adjustment_weight / total,
    )


def validate_request(request: ProjectionRequest) -> ValidationReport:
    """Check a request's consistency; raises ValidationError on hard failures."""
    report = ValidationReport()

    report.add_check(
        "entity universe",
        len(request.entities) > 0,
        "entity universe is empty" if not request.entities else "ok",
    )
    duplicates = sorted({e for e in request.entities if request.entities.count(e) > 1})
    report.add_check(
        "unique entities",
        not duplicates,
        f"duplicate entity ids: {', '.join(duplicates)}" if duplicates else "ok",
    )
    named = [e for e in request.entities if e != settings.OTHERS_ENTITY_ID]
    report.add_check(
        "named entities",
        not request.entities or bool(named),
        f"universe holds only the {settings.OTHERS_ENTITY_ID!r} bucket",
    )
    candidates = getattr(request.simulation, "candidates", None)
    if candidates is not None:
        unknown = sorted(set(candidates) - set(request.entities))
        report.add_check(
            "ranked candidates",
            bool(candidates) and not unknown,
            f"candidates must be a non-empty subset of the universe (unknown: {', '.join(unknown)})",
        )
    report.add_check(
        "iterations",
        0 < request.iterations <= settings.MAX_ITERATIONS,
        f"iteration count must be in 1..{settings.MAX_ITERATIONS}, got {request.iterations}",
    )
    report.add_check(
        "confidence level",
        0.0 < request.confidence_level < 1.0,
        f"confidence level must be inside (0, 1), got {request.confidence_level}",
    )
    report.add_check(
        "total seats",
        request.scope.total_seats >= 0,
        f"total seats must be >= 0, got {request.scope.total_seats}",
    )
    if request.viability_threshold is not None:
        report.add_check(
            "viability threshold",
            0.0 <= request.viability_threshold <= 1.0,
            f"viability threshold must be in [0, 1], got {request.viability_threshold}",
        )
    if request.trend_epsilon is not None:
        report.add_check(
            "trend epsilon",
            request.trend_epsilon >= 0.0,
            f"trend epsilon must be >= 0, got {request.trend_epsilon}",
        )
    if request.workers is not None:
        report.add_check(
            "workers",
            request.workers >= 1,
            f"worker count must be >= 1, got {request.workers}",
        )
    if request.weights.total <= 0:
        report.add_check("weights", False, "weights are all zero; cannot normalize")

    year_totals: dict[int, float] = defaultdict(float)
    for h in request.history:
        year_totals[h.year] += h.share
    over = sorted(y for y, total in year_totals.items() if total > 1.0 + settings.SHARE_SUM_TOLERANCE)
    report.add_check(
        "historical shares",
        not over,
        "historical shares sum above 1 in " + ", ".join(
            f"{y} ({year_totals[y]:.4f})" for y in over
        ),
    )

    logger.debug(
        "Validated request: %d checks, %d failed",
        len(report.checks), sum(not c["passed"] for c in report.checks),
    )
    report.raise_for_errors()

    universe = set(request.entities)
    referenced = [
        ("poll sample", [p.entity_id for p in request.polls]),
        ("historical result", [h.entity_id for h in request.history]),
        ("adjustment", [a.entity_id for a in request.adjustments]),
        ("external factor", [e for f in request.external_factors for e in f.affected_entities]),
    ]
    for label, ids in referenced:
        unknown = sorted(set(ids) - universe)
        if unknown:
            report.add_warning(f"{label} for unknown entities ignored: {', '.join(unknown)}")

    return report
