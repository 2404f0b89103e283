"""
Projection engine

One call = one complete, side-effect-free computation:

    aggregate inputs -> sample ensemble -> summarize (+ rank | compare)

Two-projection kinds (event impact, what-if) reuse the request seed for both
runs, so the before/after delta reflects the scenario change and not
sampling noise.
"""
from __future__ import annotations

import threading
import time
from typing import assert_never

from electoral.schemas.projection import (
    ComparisonKind,
    ComparisonOutcome,
    EventImpactKind,
    EventImpactOutcome,
    PredictionKind,
    PredictionOutcome,
    ProjectionRequest,
    ProjectionResult,
    SimulationOutcome,
    WhatIfKind,
    WhatIfOutcome,
)
from electoral.utils.logger import get_logger

from .aggregator import BaseDistribution, aggregate_inputs
from .comparator import compare_projections
from .decay import DecayPolicy
from .ranker import rank_candidates
from .sampler import MonteCarloSampler, ProgressCallback, ProjectionEnsemble
from .summarizer import summarize_ensemble

logger = get_logger(__name__)


def _scaled_progress(
    progress: ProgressCallback | None, offset: float, span: float
) -> ProgressCallback | None:
    if progress is None:
        return None
    return lambda fraction: progress(offset + fraction * span)


def scenario_requests(request: ProjectionRequest) -> tuple[ProjectionRequest, ProjectionRequest]:
    """Baseline and modified requests for event-impact and what-if kinds."""
    baseline = request.model_copy(update={"simulation": PredictionKind()})
    match request.simulation:
        case EventImpactKind(events=events):
            modified = baseline.model_copy(update={
                "external_factors": request.external_factors + tuple(events),
            })
        case WhatIfKind(adjustments=adjustments, external_factors=factors, weights=weights):
            update = {
                "adjustments": request.adjustments + tuple(adjustments),
                "external_factors": request.external_factors + tuple(factors),
            }
            if weights is not None:
                update["weights"] = weights
            modified = baseline.model_copy(update=update)
        case _:
            raise TypeError(f"{request.simulation.kind} has no scenario pair")
    return baseline, modified


class ProjectionEngine:
    """Runs projection requests. Holds configuration only, no per-run state."""

    def __init__(
        self,
        decay_policy: DecayPolicy | None = None,
        batch_size: int | None = None,
        workers: int | None = None,
    ):
        self.decay_policy = decay_policy or DecayPolicy.from_settings()
        self.batch_size = batch_size
        self.workers = workers

    def prepare(self, request: ProjectionRequest) -> BaseDistribution:
        """Validate and aggregate; raises before any sampling happens."""
        return aggregate_inputs(request, decay_policy=self.decay_policy)

    def sample(
        self,
        request: ProjectionRequest,
        base: BaseDistribution,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> ProjectionEnsemble:
        sampler = MonteCarloSampler(
            seed=request.seed,
            batch_size=self.batch_size,
            workers=request.workers or self.workers,
        )
        return sampler.sample(base, request.iterations, cancel_event=cancel_event, progress=progress)

    def summarize(
        self,
        request: ProjectionRequest,
        base: BaseDistribution,
        ensemble: ProjectionEnsemble,
    ) -> ProjectionResult:
        return summarize_ensemble(
            ensemble,
            request.confidence_level,
            scope=request.scope,
            baseline_shares=base.baseline_shares,
            trend_epsilon=request.trend_epsilon,
            viability_threshold=request.viability_threshold,
            warnings=base.warnings,
            history=base.history,
        )

    def project(
        self,
        request: ProjectionRequest,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> tuple[ProjectionResult, ProjectionEnsemble]:
        """Single projection: summary plus the ensemble it came from."""
        base = self.prepare(request)
        ensemble = self.sample(request, base, cancel_event, progress)
        return self.summarize(request, base, ensemble), ensemble

    def _project_pair(
        self,
        request: ProjectionRequest,
        cancel_event: threading.Event | None,
        progress: ProgressCallback | None,
    ) -> tuple[ProjectionResult, ProjectionResult]:
        baseline, modified = scenario_requests(request)
        # Both requests are validated before either is sampled
        base_before = self.prepare(baseline)
        base_after = self.prepare(modified)

        ensemble = self.sample(baseline, base_before, cancel_event, _scaled_progress(progress, 0.0, 0.5))
        before = self.summarize(baseline, base_before, ensemble)
        ensemble = self.sample(modified, base_after, cancel_event, _scaled_progress(progress, 0.5, 0.5))
        after = self.summarize(modified, base_after, ensemble)
        return before, after

    def run(
        self,
        request: ProjectionRequest,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> SimulationOutcome:
        """Run a request to completion.

        Raises:
            ValidationError, ApportionmentError, MismatchError, Cancelled,
            InternalError (see ``errors``).
        """
        kind = request.simulation
        logger.info(
            "Projection start: kind=%s office=%s state=%s entities=%d iterations=%d seed=%d",
            kind.kind, request.scope.office, request.scope.state or "BR",
            len(request.entities), request.iterations, request.seed,
        )
        start_time = time.time()

        match kind:
            case PredictionKind():
                projection, ensemble = self.project(request, cancel_event, progress)
                outcome = PredictionOutcome(projection=projection, ranking=rank_candidates(ensemble))
            case ComparisonKind(candidates=candidates):
                projection, ensemble = self.project(request, cancel_event, progress)
                outcome = ComparisonOutcome(
                    projection=projection,
                    ranking=rank_candidates(ensemble, candidates),
                )
            case EventImpactKind():
                before, after = self._project_pair(request, cancel_event, progress)
                outcome = EventImpactOutcome(
                    comparison=compare_projections(
                        before, after, request.trend_epsilon,
                        label_before="without events", label_after="with events",
                    )
                )
            case WhatIfKind():
                before, after = self._project_pair(request, cancel_event, progress)
                outcome = WhatIfOutcome(
                    comparison=compare_projections(
                        before, after, request.trend_epsilon,
                        label_before="baseline", label_after="what-if",
                    )
                )
            case _:
                assert_never(kind)

        logger.info("Projection done: kind=%s (%.2fs)", kind.kind, time.time() - start_time)
        return outcome


def run_projection(
    request: ProjectionRequest,
    cancel_event: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> SimulationOutcome:
    return ProjectionEngine().run(request, cancel_event=cancel_event, progress=progress)
