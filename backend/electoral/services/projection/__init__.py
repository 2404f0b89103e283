from electoral.services.projection.aggregator import BaseDistribution, aggregate_inputs
from electoral.services.projection.apportionment import apportion_seats, dhondt_allocation
from electoral.services.projection.comparator import compare_projections, format_comparison_report
from electoral.services.projection.decay import DecayPolicy
from electoral.services.projection.engine import ProjectionEngine, run_projection
from electoral.services.projection.errors import (
    ApportionmentError,
    Cancelled,
    InternalError,
    MismatchError,
    ProjectionError,
    ValidationError,
)
from electoral.services.projection.ranker import rank_candidates
from electoral.services.projection.sampler import MonteCarloSampler, ProjectionEnsemble, sample_ensemble
from electoral.services.projection.summarizer import summarize_ensemble

__all__ = [
    "ApportionmentError",
    "BaseDistribution",
    "Cancelled",
    "DecayPolicy",
    "InternalError",
    "MismatchError",
    "MonteCarloSampler",
    "ProjectionEngine",
    "ProjectionEnsemble",
    "ProjectionError",
    "ValidationError",
    "aggregate_inputs",
    "apportion_seats",
    "compare_projections",
    "dhondt_allocation",
    "format_comparison_report",
    "rank_candidates",
    "run_projection",
    "sample_ensemble",
    "summarize_ensemble",
]
