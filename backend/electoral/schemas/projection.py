"""Pydantic schemas for projection requests and results."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from electoral.config import settings

Polarity = Literal["positive", "negative"]
DurationClass = Literal["short", "medium", "long"]
TrendLabel = Literal["growing", "declining", "stable"]
Competitiveness = Literal["high", "medium", "low"]
JobStatus = Literal["pending", "running", "completed", "failed", "cancelled"]


# ─── Inputs ───


class PollSample(BaseModel):
    entity_id: str
    share: float = Field(ge=0.0, le=1.0)
    source: str = ""  # institute or survey label


class HistoricalResult(BaseModel):
    entity_id: str
    share: float = Field(ge=0.0, le=1.0)
    year: int


class AdjustmentSpec(BaseModel):
    """Analyst override: signed share delta applied after blending."""
    entity_id: str
    delta: float = Field(ge=-1.0, le=1.0)
    rationale: str = ""


class ExternalFactor(BaseModel):
    """Scripted event whose effect fades with the time left until election day."""
    description: str
    polarity: Polarity
    magnitude: float = Field(ge=0.0, le=1.0)
    affected_entities: tuple[str, ...]
    duration: DurationClass = "medium"
    days_before_election: float = Field(default=0.0, ge=0.0)

    @property
    def sign(self) -> int:
        return 1 if self.polarity == "positive" else -1


class WeightConfig(BaseModel):
    poll_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    history_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    adjustment_weight: float = Field(default=0.2, ge=0.0, le=1.0)

    @property
    def total(self) -> float:
        return self.poll_weight + self.history_weight + self.adjustment_weight


class Scope(BaseModel):
    office: str                      # e.g. "deputado_federal"
    total_seats: int                 # seats contested for the office in this scope
    target_year: int
    state: str | None = None         # UF code, None = national
    base_year: int | None = None     # None = latest historical year available


# ─── Simulation kinds ───


class PredictionKind(BaseModel):
    kind: Literal["prediction"] = "prediction"


class ComparisonKind(BaseModel):
    """Head-to-head projection: rank the listed candidates (all entities if None)."""
    kind: Literal["comparison"] = "comparison"
    candidates: tuple[str, ...] | None = None


class EventImpactKind(BaseModel):
    """Project with and without the given events."""
    kind: Literal["event_impact"] = "event_impact"
    events: tuple[ExternalFactor, ...]


class WhatIfKind(BaseModel):
    """Project the baseline request and a modified copy of it."""
    kind: Literal["what_if"] = "what_if"
    adjustments: tuple[AdjustmentSpec, ...] = ()
    external_factors: tuple[ExternalFactor, ...] = ()
    weights: WeightConfig | None = None


SimulationKind = Annotated[
    Union[PredictionKind, ComparisonKind, EventImpactKind, WhatIfKind],
    Field(discriminator="kind"),
]


class ProjectionRequest(BaseModel):
    scope: Scope
    entities: tuple[str, ...]
    weights: WeightConfig = Field(default_factory=WeightConfig)
    iterations: int = Field(default_factory=lambda: settings.DEFAULT_ITERATIONS)
    confidence_level: float = Field(default_factory=lambda: settings.DEFAULT_CONFIDENCE_LEVEL)
    seed: int = Field(default_factory=lambda: settings.DEFAULT_SEED)
    polls: tuple[PollSample, ...] = ()
    history: tuple[HistoricalResult, ...] = ()
    adjustments: tuple[AdjustmentSpec, ...] = ()
    external_factors: tuple[ExternalFactor, ...] = ()
    simulation: SimulationKind = Field(default_factory=PredictionKind)

    # Per-request overrides of configured policy
    trend_epsilon: float | None = None
    viability_threshold: float | None = None  # None = 1 / total_seats
    workers: int | None = None

    model_config = {"frozen": True}


# ─── Results ───


class EntityProjection(BaseModel):
    entity_id: str
    point_estimate: float
    lower: float
    upper: float
    std_dev: float
    seats: int
    trend: TrendLabel
    baseline_share: float
    historical_trend: float = 0.0  # least-squares share change per year
    growth_rate: float = 0.0       # mean relative change between elections


class ProjectionResult(BaseModel):
    scope: Scope
    iterations: int
    confidence_level: float
    total_seats: int
    entities: list[EntityProjection]
    overall_confidence: float
    favorite: str | None = None
    competitiveness: Competitiveness = "low"
    warnings: list[str] = Field(default_factory=list)

    @property
    def entity_ids(self) -> list[str]:
        return [e.entity_id for e in self.entities]

    def entity(self, entity_id: str) -> EntityProjection:
        for e in self.entities:
            if e.entity_id == entity_id:
                return e
        raise KeyError(entity_id)

    def shares(self) -> dict[str, float]:
        return {e.entity_id: e.point_estimate for e in self.entities}

    def seats(self) -> dict[str, int]:
        return {e.entity_id: e.seats for e in self.entities}


class EntityComparison(BaseModel):
    entity_id: str
    before: Decimal
    after: Decimal
    change: Decimal  # after - before, exact
    trend: TrendLabel
    seats_before: int
    seats_after: int
    seat_change: int


class ComparisonResult(BaseModel):
    label_before: str = "before"
    label_after: str = "after"
    entities: list[EntityComparison]
    biggest_gainer: str | None = None
    biggest_loser: str | None = None
    volatility: float  # Pedersen index, 0..1
    before: ProjectionResult
    after: ProjectionResult

    def entity(self, entity_id: str) -> EntityComparison:
        for e in self.entities:
            if e.entity_id == entity_id:
                return e
        raise KeyError(entity_id)


class CandidateOdds(BaseModel):
    entity_id: str
    win_probability: float
    point_estimate: float


class RankingResult(BaseModel):
    candidates: list[CandidateOdds]  # sorted, winner first
    winner: str


# ─── Outcomes per simulation kind ───


class PredictionOutcome(BaseModel):
    kind: Literal["prediction"] = "prediction"
    projection: ProjectionResult
    ranking: RankingResult | None = None


class ComparisonOutcome(BaseModel):
    kind: Literal["comparison"] = "comparison"
    projection: ProjectionResult
    ranking: RankingResult


class EventImpactOutcome(BaseModel):
    kind: Literal["event_impact"] = "event_impact"
    comparison: ComparisonResult


class WhatIfOutcome(BaseModel):
    kind: Literal["what_if"] = "what_if"
    comparison: ComparisonResult


SimulationOutcome = Annotated[
    Union[PredictionOutcome, ComparisonOutcome, EventImpactOutcome, WhatIfOutcome],
    Field(discriminator="kind"),
]


# ─── Job / HTTP payloads ───


class JobSubmitResponse(BaseModel):
    job_id: str
    status: JobStatus


class JobStatusResponse(BaseModel):
    job_id: str
    status: JobStatus
    progress: float
    submitted_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_kind: str | None = None
    error: str | None = None
    outcome: SimulationOutcome | None = None


class CompareRequest(BaseModel):
    before: ProjectionResult
    after: ProjectionResult
    trend_epsilon: float | None = None
    label_before: str = "before"
    label_after: str = "after"


class ErrorResponse(BaseModel):
    kind: str
    detail: str
