import pytest

from electoral.schemas.projection import (
    EntityProjection,
    HistoricalResult,
    PollSample,
    ProjectionRequest,
    ProjectionResult,
    Scope,
    WeightConfig,
)


@pytest.fixture
def scope():
    return Scope(office="deputado_federal", state="SP", total_seats=10, target_year=2026, base_year=2022)


@pytest.fixture
def make_request(scope):
    """Factory for a small three-party request; keyword overrides replace fields."""
    def _make(**overrides) -> ProjectionRequest:
        fields = dict(
            scope=scope,
            entities=("A", "B", "C"),
            weights=WeightConfig(poll_weight=0.3, history_weight=0.5, adjustment_weight=0.2),
            iterations=1000,
            confidence_level=0.9,
            seed=7,
            workers=1,
            polls=(
                PollSample(entity_id="A", share=0.40, source="p1"),
                PollSample(entity_id="A", share=0.42, source="p2"),
                PollSample(entity_id="B", share=0.30, source="p1"),
                PollSample(entity_id="B", share=0.28, source="p2"),
                PollSample(entity_id="C", share=0.20, source="p1"),
            ),
            history=(
                HistoricalResult(entity_id="A", share=0.38, year=2022),
                HistoricalResult(entity_id="B", share=0.32, year=2022),
                HistoricalResult(entity_id="C", share=0.22, year=2022),
            ),
        )
        fields.update(overrides)
        return ProjectionRequest(**fields)
    return _make


@pytest.fixture
def make_result(scope):
    """Factory for a ProjectionResult from {entity: share} and optional seats."""
    def _make(shares: dict[str, float], seats: dict[str, int] | None = None) -> ProjectionResult:
        seats = seats or {}
        return ProjectionResult(
            scope=scope,
            iterations=1,
            confidence_level=0.95,
            total_seats=sum(seats.values()),
            entities=[
                EntityProjection(
                    entity_id=entity_id,
                    point_estimate=share,
                    lower=share,
                    upper=share,
                    std_dev=0.0,
                    seats=seats.get(entity_id, 0),
                    trend="stable",
                    baseline_share=share,
                )
                for entity_id, share in shares.items()
            ],
            overall_confidence=1.0,
        )
    return _make
