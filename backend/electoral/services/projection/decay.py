"""
External factor decay

An event's effect fades with the time between the event and election day.
Each duration class has a half-life (exponential curve) or a horizon
(linear curve, effect gone after two half-lives).
"""
from __future__ import annotations

from dataclasses import dataclass, field

from electoral.config import settings
from electoral.schemas.projection import ExternalFactor

CURVES = ("exponential", "linear", "none")


@dataclass(frozen=True)
class DecayPolicy:
    curve: str = "exponential"
    half_lives: dict[str, float] = field(default_factory=lambda: {
        "short": 14.0,
        "medium": 60.0,
        "long": 180.0,
    })

    def __post_init__(self):
        if self.curve not in CURVES:
            raise ValueError(f"unknown decay curve: {self.curve!r}")
        for duration, days in self.half_lives.items():
            if days <= 0:
                raise ValueError(f"half-life for {duration!r} must be positive")

    @classmethod
    def from_settings(cls) -> DecayPolicy:
        return cls(curve=settings.FACTOR_DECAY_CURVE, half_lives=settings.factor_half_lives)

    def factor(self, duration: str, days_before_election: float) -> float:
        """Multiplier in [0, 1] applied to an event's magnitude."""
        if self.curve == "none" or days_before_election <= 0:
            return 1.0
        half_life = self.half_lives[duration]
        if self.curve == "exponential":
            return 0.5 ** (days_before_election / half_life)
        return max(0.0, 1.0 - days_before_election / (2 * half_life))

    def effective_magnitude(self, event: ExternalFactor) -> float:
        return event.magnitude * self.factor(event.duration, event.days_before_election)

    def signed_effect(self, event: ExternalFactor) -> float:
        return event.sign * self.effective_magnitude(event)
