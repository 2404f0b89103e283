"""Candidate win probabilities over an ensemble."""
from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from electoral.config import settings
from electoral.schemas.projection import CandidateOdds, RankingResult

from .errors import ValidationError
from .sampler import ProjectionEnsemble


def win_probabilities(shares: np.ndarray) -> np.ndarray:
    """Fraction of rows each column leads; tied leaders split the row's credit."""
    leaders = shares == shares.max(axis=1, keepdims=True)
    credit = leaders / leaders.sum(axis=1, keepdims=True)
    return credit.mean(axis=0)


def rank_candidates(
    ensemble: ProjectionEnsemble,
    candidates: Iterable[str] | None = None,
) -> RankingResult:
    """Win probability per candidate and the overall winner.

    The winner has the highest win probability; ties go to the higher point
    estimate, then the lexically smaller id.

    Raises:
        ValidationError: no candidates, or a candidate outside the ensemble.
    """
    if candidates is None:
        candidates = [e for e in ensemble.entity_ids if e != settings.OTHERS_ENTITY_ID]
    candidates = list(dict.fromkeys(candidates))
    if not candidates:
        raise ValidationError("no candidates to rank")
    unknown = sorted(set(candidates) - set(ensemble.entity_ids))
    if unknown:
        raise ValidationError(f"candidates not in the projection: {', '.join(unknown)}")

    columns = [ensemble.index(c) for c in candidates]
    shares = ensemble.shares[:, columns]
    probabilities = win_probabilities(shares)
    points = shares.mean(axis=0)

    odds = [
        CandidateOdds(
            entity_id=candidate,
            win_probability=float(probabilities[i]),
            point_estimate=float(points[i]),
        )
        for i, candidate in enumerate(candidates)
    ]
    odds.sort(key=lambda o: (-o.win_probability, -o.point_estimate, o.entity_id))

    return RankingResult(candidates=odds, winner=odds[0].entity_id)
