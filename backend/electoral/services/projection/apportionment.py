"""
Seat apportionment (D'Hondt / highest quotient)

Seats go one at a time to the entity holding the highest unused quotient
share / k. Entities below the viability threshold do not compete. Equal
quotients go to the larger raw share, then to the lexically smaller id.
"""
from __future__ import annotations

import heapq
import math
from collections.abc import Iterable, Mapping
from fractions import Fraction

from electoral.config import settings

from .errors import ApportionmentError


def _exact(value: float) -> Fraction:
    # Decimal literal of the float, so 0.6 / 3 and 0.4 / 2 compare equal
    return Fraction(repr(float(value)))


def dhondt_allocation(votes: Mapping[str, float], total_seats: int) -> dict[str, int]:
    """Highest-quotient allocation over vote counts or shares.

    Quotients are exact fractions; equal ones go to the larger vote, then to
    the lexically smaller id.
    """
    seats = {party: 0 for party in votes}
    heap = [(-_exact(v), -_exact(v), party, 1) for party, v in votes.items() if v > 0]
    heapq.heapify(heap)
    for _ in range(total_seats):
        if not heap:
            break
        _, neg_votes, party, divisor = heapq.heappop(heap)
        seats[party] += 1
        heapq.heappush(heap, (neg_votes / (divisor + 1), neg_votes, party, divisor + 1))
    return seats


def default_threshold(total_seats: int) -> float:
    """Simplified electoral quotient: one seat's worth of the vote."""
    return 1.0 / total_seats if total_seats > 0 else 0.0


def apportion_seats(
    shares: Mapping[str, float],
    total_seats: int,
    threshold: float | None = None,
    excluded: Iterable[str] = (),
    tolerance: float | None = None,
) -> dict[str, int]:
    """Integer seats per entity for one vote-share vector.

    ``excluded`` entities (the "others" bucket) hold vote share but never
    seats. When no entity clears the threshold every positive share
    competes; when none is positive the seats rotate evenly in id order.

    Raises:
        ApportionmentError: negative seat total, invalid shares, or a vector
            that does not sum to 1 within ``tolerance``.
    """
    if total_seats < 0:
        raise ApportionmentError(f"total seats must be >= 0, got {total_seats}")
    tolerance = settings.SHARE_SUM_TOLERANCE if tolerance is None else tolerance

    for entity_id, share in shares.items():
        if not math.isfinite(share) or share < 0:
            raise ApportionmentError(f"invalid share for {entity_id}: {share}")
    total = math.fsum(shares.values())
    if abs(total - 1.0) > tolerance:
        raise ApportionmentError(f"vote shares sum to {total:.8f}, expected 1")

    seats = {entity_id: 0 for entity_id in shares}
    if total_seats == 0:
        return seats

    threshold = default_threshold(total_seats) if threshold is None else threshold
    excluded = set(excluded)
    eligible = {e: s for e, s in shares.items() if e not in excluded}
    if not eligible:
        raise ApportionmentError("no entity is eligible for seats")

    competing = {e: s for e, s in eligible.items() if s > 0 and s >= threshold}
    if not competing:
        competing = {e: s for e, s in eligible.items() if s > 0}
    if not competing:
        competing = {e: 1.0 for e in eligible}

    seats.update(dhondt_allocation(competing, total_seats))

    assigned = sum(seats.values())
    if assigned != total_seats:
        raise ApportionmentError(f"assigned {assigned} seats, expected {total_seats}")
    return seats
