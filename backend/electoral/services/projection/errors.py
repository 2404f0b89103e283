"""Typed failures of the projection engine.

Every failure path raises one of these; callers map ``kind`` to a status.
"""
from __future__ import annotations


class ProjectionError(Exception):
    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ProjectionError):
    """Malformed or inconsistent request, detected before sampling."""
    kind = "validation"


class ApportionmentError(ProjectionError):
    kind = "apportionment"


class MismatchError(ProjectionError):
    """Two projections over different entity universes."""
    kind = "mismatch"


class Cancelled(ProjectionError):
    kind = "cancelled"


class InternalError(ProjectionError):
    """Unexpected numerical failure, e.g. NaN propagation."""
    kind = "internal"
