"""
Projection CLI

Usage:
  # Run the bundled sample request
  python scripts/run_projection.py

  # Run a request file, overriding seed and iteration count
  python scripts/run_projection.py request.json --seed 7 --iterations 20000

  # What-if: same request plus an adjustment
  python scripts/run_projection.py request.json --what-if PT=+0.02 --what-if PL=-0.01

  # Save the full outcome as JSON
  python scripts/run_projection.py request.json --output outcome.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BASE_DIR / "backend"))

from electoral.schemas.projection import (
    AdjustmentSpec,
    ProjectionRequest,
    ProjectionResult,
    RankingResult,
    WhatIfKind,
)
from electoral.services.projection.comparator import format_comparison_report
from electoral.services.projection.engine import ProjectionEngine
from electoral.services.projection.errors import ProjectionError

DEFAULT_REQUEST = BASE_DIR / "backend" / "electoral" / "data" / "sample_request.json"

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def parse_what_if(values: list[str]) -> list[AdjustmentSpec]:
    adjustments = []
    for value in values:
        entity_id, _, delta = value.partition("=")
        if not entity_id or not delta:
            raise ValueError(f"expected ENTITY=DELTA, got {value!r}")
        adjustments.append(AdjustmentSpec(entity_id=entity_id, delta=float(delta), rationale="cli what-if"))
    return adjustments


def format_projection(projection: ProjectionResult, ranking: RankingResult | None) -> str:
    lines = []
    lines.append("=" * 60)
    scope = projection.scope
    lines.append(f"Projection: {scope.office} {scope.state or 'BR'} {scope.target_year}")
    lines.append("=" * 60)
    lines.append(
        f"  Iterations: {projection.iterations}  "
        f"CI: {projection.confidence_level:.0%}  "
        f"Seats: {projection.total_seats}"
    )
    lines.append(f"  Overall confidence: {projection.overall_confidence:.2f}")
    lines.append(f"  Competitiveness: {projection.competitiveness}")
    lines.append("")

    win = {c.entity_id: c.win_probability for c in ranking.candidates} if ranking else {}
    lines.append(f"  {'entity':12s} {'share':>7s} {'interval':>17s} {'seats':>5s} {'win':>6s}  trend")
    for e in projection.entities:
        lines.append(
            f"  {e.entity_id:12s} {e.point_estimate:7.2%} "
            f"[{e.lower:6.2%}, {e.upper:6.2%}] {e.seats:5d} "
            f"{win.get(e.entity_id, 0.0):6.1%}  {e.trend}"
        )
    if ranking:
        lines.append("")
        lines.append(f"  Winner: {ranking.winner}")
    for w in projection.warnings:
        lines.append(f"  warning: {w}")
    lines.append("=" * 60)
    return "\n".join(lines)


def load_request(args: argparse.Namespace) -> ProjectionRequest:
    """Read the request file and apply command-line overrides.

    Raises OSError for an unreadable file and ValueError (json or pydantic)
    for malformed content or a bad --what-if value.
    """
    with open(args.request, "r", encoding="utf-8") as f:
        payload = json.load(f)

    if args.seed is not None:
        payload["seed"] = args.seed
    if args.iterations is not None:
        payload["iterations"] = args.iterations
    if args.workers is not None:
        payload["workers"] = args.workers
    if args.what_if:
        payload["simulation"] = WhatIfKind(adjustments=tuple(parse_what_if(args.what_if))).model_dump()

    return ProjectionRequest.model_validate(payload)


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Run an electoral projection")
    parser.add_argument("request", nargs="?", default=str(DEFAULT_REQUEST), help="request JSON file")
    parser.add_argument("--seed", type=int, help="override the request seed")
    parser.add_argument("--iterations", type=int, help="override the iteration count")
    parser.add_argument("--workers", type=int, help="sampler worker threads")
    parser.add_argument("--what-if", action="append", default=[], metavar="ENTITY=DELTA",
                        help="compare against the request plus this share adjustment")
    parser.add_argument("--output", help="write the outcome JSON here")
    args = parser.parse_args(argv)

    try:
        request = load_request(args)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Invalid request: {e}")
        sys.exit(1)

    try:
        outcome = ProjectionEngine().run(request)
    except ProjectionError as e:
        logger.error(f"Projection failed ({e.kind}): {e.message}")
        sys.exit(1)

    if outcome.kind in ("prediction", "comparison"):
        logger.info(format_projection(outcome.projection, outcome.ranking))
    else:
        logger.info(format_comparison_report(outcome.comparison))

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(outcome.model_dump_json(indent=2))
        logger.info(f"Outcome written: {output_path}")


if __name__ == "__main__":
    main()
