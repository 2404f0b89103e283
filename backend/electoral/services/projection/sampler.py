"""
Monte Carlo sampler

Builds the ensemble: N perturbed copies of the base distribution, one row per
iteration, stored in a single (iterations, entities) array.

Each iteration owns its generator, seeded from (seed, iteration index), so a
row never depends on the batch layout or on how many workers ran. Noise is a
normal truncated to [0, 1] around the entity mean (inverse-CDF draw), and
every row is renormalized to sum to 1.
"""
from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass

import numpy as np
from scipy import stats

from electoral.config import settings
from electoral.utils.logger import get_logger

from .aggregator import BaseDistribution
from .errors import Cancelled, InternalError

logger = get_logger(__name__)

ProgressCallback = Callable[[float], None]

# Keeps the inverse CDF finite at the truncation bounds
_P_EPS = 1e-12


@dataclass(frozen=True)
class ProjectionEnsemble:
    entity_ids: tuple[str, ...]
    shares: np.ndarray  # (iterations, entities), read-only
    seed: int

    @property
    def iterations(self) -> int:
        return self.shares.shape[0]

    def __len__(self) -> int:
        return self.iterations

    def index(self, entity_id: str) -> int:
        return self.entity_ids.index(entity_id)

    def column(self, entity_id: str) -> np.ndarray:
        return self.shares[:, self.index(entity_id)]

    def row(self, iteration: int) -> dict[str, float]:
        return dict(zip(self.entity_ids, self.shares[iteration].tolist()))


def iteration_generator(seed: int, iteration: int) -> np.random.Generator:
    """Independent, reproducible stream for one iteration."""
    return np.random.default_rng(np.random.SeedSequence(seed, spawn_key=(iteration,)))


class MonteCarloSampler:
    """Draws ensembles from a base distribution."""

    def __init__(
        self,
        seed: int,
        batch_size: int | None = None,
        workers: int | None = None,
    ):
        self.seed = seed
        self.batch_size = batch_size or settings.SAMPLER_BATCH_SIZE
        self.workers = workers or settings.SAMPLER_WORKERS
        if self.batch_size < 1 or self.workers < 1:
            raise ValueError("batch_size and workers must be positive")

    def _draw_batch(self, base: BaseDistribution, start: int, stop: int) -> np.ndarray:
        means = base.means
        sd = np.sqrt(base.variances)
        cdf_lo = stats.norm.cdf((0.0 - means) / sd)
        cdf_hi = stats.norm.cdf((1.0 - means) / sd)

        uniforms = np.empty((stop - start, len(means)))
        for row, i in enumerate(range(start, stop)):
            uniforms[row] = iteration_generator(self.seed, i).random(len(means))

        p = np.clip(cdf_lo + uniforms * (cdf_hi - cdf_lo), _P_EPS, 1.0 - _P_EPS)
        draws = np.clip(means + sd * stats.norm.ppf(p), 0.0, 1.0)

        totals = draws.sum(axis=1, keepdims=True)
        empty = totals[:, 0] <= 0
        if empty.any():
            draws[empty] = means
            totals[empty] = means.sum()
        return draws / totals

    def _batches(self, iterations: int) -> list[tuple[int, int]]:
        return [
            (start, min(start + self.batch_size, iterations))
            for start in range(0, iterations, self.batch_size)
        ]

    def sample(
        self,
        base: BaseDistribution,
        iterations: int,
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> ProjectionEnsemble:
        """Draw ``iterations`` rows.

        Raises:
            Cancelled: ``cancel_event`` was set; checked between batches.
            InternalError: the draws contain NaN or infinite values.
        """
        if iterations <= 0:
            raise ValueError("iterations must be positive")

        arena = np.empty((iterations, len(base.entity_ids)))
        batches = self._batches(iterations)
        done = 0

        def check_cancel():
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Sampling cancelled after %d/%d iterations", done, iterations)
                raise Cancelled(f"cancelled after {done} of {iterations} iterations")

        def tick(start: int, stop: int):
            nonlocal done
            done += stop - start
            logger.debug("Sampled %d/%d iterations", done, iterations)
            if progress is not None:
                progress(done / iterations)

        if self.workers == 1 or len(batches) == 1:
            for start, stop in batches:
                check_cancel()
                arena[start:stop] = self._draw_batch(base, start, stop)
                tick(start, stop)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                pending = {
                    executor.submit(self._draw_batch, base, start, stop): (start, stop)
                    for start, stop in batches
                }
                try:
                    while pending:
                        check_cancel()
                        finished, _ = wait(pending, return_when=FIRST_COMPLETED)
                        for future in finished:
                            start, stop = pending.pop(future)
                            arena[start:stop] = future.result()
                            tick(start, stop)
                except Cancelled:
                    for future in pending:
                        future.cancel()
                    raise

        if not np.isfinite(arena).all():
            raise InternalError("ensemble contains non-finite shares")

        arena.setflags(write=False)
        return ProjectionEnsemble(entity_ids=base.entity_ids, shares=arena, seed=self.seed)


def sample_ensemble(
    base: BaseDistribution,
    iterations: int,
    seed: int,
    batch_size: int | None = None,
    workers: int | None = None,
    cancel_event: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> ProjectionEnsemble:
    sampler = MonteCarloSampler(seed=seed, batch_size=batch_size, workers=workers)
    return sampler.sample(base, iterations, cancel_event=cancel_event, progress=progress)
