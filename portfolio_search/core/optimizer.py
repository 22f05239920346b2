"""
Random Search Portfolio Optimizer
=================================

This module searches for the weight vector with the lowest risk under a
ConstraintSet by repeated random sampling:

1. Validate the constraint set (infeasible sets fail before any sampling).
2. Seed one numpy Generator from ``rng_seed``. No global random state is
   used, so a run is reproducible bit for bit.
3. For every trial, draw one non-negative value per asset, normalize the
   draws to the target total weight and keep the candidate if it is
   feasible. When box bounds are present, draws are taken inside each
   asset's bounds before normalizing. A trial retries up to
   ``max_attempts`` times before it is counted as a failed draw.
4. Score feasible candidates with the objective and keep the strictly
   lowest one (ties keep the earliest candidate).
5. Compute each asset's standalone risk for comparison.

Trials are independent, so they can be split over several workers. Worker
``i`` gets its own generator spawned from ``SeedSequence(rng_seed)``, and the
results are merged by a single reducer in worker order with the same
strictly-lower rule, which keeps parallel runs deterministic for a given
worker count.
"""

import logging
import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from portfolio_search.core.constraints import ConstraintSet
from portfolio_search.core.errors import InvalidArgumentError, NoFeasibleSolutionError
from portfolio_search.core.objective import ObjectiveFunction, ObjectiveSpec, get_objective
from portfolio_search.core.result import OptimizationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100

# Raw draws summing to less than this are redrawn instead of normalized
_ZERO_TOTAL = 1e-12

# Warn when more than this share of trials fail to produce a candidate
_FAILED_DRAW_WARNING = 0.5


class CandidateSampler:
    """
    Draws feasible weight vectors for one ConstraintSet.

    Attributes:
        constraints (ConstraintSet): Constraints every candidate must satisfy
        max_attempts (int): Draws per call before giving up
        target_total (float): Total weight draws are normalized to (1.0
            unless the weight-sum and box limits exclude it)
        use_box (bool): True when draws are taken within box bounds
    """

    def __init__(self, constraints: ConstraintSet, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.constraints = constraints
        self.max_attempts = max_attempts
        self.n_assets = constraints.n_assets

        lower, upper = constraints.effective_bounds()
        sum_lo, sum_hi = constraints.sum_bounds()
        total_lo = max(sum_lo, float(np.sum(lower)))
        total_hi = min(sum_hi, float(np.sum(upper)))
        self.target_total = float(np.clip(1.0, total_lo, total_hi))

        self.use_box = constraints.has_box_bounds()
        cap = max(self.target_total, 1.0)
        self.draw_lower = np.where(np.isfinite(lower), lower, 0.0)
        self.draw_upper = np.maximum(np.where(np.isfinite(upper), upper, cap), self.draw_lower)

    def _raw_draw(self, rng: np.random.Generator) -> np.ndarray:
        if self.use_box:
            return rng.uniform(self.draw_lower, self.draw_upper)
        return rng.random(self.n_assets)

    def draw(self, rng: np.random.Generator) -> Optional[np.ndarray]:
        """
        Draw one feasible candidate.

        Args:
            rng: Generator supplying all randomness for the draw

        Returns:
            Weight array in asset order, or None if every attempt was infeasible
        """
        for _ in range(self.max_attempts):
            raw = self._raw_draw(rng)
            total = raw.sum()
            if abs(total) <= _ZERO_TOTAL:
                continue
            weights = raw * (self.target_total / total)
            if self.constraints.is_feasible(weights):
                return weights
        return None


@dataclass
class _WorkerOutcome:
    """Trials run by one worker: per-trial scores (NaN for failed draws) and its best candidate."""

    scores: np.ndarray
    best_weights: Optional[np.ndarray]
    best_score: float
    failed_draws: int
    stopped_early: bool


class RandomSearchOptimizer:
    """
    Minimum-risk portfolio search by seeded random sampling.

    Example:
        >>> optimizer = RandomSearchOptimizer()
        >>> result = optimizer.optimize(returns, constraints, 'stddev', trials=1000, rng_seed=42)
        >>> result.weights
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        n_workers: int = 1,
        max_seconds: Optional[float] = None
    ):
        """
        Args:
            max_attempts: Draws per trial before it counts as a failed draw
            n_workers: Number of threads the trials are split over
            max_seconds: Optional wall-clock budget; the best candidate found
                so far is returned when it runs out

        Raises:
            InvalidArgumentError: If any setting is out of range
        """
        if not _is_int(max_attempts) or max_attempts < 1:
            raise InvalidArgumentError(f"max_attempts must be a positive integer, got {max_attempts!r}")
        if not _is_int(n_workers) or n_workers < 1:
            raise InvalidArgumentError(f"n_workers must be a positive integer, got {n_workers!r}")
        if max_seconds is not None and not max_seconds > 0:
            raise InvalidArgumentError(f"max_seconds must be positive, got {max_seconds!r}")

        self.max_attempts = int(max_attempts)
        self.n_workers = int(n_workers)
        self.max_seconds = max_seconds

    def optimize(
        self,
        returns: Union[pd.DataFrame, np.ndarray],
        constraints: ConstraintSet,
        objective: Union[ObjectiveFunction, ObjectiveSpec, str] = 'stddev',
        trials: int = 1000,
        rng_seed: int = 0
    ) -> OptimizationResult:
        """
        Run the search.

        Args:
            returns: Return matrix (rows = periods, columns = assets)
            constraints: Constraints over the same assets as ``returns``
            objective: Objective function, spec or measure name
            trials: Number of trials (> 0)
            rng_seed: Seed for the run's random generator

        Returns:
            OptimizationResult with the lowest-risk feasible weights found

        Raises:
            InvalidArgumentError: If trials <= 0 or inputs do not match
            InfeasibleConstraintSetError: If the constraints contradict each other
            DegenerateSeriesError: If fewer than 2 return periods are available
            NoFeasibleSolutionError: If no trial produced a feasible candidate
        """
        if not _is_int(trials) or trials <= 0:
            raise InvalidArgumentError(f"trials must be a positive integer, got {trials!r}")
        if not _is_int(rng_seed) or rng_seed < 0:
            raise InvalidArgumentError(f"rng_seed must be a non-negative integer, got {rng_seed!r}")
        trials = int(trials)
        rng_seed = int(rng_seed)

        objective = get_objective(objective)
        R = aligned_return_matrix(returns, constraints)
        constraints.validate()

        # One-asset portfolios; also fails fast on a degenerate series
        standalone = objective.evaluate_many(np.eye(constraints.n_assets), R)

        sampler = CandidateSampler(constraints, self.max_attempts)
        deadline = None
        if self.max_seconds is not None:
            deadline = time.monotonic() + self.max_seconds

        logger.info(
            "Random search: %d trials over %d assets (objective=%s, seed=%d, workers=%d)",
            trials, constraints.n_assets, objective.name, rng_seed, self.n_workers
        )

        chunks = _split_trials(trials, self.n_workers)
        if len(chunks) == 1:
            outcomes = [self._run_trials(np.random.default_rng(rng_seed), trials, R, objective, sampler, deadline)]
        else:
            seeds = np.random.SeedSequence(rng_seed).spawn(len(chunks))
            with ThreadPoolExecutor(max_workers=len(chunks)) as pool:
                futures = [
                    pool.submit(self._run_trials, np.random.default_rng(seed), n, R, objective, sampler, deadline)
                    for seed, n in zip(seeds, chunks)
                ]
                # Collected in worker-index order, never completion order
                outcomes = [f.result() for f in futures]

        best_weights, best_score = _reduce_outcomes(outcomes)

        scores = np.concatenate([o.scores for o in outcomes])
        trials_evaluated = int(scores.size)
        failed_draws = sum(o.failed_draws for o in outcomes)
        stopped_early = any(o.stopped_early for o in outcomes)

        if best_weights is None:
            raise NoFeasibleSolutionError(
                f"No feasible candidate found in {trials_evaluated} trial(s) "
                f"({failed_draws} failed draws, {self.max_attempts} attempts each) "
                f"for {constraints!r}",
                trials_attempted=trials_evaluated,
                failed_draws=failed_draws,
            )

        if failed_draws > _FAILED_DRAW_WARNING * trials_evaluated:
            warnings.warn(
                f"{failed_draws} of {trials_evaluated} trials produced no feasible candidate. "
                f"The constraints may be too tight for random sampling."
            )

        history = np.fmin.accumulate(scores)

        logger.info(
            "Random search finished: best %s=%.6f after %d trials (%d failed draws%s)",
            objective.name, best_score, trials_evaluated, failed_draws,
            ", stopped early" if stopped_early else ""
        )

        return OptimizationResult(
            assets=constraints.assets,
            weight_values=best_weights,
            objective_value=best_score,
            trials_evaluated=trials_evaluated,
            risk_values=standalone,
            failed_draws=failed_draws,
            history=history,
            objective_name=objective.name,
            seed=rng_seed,
            n_workers=len(chunks),
            stopped_early=stopped_early,
        )

    @staticmethod
    def _run_trials(
        rng: np.random.Generator,
        n_trials: int,
        R: np.ndarray,
        objective: ObjectiveFunction,
        sampler: CandidateSampler,
        deadline: Optional[float]
    ) -> _WorkerOutcome:
        scores = np.full(n_trials, np.nan)
        best_weights = None
        best_score = np.inf
        failed_draws = 0
        evaluated = 0
        stopped_early = False

        for i in range(n_trials):
            if deadline is not None and time.monotonic() >= deadline:
                stopped_early = True
                break
            evaluated += 1

            weights = sampler.draw(rng)
            if weights is None:
                failed_draws += 1
                continue

            score = objective.evaluate(weights, R)
            scores[i] = score
            if score < best_score:
                best_score = score
                best_weights = weights

        logger.debug(
            "Worker finished %d/%d trials (%d failed draws, best=%.6g)",
            evaluated, n_trials, failed_draws, best_score
        )
        return _WorkerOutcome(scores[:evaluated], best_weights, best_score, failed_draws, stopped_early)


def _reduce_outcomes(outcomes: List[_WorkerOutcome]) -> Tuple[Optional[np.ndarray], float]:
    """Merge worker results in worker order: strictly lower wins, so ties keep the earlier worker."""
    best_weights = None
    best_score = np.inf
    for outcome in outcomes:
        if outcome.best_weights is not None and outcome.best_score < best_score:
            best_weights = outcome.best_weights
            best_score = outcome.best_score
    return best_weights, best_score


def _split_trials(trials: int, n_workers: int) -> List[int]:
    """Contiguous trial counts per worker; never more workers than trials."""
    k = min(n_workers, trials)
    base, extra = divmod(trials, k)
    return [base + (1 if i < extra else 0) for i in range(k)]


def aligned_return_matrix(returns, constraints: ConstraintSet) -> np.ndarray:
    """Return values as a float matrix with columns in constraint-asset order."""
    if isinstance(returns, pd.DataFrame):
        columns = [str(c) for c in returns.columns]
        if sorted(columns) != sorted(constraints.assets):
            raise InvalidArgumentError(
                f"Return columns {columns} do not match constraint assets {list(constraints.assets)}"
            )
        frame = returns.copy()
        frame.columns = columns
        R = frame[list(constraints.assets)].to_numpy(dtype=float)
    else:
        R = np.asarray(returns, dtype=float)
        if R.ndim != 2 or R.shape[1] != constraints.n_assets:
            raise InvalidArgumentError(
                f"Return matrix shape {R.shape} does not match {constraints.n_assets} assets"
            )

    if not np.all(np.isfinite(R)):
        raise InvalidArgumentError("Return matrix contains missing or non-finite values")
    return R


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def optimize(
    returns: Union[pd.DataFrame, np.ndarray],
    constraints: ConstraintSet,
    objective: Union[ObjectiveFunction, ObjectiveSpec, str] = 'stddev',
    trials: int = 1000,
    rng_seed: int = 0,
    **kwargs
) -> OptimizationResult:
    """
    Convenience entry point: ``RandomSearchOptimizer(**kwargs).optimize(...)``.

    Keyword arguments (max_attempts, n_workers, max_seconds) configure the
    optimizer.
    """
    return RandomSearchOptimizer(**kwargs).optimize(returns, constraints, objective, trials, rng_seed)
