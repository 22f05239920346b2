"""
Objective Functions
===================

An objective maps a weight vector and a return matrix to a scalar risk
score that the search minimizes.

Portfolio return per period is the static weighted sum of asset returns:

    r_p[t] = sum_a w_a * R[t, a]       (computed as R @ w)

Available risk measures:

    stddev          sample standard deviation of r_p (N-1 divisor)
    variance        sample variance of r_p (N-1 divisor)
    semideviation   downside deviation below zero:
                    sqrt(sum(min(r_p, 0)^2) / (N-1))

All measures are vectorized: ``evaluate_many`` scores a whole batch of
weight vectors with a single matrix product.
"""

from dataclasses import dataclass
from typing import Dict, Type, Union

import numpy as np
import pandas as pd

from portfolio_search.core.errors import DegenerateSeriesError, InvalidArgumentError

DIRECTIONS = ('minimize', 'maximize')


@dataclass(frozen=True)
class ObjectiveSpec:
    """Which risk measure to optimize and in which direction (only 'minimize' is supported)."""

    measure: str = 'stddev'
    direction: str = 'minimize'


class ObjectiveFunction:
    """Base class: subclasses implement ``_measure`` as a reduction over axis 0."""

    name = 'objective'

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def evaluate(self, weights, returns) -> float:
        """
        Score one weight vector.

        Args:
            weights: Weights in column order (array-like) or a Series keyed by asset
            returns: Return matrix (DataFrame or 2D array, rows = periods)

        Returns:
            Risk measure of the portfolio return series

        Raises:
            DegenerateSeriesError: If fewer than 2 periods are available
            InvalidArgumentError: If weights do not match the number of assets
        """
        R = _as_matrix(returns)
        w = _as_weights(weights, returns, R.shape[1])
        _require_periods(R.shape[0])
        return float(self._measure(R @ w))

    def evaluate_many(self, weight_matrix, returns) -> np.ndarray:
        """
        Score a batch of weight vectors (one per row).

        Args:
            weight_matrix: 2D array (n_candidates x n_assets)
            returns: Return matrix (rows = periods)

        Returns:
            1D array of scores, one per candidate
        """
        R = _as_matrix(returns)
        W = np.atleast_2d(np.asarray(weight_matrix, dtype=float))
        if W.shape[1] != R.shape[1]:
            raise InvalidArgumentError(
                f"Weight matrix has {W.shape[1]} columns but returns have {R.shape[1]} assets"
            )
        _require_periods(R.shape[0])
        return np.asarray(self._measure(R @ W.T), dtype=float)

    def portfolio_returns(self, weights, returns) -> pd.Series:
        """Portfolio return per period, indexed like ``returns`` when it is a DataFrame."""
        R = _as_matrix(returns)
        w = _as_weights(weights, returns, R.shape[1])
        index = returns.index if isinstance(returns, pd.DataFrame) else None
        return pd.Series(R @ w, index=index, name='portfolio')

    def _measure(self, portfolio_returns: np.ndarray):
        raise NotImplementedError


class StdDevObjective(ObjectiveFunction):
    """Sample standard deviation of portfolio returns."""

    name = 'stddev'

    def _measure(self, portfolio_returns):
        return np.std(portfolio_returns, axis=0, ddof=1)


class VarianceObjective(ObjectiveFunction):
    """Sample variance of portfolio returns."""

    name = 'variance'

    def _measure(self, portfolio_returns):
        return np.var(portfolio_returns, axis=0, ddof=1)


class SemiDeviationObjective(ObjectiveFunction):
    """Downside deviation: only periods with negative portfolio return count."""

    name = 'semideviation'

    def _measure(self, portfolio_returns):
        n = portfolio_returns.shape[0]
        downside = np.minimum(portfolio_returns, 0.0)
        return np.sqrt(np.sum(downside ** 2, axis=0) / (n - 1))


OBJECTIVES: Dict[str, Type[ObjectiveFunction]] = {
    'stddev': StdDevObjective,
    'variance': VarianceObjective,
    'semideviation': SemiDeviationObjective,
}

_ALIASES = {
    'std': 'stddev',
    'volatility': 'stddev',
    'var': 'variance',
    'semidev': 'semideviation',
    'downside': 'semideviation',
}


def get_objective(spec: Union[ObjectiveSpec, ObjectiveFunction, str] = 'stddev') -> ObjectiveFunction:
    """
    Resolve an objective identifier or spec into an ObjectiveFunction.

    Args:
        spec: ObjectiveSpec, measure name (e.g. 'stddev'), or an
            ObjectiveFunction instance (returned unchanged)

    Returns:
        ObjectiveFunction instance

    Raises:
        InvalidArgumentError: If the measure is unknown or the direction is
            anything other than 'minimize'
    """
    if isinstance(spec, ObjectiveFunction):
        return spec
    if isinstance(spec, str):
        spec = ObjectiveSpec(measure=spec)
    if not isinstance(spec, ObjectiveSpec):
        raise InvalidArgumentError(f"Cannot build an objective from {spec!r}")

    direction = spec.direction.lower()
    if direction not in DIRECTIONS:
        raise InvalidArgumentError(f"Unknown direction '{spec.direction}'. Use 'minimize'")
    if direction != 'minimize':
        raise InvalidArgumentError("Only 'minimize' objectives are supported")

    measure = spec.measure.lower()
    measure = _ALIASES.get(measure, measure)
    if measure not in OBJECTIVES:
        raise InvalidArgumentError(
            f"Unknown objective '{spec.measure}'. Use one of {sorted(OBJECTIVES)}"
        )
    return OBJECTIVES[measure]()


def _as_matrix(returns) -> np.ndarray:
    if isinstance(returns, pd.DataFrame):
        return returns.to_numpy(dtype=float)
    R = np.asarray(returns, dtype=float)
    if R.ndim == 1:
        R = R.reshape(-1, 1)
    return R


def _as_weights(weights, returns, n_assets: int) -> np.ndarray:
    if isinstance(weights, pd.Series) and isinstance(returns, pd.DataFrame):
        weights = weights.reindex(returns.columns)
        if weights.isna().any():
            missing = list(weights.index[weights.isna()])
            raise InvalidArgumentError(f"Weights missing for assets: {missing}")
    w = np.asarray(weights, dtype=float).ravel()
    if w.shape[0] != n_assets:
        raise InvalidArgumentError(f"Expected {n_assets} weights, got {w.shape[0]}")
    return w


def _require_periods(n_periods: int):
    if n_periods < 2:
        raise DegenerateSeriesError(
            f"Risk is undefined for {n_periods} period(s); at least 2 are required",
            n_periods=n_periods,
        )
