"""
Constraint Set for Portfolio Weights
====================================

Constraints are small immutable values forming a tagged variant:

    WeightSum(min, max)       min <= sum(w) <= max
    LongOnly()                w_i >= 0 for every asset
    Box(min, max, asset)      min <= w_i <= max, for one asset or all of them

A ``ConstraintSet`` holds an ordered tuple of these for a fixed list of
assets. Every constraint must hold for a weight vector to be feasible, so
the order of constraints never changes the outcome and repeating a kind
simply makes the most restrictive one win.

Contradictions that can be detected without sampling (e.g. box minimums
that already add up to more than the weight-sum maximum) are reported by
``ConstraintSet.validate()``. The optimizer calls it once before the search.

Example:
    >>> cs = (ConstraintSetBuilder(['A', 'B', 'C'])
    ...       .weight_sum(0.99, 1.01)
    ...       .long_only()
    ...       .box(0.1, 0.6)
    ...       .build())
    >>> cs.is_feasible([0.2, 0.3, 0.5])
    True
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from portfolio_search.core.errors import InfeasibleConstraintSetError, InvalidArgumentError

DEFAULT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class WeightSum:
    """Bounds on the total allocation across all assets."""

    min: float = -np.inf
    max: float = np.inf

    def __post_init__(self):
        _check_bounds(self, self.min, self.max)

    def is_satisfied(self, weights: np.ndarray, assets: Sequence[str], tol: float = 0.0) -> bool:
        total = float(np.sum(weights))
        return self.min - tol <= total <= self.max + tol

    def describe(self) -> str:
        return f"WeightSum({self.min:g} <= sum(w) <= {self.max:g})"


@dataclass(frozen=True)
class LongOnly:
    """No short positions: every weight must be non-negative."""

    def is_satisfied(self, weights: np.ndarray, assets: Sequence[str], tol: float = 0.0) -> bool:
        return bool(np.all(weights >= -tol))

    def describe(self) -> str:
        return "LongOnly(w >= 0)"


@dataclass(frozen=True)
class Box:
    """
    Per-asset weight bounds.

    Attributes:
        min: Lower bound on the weight
        max: Upper bound on the weight
        asset: Asset the bounds apply to; None applies them to every asset
    """

    min: float = -np.inf
    max: float = np.inf
    asset: Optional[str] = None

    def __post_init__(self):
        _check_bounds(self, self.min, self.max)

    def is_satisfied(self, weights: np.ndarray, assets: Sequence[str], tol: float = 0.0) -> bool:
        if self.asset is None:
            w = weights
        else:
            w = weights[list(assets).index(self.asset)]
        return bool(np.all((w >= self.min - tol) & (w <= self.max + tol)))

    def describe(self) -> str:
        target = 'every asset' if self.asset is None else self.asset
        return f"Box({self.min:g} <= w <= {self.max:g} for {target})"


Constraint = Union[WeightSum, LongOnly, Box]

_CONSTRAINT_TYPES = (WeightSum, LongOnly, Box)


def _check_bounds(constraint, lower: float, upper: float):
    if np.isnan(lower) or np.isnan(upper):
        raise InvalidArgumentError(f"{type(constraint).__name__} bounds must not be NaN")


class ConstraintSet:
    """
    Immutable, conjunctive collection of constraints over a fixed asset list.

    Attributes:
        assets (Tuple[str, ...]): Asset symbols, in weight-vector order
        constraints (Tuple[Constraint, ...]): Constraints in insertion order
        tolerance (float): Slack allowed when checking feasibility, to absorb
            floating-point error from weight normalization
    """

    def __init__(
        self,
        assets: Sequence[str],
        constraints: Iterable[Constraint] = (),
        tolerance: float = DEFAULT_TOLERANCE
    ):
        self.assets = tuple(str(a) for a in assets)
        if not self.assets:
            raise InvalidArgumentError("A constraint set needs at least one asset")
        if len(set(self.assets)) != len(self.assets):
            raise InvalidArgumentError(f"Duplicate assets: {list(self.assets)}")
        if tolerance < 0:
            raise InvalidArgumentError(f"Tolerance must be non-negative, got {tolerance}")

        self.tolerance = float(tolerance)
        self._constraints = tuple(constraints)
        for constraint in self._constraints:
            self._check_constraint(constraint)

    @property
    def constraints(self) -> Tuple[Constraint, ...]:
        return self._constraints

    @property
    def n_assets(self) -> int:
        return len(self.assets)

    def __len__(self) -> int:
        return len(self._constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    def __repr__(self) -> str:
        inner = ', '.join(c.describe() for c in self._constraints)
        return f"ConstraintSet(assets={list(self.assets)}, constraints=[{inner}])"

    def _check_constraint(self, constraint):
        if not isinstance(constraint, _CONSTRAINT_TYPES):
            raise InvalidArgumentError(
                f"Unsupported constraint type: {type(constraint).__name__}"
            )
        if isinstance(constraint, Box) and constraint.asset is not None:
            if constraint.asset not in self.assets:
                raise InvalidArgumentError(
                    f"{constraint.describe()} names unknown asset '{constraint.asset}'"
                )

    def add(self, constraint: Constraint) -> 'ConstraintSet':
        """Return a new set with one more constraint appended."""
        return ConstraintSet(self.assets, self._constraints + (constraint,), self.tolerance)

    # ------------------------------------------------------------------
    # Feasibility
    # ------------------------------------------------------------------

    def as_array(self, weights) -> np.ndarray:
        """
        Convert a weight vector to a float array in asset order.

        Accepts a pandas Series or mapping keyed by asset, or any array-like
        already ordered like ``self.assets``.
        """
        if isinstance(weights, (pd.Series, Mapping)):
            missing = [a for a in self.assets if a not in weights]
            if missing:
                raise InvalidArgumentError(f"Weights missing for assets: {missing}")
            return np.array([float(weights[a]) for a in self.assets])

        w = np.asarray(weights, dtype=float).ravel()
        if w.shape != (self.n_assets,):
            raise InvalidArgumentError(
                f"Expected {self.n_assets} weights, got {w.shape[0]}"
            )
        return w

    def is_feasible(self, weights) -> bool:
        """True iff every constraint in the set holds for ``weights``."""
        w = self.as_array(weights)
        if not np.all(np.isfinite(w)):
            return False
        return all(c.is_satisfied(w, self.assets, self.tolerance) for c in self._constraints)

    def violations(self, weights) -> List[Constraint]:
        """Constraints that ``weights`` breaks, in insertion order."""
        w = self.as_array(weights)
        return [c for c in self._constraints if not c.is_satisfied(w, self.assets, self.tolerance)]

    # ------------------------------------------------------------------
    # Combined limits
    # ------------------------------------------------------------------

    def effective_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Most restrictive per-asset bounds implied by LongOnly and Box constraints.

        Returns:
            Tuple of (lower, upper) arrays in asset order; unbounded sides
            are -inf / +inf
        """
        lower = np.full(self.n_assets, -np.inf)
        upper = np.full(self.n_assets, np.inf)

        for c in self._constraints:
            if isinstance(c, LongOnly):
                lower = np.maximum(lower, 0.0)
            elif isinstance(c, Box):
                idx = slice(None) if c.asset is None else self.assets.index(c.asset)
                lower[idx] = np.maximum(lower[idx], c.min)
                upper[idx] = np.minimum(upper[idx], c.max)

        return lower, upper

    def sum_bounds(self) -> Tuple[float, float]:
        """Most restrictive (min, max) on the total weight across WeightSum constraints."""
        lo, hi = -np.inf, np.inf
        for c in self._constraints:
            if isinstance(c, WeightSum):
                lo = max(lo, c.min)
                hi = min(hi, c.max)
        return lo, hi

    def has_box_bounds(self) -> bool:
        """True when some Box constraint restricts weights beyond plain long-only."""
        return any(
            isinstance(c, Box) and (c.min > 0 or np.isfinite(c.max))
            for c in self._constraints
        )

    def validate(self):
        """
        Detect contradictions that need no sampling to find.

        Raises:
            InfeasibleConstraintSetError: If a WeightSum has min > max, an
                asset's lower bound exceeds its upper bound, the per-asset
                minimums add up to more than the weight-sum maximum, or the
                per-asset maximums add up to less than the weight-sum minimum
        """
        tol = self.tolerance

        for c in self._constraints:
            if isinstance(c, WeightSum) and c.min > c.max + tol:
                raise InfeasibleConstraintSetError(
                    f"{c.describe()} has min above max", constraint=c
                )
            if isinstance(c, Box) and c.min > c.max + tol:
                raise InfeasibleConstraintSetError(
                    f"{c.describe()} has min above max", constraint=c, asset=c.asset
                )

        lo, hi = self.sum_bounds()
        if lo > hi + tol:
            raise InfeasibleConstraintSetError(
                f"Weight-sum constraints do not overlap: combined range is [{lo:g}, {hi:g}]"
            )

        lower, upper = self.effective_bounds()
        for i, asset in enumerate(self.assets):
            if lower[i] > upper[i] + tol:
                raise InfeasibleConstraintSetError(
                    f"Asset '{asset}' has lower bound {lower[i]:g} above upper bound {upper[i]:g}",
                    asset=asset,
                )

        total_lower = float(np.sum(lower))
        if total_lower > hi + tol:
            raise InfeasibleConstraintSetError(
                f"Per-asset minimum weights sum to {total_lower:g}, "
                f"above the weight-sum maximum {hi:g}",
                constraint=self._binding_weight_sum('max'),
            )

        total_upper = float(np.sum(upper))
        if total_upper < lo - tol:
            raise InfeasibleConstraintSetError(
                f"Per-asset maximum weights sum to {total_upper:g}, "
                f"below the weight-sum minimum {lo:g}",
                constraint=self._binding_weight_sum('min'),
            )

    def _binding_weight_sum(self, side: str) -> Optional[WeightSum]:
        sums = [c for c in self._constraints if isinstance(c, WeightSum)]
        if not sums:
            return None
        if side == 'max':
            return min(sums, key=lambda c: c.max)
        return max(sums, key=lambda c: c.min)


class ConstraintSetBuilder:
    """
    Fluent builder that collects constraints and produces a validated ConstraintSet.

    Example:
        >>> builder = ConstraintSetBuilder(['AAPL', 'MSFT'])
        >>> cs = builder.weight_sum(1.0, 1.0).long_only().box(0.0, 0.7, asset='AAPL').build()
    """

    def __init__(self, assets: Sequence[str], tolerance: float = DEFAULT_TOLERANCE):
        self._assets = list(assets)
        self._tolerance = tolerance
        self._constraints: List[Constraint] = []

    def add(self, constraint: Constraint) -> 'ConstraintSetBuilder':
        self._constraints.append(constraint)
        return self

    def weight_sum(self, minimum: float = 1.0, maximum: float = 1.0) -> 'ConstraintSetBuilder':
        return self.add(WeightSum(float(minimum), float(maximum)))

    def long_only(self) -> 'ConstraintSetBuilder':
        return self.add(LongOnly())

    def box(
        self,
        minimum: float = -np.inf,
        maximum: float = np.inf,
        asset: Optional[str] = None
    ) -> 'ConstraintSetBuilder':
        return self.add(Box(float(minimum), float(maximum), asset))

    def box_bounds(self, bounds: Mapping[str, Tuple[float, float]]) -> 'ConstraintSetBuilder':
        """Add one Box per asset from a {symbol: (min, max)} mapping."""
        for asset, (lo, hi) in bounds.items():
            self.box(lo, hi, asset=str(asset))
        return self

    def build(self, validate: bool = True) -> ConstraintSet:
        """
        Freeze the collected constraints.

        Args:
            validate: If True (default), run ConstraintSet.validate() first

        Returns:
            Immutable ConstraintSet
        """
        constraint_set = ConstraintSet(self._assets, self._constraints, self._tolerance)
        if validate:
            constraint_set.validate()
        return constraint_set
