"""
SLSQP Benchmark
===============

Solves the same minimum-risk problem with scipy's SLSQP so the random
search can be compared against a gradient-based answer:

    minimize:   risk(w)
    subject to: lower_i <= w_i <= upper_i      (LongOnly / Box)
                min <= sum(w) <= max            (WeightSum)

This is a reference point for reports, not a replacement for the search.
"""

import warnings
from typing import Tuple, Union

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from portfolio_search.core.constraints import ConstraintSet
from portfolio_search.core.objective import ObjectiveFunction, ObjectiveSpec, get_objective
from portfolio_search.core.optimizer import aligned_return_matrix


def benchmark_min_risk(
    returns: Union[pd.DataFrame, np.ndarray],
    constraints: ConstraintSet,
    objective: Union[ObjectiveFunction, ObjectiveSpec, str] = 'stddev'
) -> Tuple[pd.Series, float, bool]:
    """
    Find the minimum-risk weights with SLSQP.

    Args:
        returns: Return matrix (rows = periods, columns = assets)
        constraints: Constraint set over the same assets
        objective: Objective function, spec or measure name

    Returns:
        Tuple of (weights Series, objective value, converged flag)

    Raises:
        InfeasibleConstraintSetError: If the constraints contradict each other
    """
    objective = get_objective(objective)
    R = aligned_return_matrix(returns, constraints)
    constraints.validate()

    n = constraints.n_assets
    lower, upper = constraints.effective_bounds()
    sum_lo, sum_hi = constraints.sum_bounds()

    bounds = [
        (lo if np.isfinite(lo) else None, hi if np.isfinite(hi) else None)
        for lo, hi in zip(lower, upper)
    ]

    scipy_constraints = []
    if np.isfinite(sum_lo):
        scipy_constraints.append({'type': 'ineq', 'fun': lambda w: np.sum(w) - sum_lo})
    if np.isfinite(sum_hi):
        scipy_constraints.append({'type': 'ineq', 'fun': lambda w: sum_hi - np.sum(w)})

    # Initial guess: equal weights pulled inside the box
    target = float(np.clip(1.0, sum_lo, sum_hi))
    w0 = np.clip(np.full(n, target / n), lower, upper)

    result = minimize(
        lambda w: objective.evaluate(w, R),
        w0,
        method='SLSQP',
        bounds=bounds,
        constraints=scipy_constraints,
        options={'ftol': 1e-12, 'maxiter': 1000}
    )

    if not result.success:
        warnings.warn(f"SLSQP benchmark did not converge: {result.message}")

    weights = pd.Series(result.x, index=list(constraints.assets), name='weight')
    return weights, float(objective.evaluate(result.x, R)), bool(result.success)
