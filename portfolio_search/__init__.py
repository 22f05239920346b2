"""
Portfolio Search - Minimum-Risk Allocation by Random Search
===========================================================

Computes historical returns for a set of instruments and searches for the
weight vector that minimizes portfolio risk under weight-sum, long-only and
box constraints.

Usage:
    from portfolio_search import ConstraintSetBuilder, compute_returns, optimize

    returns = compute_returns(prices, method='log')
    constraints = (ConstraintSetBuilder(list(returns.columns))
                   .weight_sum(0.99, 1.01).long_only().box(0.1, 0.3).build())
    result = optimize(returns, constraints, 'stddev', trials=1000, rng_seed=42)

Classes:
    ReturnSeriesBuilder - Price series to log/simple return matrix
    ConstraintSet - Immutable conjunctive constraint collection
    RandomSearchOptimizer - Seeded random search over feasible weights
    OptimizationResult - Best weights, objective value and diagnostics
    PriceLoader - Price loading from CSV/Excel

Functions:
    optimize - Run a search with default settings
    compute_returns - Calculate returns from aligned prices
    generate_sample_prices - Create synthetic test data
"""

from portfolio_search.core.constraints import Box, ConstraintSet, ConstraintSetBuilder, LongOnly, WeightSum
from portfolio_search.core.errors import (
    DataSourceError,
    DegenerateSeriesError,
    InfeasibleConstraintSetError,
    InsufficientDataError,
    InvalidArgumentError,
    MisalignedSeriesError,
    NoFeasibleSolutionError,
    PortfolioSearchError,
)
from portfolio_search.core.loader import PriceLoader, generate_sample_prices
from portfolio_search.core.objective import ObjectiveSpec, get_objective
from portfolio_search.core.optimizer import RandomSearchOptimizer, optimize
from portfolio_search.core.result import OptimizationResult
from portfolio_search.core.returns import ReturnSeriesBuilder, compute_returns

__version__ = "1.0.0"

__all__ = [
    "Box",
    "ConstraintSet",
    "ConstraintSetBuilder",
    "LongOnly",
    "WeightSum",
    "DataSourceError",
    "DegenerateSeriesError",
    "InfeasibleConstraintSetError",
    "InsufficientDataError",
    "InvalidArgumentError",
    "MisalignedSeriesError",
    "NoFeasibleSolutionError",
    "PortfolioSearchError",
    "PriceLoader",
    "generate_sample_prices",
    "ObjectiveSpec",
    "get_objective",
    "RandomSearchOptimizer",
    "optimize",
    "OptimizationResult",
    "ReturnSeriesBuilder",
    "compute_returns",
]
