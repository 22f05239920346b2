"""Core computational modules for minimum-risk portfolio search."""

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
from portfolio_search.core.loader import PriceLoader, align_prices, generate_sample_prices, resample_prices
from portfolio_search.core.objective import ObjectiveSpec, StdDevObjective, get_objective
from portfolio_search.core.optimizer import RandomSearchOptimizer, optimize
from portfolio_search.core.result import OptimizationResult
from portfolio_search.core.returns import ReturnSeriesBuilder, compute_returns

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
    "align_prices",
    "generate_sample_prices",
    "resample_prices",
    "ObjectiveSpec",
    "StdDevObjective",
    "get_objective",
    "RandomSearchOptimizer",
    "optimize",
    "OptimizationResult",
    "ReturnSeriesBuilder",
    "compute_returns",
]
