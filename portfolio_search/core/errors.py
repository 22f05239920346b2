"""
Error Types for Portfolio Search
================================

Every failure that aborts an optimization run is raised as a subclass of
``PortfolioSearchError``. The exceptions carry the context needed to
diagnose a run (asset, constraint, trial counts) as attributes, so callers
can report them without inspecting optimizer internals.

None of these errors are retried inside the package. Re-fetching data or
relaxing constraints is left to the caller.
"""

from typing import Optional


class PortfolioSearchError(Exception):
    """Base class for all errors raised by portfolio_search."""


class InvalidArgumentError(PortfolioSearchError, ValueError):
    """Raised when an argument is outside its allowed domain (e.g. trials <= 0)."""


class InsufficientDataError(PortfolioSearchError):
    """Raised when a price series is too short to produce a return."""

    def __init__(self, message: str, asset: Optional[str] = None, n_observations: Optional[int] = None):
        super().__init__(message)
        self.asset = asset
        self.n_observations = n_observations


class MisalignedSeriesError(PortfolioSearchError):
    """Raised when asset price series do not share one timestamp index."""

    def __init__(self, message: str, asset: Optional[str] = None, position: Optional[int] = None):
        super().__init__(message)
        self.asset = asset
        self.position = position


class InfeasibleConstraintSetError(PortfolioSearchError):
    """Raised when constraints contradict each other before any sampling."""

    def __init__(self, message: str, constraint=None, asset: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint
        self.asset = asset


class DegenerateSeriesError(PortfolioSearchError):
    """Raised when a risk measure is undefined for the given return series."""

    def __init__(self, message: str, n_periods: Optional[int] = None):
        super().__init__(message)
        self.n_periods = n_periods


class NoFeasibleSolutionError(PortfolioSearchError):
    """Raised when a search finishes without drawing a single feasible candidate."""

    def __init__(self, message: str, trials_attempted: int = 0, failed_draws: int = 0):
        super().__init__(message)
        self.trials_attempted = trials_attempted
        self.failed_draws = failed_draws


class DataSourceError(PortfolioSearchError):
    """Raised when prices cannot be obtained from the data source."""

    def __init__(self, message: str, source: Optional[str] = None, asset: Optional[str] = None):
        super().__init__(message)
        self.source = source
        self.asset = asset
