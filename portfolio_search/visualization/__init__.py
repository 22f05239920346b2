"""Visualization modules for portfolio search results."""

from portfolio_search.visualization.plots import (
    plot_portfolio_weights,
    plot_random_candidates,
    plot_risk_comparison,
    plot_search_convergence
)

__all__ = [
    "plot_portfolio_weights",
    "plot_random_candidates",
    "plot_risk_comparison",
    "plot_search_convergence",
]
