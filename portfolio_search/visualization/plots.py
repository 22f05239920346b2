"""
Plotting Module for Portfolio Search
====================================

This module provides visualization functions for minimum-risk search results.
It creates plots showing:
- Optimized portfolio weights
- Standalone asset risk against the optimized portfolio risk
- Convergence of the running-best objective over trials
- The cloud of sampled feasible candidates on the risk-return plane

All functions return the matplotlib Figure and optionally save it.
"""

from typing import List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.figure import Figure

from portfolio_search.core.constraints import ConstraintSet
from portfolio_search.core.objective import ObjectiveFunction, ObjectiveSpec, get_objective
from portfolio_search.core.optimizer import CandidateSampler, aligned_return_matrix
from portfolio_search.core.result import OptimizationResult


def _finish(fig: Figure, save_path: Optional[str]) -> Figure:
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    return fig


def plot_portfolio_weights(
    weights: Union[np.ndarray, pd.Series],
    asset_names: Optional[List[str]] = None,
    title: str = "Portfolio Weights",
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None
) -> Figure:
    """
    Create a bar chart of portfolio weights.

    Args:
        weights: Array of portfolio weights, or a Series indexed by asset
        asset_names: List of asset names (taken from the Series if omitted)
        title: Plot title
        figsize: Figure size
        save_path: Optional path to save figure

    Returns:
        matplotlib Figure object
    """
    if isinstance(weights, pd.Series):
        if asset_names is None:
            asset_names = [str(a) for a in weights.index]
        weights = weights.to_numpy(dtype=float)
    weights = np.asarray(weights, dtype=float)
    if asset_names is None:
        asset_names = [f"Asset_{i+1}" for i in range(len(weights))]

    fig, ax = plt.subplots(figsize=figsize)

    colors = ['green' if w >= 0 else 'red' for w in weights]
    bars = ax.bar(asset_names, weights * 100, color=colors, edgecolor='black')

    # Add value labels on bars
    for bar, w in zip(bars, weights):
        height = bar.get_height()
        ax.annotate(f'{w*100:.1f}%',
                    xy=(bar.get_x() + bar.get_width() / 2, height),
                    xytext=(0, 3 if height >= 0 else -15),
                    textcoords='offset points',
                    ha='center', va='bottom' if height >= 0 else 'top',
                    fontsize=10, fontweight='bold')

    ax.axhline(y=0, color='black', linestyle='-', linewidth=0.5)
    ax.set_xlabel('Assets', fontsize=12)
    ax.set_ylabel('Weight %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, axis='y', alpha=0.3)

    return _finish(fig, save_path)


def plot_risk_comparison(
    result: OptimizationResult,
    title: str = "Standalone Risk vs Optimized Portfolio",
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None
) -> Figure:
    """
    Bar chart of each asset's standalone risk with the optimized risk as a line.

    Bars for assets the portfolio beats are drawn in blue, the rest in grey.

    Args:
        result: OptimizationResult to plot
        title: Plot title
        figsize: Figure size
        save_path: Optional path to save figure

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    beats = result.beats_standalone()
    colors = ['steelblue' if beats[a] else 'grey' for a in result.assets]
    ax.bar(result.assets, result.risk_values * 100, color=colors, edgecolor='black',
           label='Standalone risk')
    ax.axhline(y=result.objective_value * 100, color='red', linestyle='--', linewidth=2,
               label=f'Optimized portfolio ({result.objective_value*100:.3f}%)')

    ax.set_xlabel('Assets', fontsize=12)
    ax.set_ylabel(f'{result.objective_name} %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=10)
    ax.grid(True, axis='y', alpha=0.3)

    return _finish(fig, save_path)


def plot_search_convergence(
    result: OptimizationResult,
    title: str = "Random Search Convergence",
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None
) -> Figure:
    """
    Line plot of the running-best objective value against the trial number.

    Args:
        result: OptimizationResult with a trial history
        title: Plot title
        figsize: Figure size
        save_path: Optional path to save figure

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    trials = np.arange(1, len(result.history) + 1)
    ax.plot(trials, result.history * 100, 'b-', linewidth=2, label='Running best')
    ax.axhline(y=result.risk_values.min() * 100, color='grey', linestyle=':',
               label='Lowest standalone risk')

    ax.set_xlabel('Trial', fontsize=12)
    ax.set_ylabel(f'{result.objective_name} %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='upper right', fontsize=10)
    ax.grid(True, alpha=0.3)

    return _finish(fig, save_path)


def plot_random_candidates(
    returns: pd.DataFrame,
    constraints: ConstraintSet,
    result: Optional[OptimizationResult] = None,
    objective: Union[ObjectiveFunction, ObjectiveSpec, str] = 'stddev',
    n_samples: int = 1000,
    seed: int = 0,
    figsize: Tuple[int, int] = (12, 8),
    save_path: Optional[str] = None,
    title: str = "Sampled Feasible Portfolios"
) -> Figure:
    """
    Scatter feasible random portfolios on the risk vs mean-return plane.

    Draws ``n_samples`` candidates the same way the optimizer does and plots
    them together with the individual assets and, if given, the optimum.

    Args:
        returns: Return matrix (rows = periods, columns = assets)
        constraints: Constraint set the candidates must satisfy
        result: Optional OptimizationResult to highlight
        objective: Risk measure for the x-axis
        n_samples: Number of candidate draws
        seed: Seed for the candidate generator
        figsize: Figure size
        save_path: Optional path to save figure
        title: Plot title

    Returns:
        matplotlib Figure object
    """
    objective = get_objective(objective)
    R = aligned_return_matrix(returns, constraints)
    mean_returns = R.mean(axis=0)

    sampler = CandidateSampler(constraints)
    rng = np.random.default_rng(seed)
    draws = [sampler.draw(rng) for _ in range(n_samples)]
    candidates = np.array([w for w in draws if w is not None])

    fig, ax = plt.subplots(figsize=figsize)

    if len(candidates):
        risks = objective.evaluate_many(candidates, R)
        means = candidates @ mean_returns
        ax.scatter(risks * 100, means * 100, c='lightsteelblue', s=12, alpha=0.6,
                   label=f'Feasible candidates ({len(candidates)})', zorder=2)

    # Individual assets
    asset_risk = objective.evaluate_many(np.eye(constraints.n_assets), R)
    ax.scatter(asset_risk * 100, mean_returns * 100, c='red', s=100, marker='o',
               edgecolors='black', label='Individual Assets', zorder=5)
    for i, name in enumerate(constraints.assets):
        ax.annotate(name, (asset_risk[i] * 100, mean_returns[i] * 100),
                    xytext=(5, 5), textcoords='offset points',
                    fontsize=9, fontweight='bold')

    if result is not None:
        best_mean = float(result.weight_values @ mean_returns)
        ax.scatter([result.objective_value * 100], [best_mean * 100],
                   c='purple', s=200, marker='*', edgecolors='black',
                   label=f"Minimum risk ({objective.name}={result.objective_value*100:.3f}%)",
                   zorder=6)

    ax.set_xlabel(f'Risk ({objective.name}) %', fontsize=12)
    ax.set_ylabel('Mean Return %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=10)
    ax.grid(True, alpha=0.3)

    return _finish(fig, save_path)
