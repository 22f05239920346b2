"""
Optimization Result
===================

Immutable record produced once at the end of a search: the best weights
found, their objective value, how many trials were run, and each asset's
standalone risk for comparison.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd


def _frozen_array(values) -> np.ndarray:
    arr = np.array(values, dtype=float).ravel()
    arr.setflags(write=False)
    return arr


def annualize(value: float, objective_name: str, periods_per_year: Optional[float]) -> float:
    """
    Scale a per-period risk value to an annual figure.

    Deviation measures scale with sqrt(periods), variance scales linearly.
    """
    if not periods_per_year:
        return value
    if objective_name == 'variance':
        return value * periods_per_year
    return value * np.sqrt(periods_per_year)


@dataclass(frozen=True, eq=False)
class OptimizationResult:
    """
    Outcome of a RandomSearchOptimizer run.

    Attributes:
        assets: Asset symbols, in weight order
        weight_values: Best weight vector found (read-only array)
        objective_value: Objective score of the best weights
        trials_evaluated: Trials run, including failed draws
        risk_values: Standalone risk of each asset (read-only array)
        failed_draws: Trials that produced no feasible candidate
        history: Running-best objective after each trial (NaN until the
            first feasible candidate)
        objective_name: Risk measure that was minimized
        seed: Seed the run was started from
        n_workers: Number of workers the trials were split over
        stopped_early: True if a time budget ended the run before all trials
    """

    assets: Tuple[str, ...]
    weight_values: np.ndarray
    objective_value: float
    trials_evaluated: int
    risk_values: np.ndarray
    failed_draws: int = 0
    history: Optional[np.ndarray] = None
    objective_name: str = 'stddev'
    seed: Optional[int] = None
    n_workers: int = 1
    stopped_early: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'assets', tuple(str(a) for a in self.assets))
        object.__setattr__(self, 'weight_values', _frozen_array(self.weight_values))
        object.__setattr__(self, 'risk_values', _frozen_array(self.risk_values))
        history = self.history if self.history is not None else []
        object.__setattr__(self, 'history', _frozen_array(history))
        object.__setattr__(self, 'objective_value', float(self.objective_value))

        n = len(self.assets)
        if self.weight_values.shape != (n,) or self.risk_values.shape != (n,):
            raise ValueError("weights and standalone risks must have one entry per asset")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def weights(self) -> pd.Series:
        """Best weight vector, indexed by asset."""
        return pd.Series(self.weight_values.copy(), index=list(self.assets), name='weight')

    @property
    def asset_risk(self) -> Dict[str, float]:
        """Standalone risk of each asset."""
        return {a: float(r) for a, r in zip(self.assets, self.risk_values)}

    @property
    def feasible_trials(self) -> int:
        return self.trials_evaluated - self.failed_draws

    def beats_standalone(self) -> Dict[str, bool]:
        """
        For each asset, whether the optimized objective is strictly lower
        than the asset's standalone risk (a tie counts as not lower).
        """
        return {a: bool(self.objective_value < r) for a, r in zip(self.assets, self.risk_values)}

    def risk_reduction(self) -> Dict[str, float]:
        """Standalone risk minus optimized risk, per asset."""
        return {a: float(r - self.objective_value) for a, r in zip(self.assets, self.risk_values)}

    def to_frame(self) -> pd.DataFrame:
        """Per-asset table of weight, standalone risk and comparison flag."""
        beats = self.beats_standalone()
        return pd.DataFrame(
            {
                'weight': self.weight_values,
                'standalone_risk': self.risk_values,
                'beats_standalone': [beats[a] for a in self.assets],
            },
            index=pd.Index(self.assets, name='asset'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'objective': self.objective_name,
            'objective_value': self.objective_value,
            'trials_evaluated': self.trials_evaluated,
            'failed_draws': self.failed_draws,
            'seed': self.seed,
            'n_workers': self.n_workers,
            'stopped_early': self.stopped_early,
            'weights': dict(zip(self.assets, map(float, self.weight_values))),
            'asset_risk': self.asset_risk,
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary_report(self, periods_per_year: Optional[float] = None) -> str:
        """
        Generate a formatted text report.

        Args:
            periods_per_year: If given, risk figures are also shown annualized

        Returns:
            Formatted string report
        """
        name = self.objective_name
        lines = []
        lines.append("=" * 70)
        lines.append("RANDOM SEARCH MINIMUM-RISK PORTFOLIO")
        lines.append("=" * 70)
        lines.append(f"Objective: {name} (minimize)")
        lines.append(f"Trials evaluated: {self.trials_evaluated} "
                     f"({self.failed_draws} failed draws, {self.n_workers} worker(s))")
        if self.seed is not None:
            lines.append(f"Seed: {self.seed}")
        if self.stopped_early:
            lines.append("Search stopped early by its time budget")

        lines.append("\n--- Optimized Weights ---")
        for asset, w in zip(self.assets, self.weight_values):
            lines.append(f"  {asset:<12} {w:>10.6f} ({w*100:.2f}%)")
        lines.append(f"  {'Total':<12} {self.weight_values.sum():>10.6f}")

        lines.append(f"\nPortfolio {name}: {self.objective_value:.6f}")
        if periods_per_year:
            annual = annualize(self.objective_value, name, periods_per_year)
            lines.append(f"Annualized ({periods_per_year:g} periods/year): {annual:.6f}")

        lines.append("\n--- Standalone Risk Comparison ---")
        lines.append(f"{'Asset':<12} {'Risk':>12} {'Reduction':>12} {'Lower?':>8}")
        lines.append("-" * 48)
        beats = self.beats_standalone()
        for asset, risk in zip(self.assets, self.risk_values):
            flag = 'yes' if beats[asset] else 'no'
            lines.append(f"{asset:<12} {risk:>12.6f} {risk - self.objective_value:>12.6f} {flag:>8}")

        lines.append("\n" + "=" * 70)
        return "\n".join(lines)
