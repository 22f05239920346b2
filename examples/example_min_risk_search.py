"""
Minimum-Risk Search Example
5 Stocks: AAPL, MSFT, JNJ, XOM, KO (synthetic prices)
Monthly log returns, every weight between 10% and 30%

Compares the random search against the SLSQP benchmark for several trial
counts and saves the plots to output/.
"""

from pathlib import Path

import matplotlib

matplotlib.use('Agg')
import matplotlib.pyplot as plt

from portfolio_search.core.benchmark import benchmark_min_risk
from portfolio_search.core.constraints import ConstraintSetBuilder
from portfolio_search.core.loader import generate_sample_prices, resample_prices
from portfolio_search.core.optimizer import RandomSearchOptimizer
from portfolio_search.core.returns import compute_returns
from portfolio_search.visualization import plot_random_candidates, plot_search_convergence

# Get the project root directory (parent of examples/)
PROJECT_ROOT = Path(__file__).parent.parent
OUTPUT_DIR = PROJECT_ROOT / 'output'
OUTPUT_DIR.mkdir(exist_ok=True)

# === Data: three years of daily prices, resampled to month ends ===
asset_names = ['AAPL', 'MSFT', 'JNJ', 'XOM', 'KO']
prices = generate_sample_prices(asset_names, n_periods=756, seed=7)
returns = compute_returns(resample_prices(prices, 'monthly'), method='log')

# === Constraints ===
constraints = (ConstraintSetBuilder(asset_names)
               .weight_sum(0.99, 1.01)
               .long_only()
               .box(0.10, 0.30)
               .build())

# === Benchmark ===
bench_weights, bench_std, converged = benchmark_min_risk(returns, constraints, 'stddev')

print("=" * 60)
print("MINIMUM-RISK SEARCH vs SLSQP")
print("=" * 60)
print(f"Return periods: {len(returns)}")
print(f"SLSQP std: {bench_std:.6f} ({'converged' if converged else 'not converged'})")
print()
print(f"{'Trials':>8} {'Search std':>12} {'Gap':>12}")
print("-" * 34)

optimizer = RandomSearchOptimizer(n_workers=2)
result = None
for trials in (100, 1000, 10000):
    result = optimizer.optimize(returns, constraints, 'stddev', trials=trials, rng_seed=42)
    print(f"{trials:>8} {result.objective_value:>12.6f} {result.objective_value - bench_std:>12.6f}")

print()
print(result.summary_report(periods_per_year=12))

# === Plots ===
plot_search_convergence(result, save_path=str(OUTPUT_DIR / 'example_convergence.png'))
plot_random_candidates(returns, constraints, result, n_samples=2000, seed=1,
                       save_path=str(OUTPUT_DIR / 'example_candidates.png'))
plt.close('all')
print(f"Plots saved to {OUTPUT_DIR}")
