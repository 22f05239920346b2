"""
Main Runner Script for Minimum-Risk Portfolio Search
====================================================

This script runs the full workflow:
1. Loading prices (CSV/Excel file, or synthetic sample data)
2. Resampling to the configured periodicity and computing returns
3. Building and validating the constraint set
4. Random search for the minimum-risk weights
5. Optional SLSQP benchmark, export and plots

Usage:
    psearch-optimize                                  # Run with sample data
    psearch-optimize --file prices.csv                # Run on a price file
    psearch-optimize --config run.yaml                # Settings from YAML
    psearch-optimize --box 0.1 0.3 --trials 5000      # Override settings
"""

import argparse
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import matplotlib
import pandas as pd

from portfolio_search.core.benchmark import benchmark_min_risk
from portfolio_search.core.config import RunConfig, load_config
from portfolio_search.core.errors import DataSourceError, PortfolioSearchError
from portfolio_search.core.export import export_result
from portfolio_search.core.loader import PriceLoader, generate_sample_prices, resample_prices
from portfolio_search.core.optimizer import RandomSearchOptimizer
from portfolio_search.core.returns import ReturnSeriesBuilder

PACKAGE_ROOT = Path(__file__).parent.parent.parent

# Business days of synthetic history used when no price file is given
SAMPLE_PERIODS = 756


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logger(
    script_name: str = "portfolio_search",
    log_dir: Optional[Path] = None,
    level: int = logging.INFO
) -> logging.Logger:
    """
    Sets up a logger that writes to both file and console.

    Handlers are attached to the package logger, so messages from the core
    modules land in the same log file.

    Args:
        script_name: Name of the script (used in log filename)
        log_dir: Directory for log files (default: <package root>/logs)
        level: Logging level

    Returns:
        Configured logger instance
    """
    log_dir = Path(log_dir) if log_dir is not None else PACKAGE_ROOT / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    # Generate unique log filename
    timestamp = datetime.now().strftime("%Y_%m_%d_%H%M")
    log_filename = log_dir / f"log_{script_name}_{timestamp}.txt"

    logger = logging.getLogger("portfolio_search")
    logger.setLevel(level)
    logger.propagate = False

    # Clear existing handlers (prevent duplicates)
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# =============================================================================
# ANALYSIS CLASS
# =============================================================================

class AnalysisCheckpoint:
    """
    Tracks the progress of a search run step by step.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.steps_completed = {}
        self.start_time = datetime.now()
        self.current_step = None

    def start_step(self, step_name: str):
        """Mark a step as started."""
        self.current_step = step_name
        self.logger.info(f"[CHECKPOINT] Starting: {step_name}")

    def complete_step(self, step_name: str):
        """Mark a step as completed."""
        self.steps_completed[step_name] = True
        self.logger.info(f"[CHECKPOINT] Completed: {step_name}")

    def get_progress_summary(self) -> dict:
        """Get summary of run progress."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        return {
            'steps_completed': list(self.steps_completed.keys()),
            'current_step': self.current_step,
            'elapsed_seconds': elapsed
        }

    def log_final_report(self):
        """Log final run report."""
        summary = self.get_progress_summary()
        self.logger.info("=" * 60)
        self.logger.info("  SEARCH COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"  Steps completed: {len(summary['steps_completed'])}")
        self.logger.info(f"  Total time: {summary['elapsed_seconds']:.2f} seconds")
        self.logger.info("=" * 60)


# =============================================================================
# MAIN ANALYSIS FUNCTIONS
# =============================================================================

def get_output_dir(output_dir: Optional[str] = None) -> Path:
    """Get (and create) the output directory path."""
    path = Path(output_dir) if output_dir else PACKAGE_ROOT / "output"
    path.mkdir(parents=True, exist_ok=True)
    return path


def run_search(
    prices: pd.DataFrame,
    config: RunConfig,
    run_benchmark: bool = False,
    save_plots: bool = True,
    output_dir: Optional[str] = None,
    export_path: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    close_plots: bool = True
) -> Dict[str, Any]:
    """
    Run the complete minimum-risk search on a price frame.

    Args:
        prices: Aligned price DataFrame (index = dates, columns = assets)
        config: Run configuration
        run_benchmark: If True, also solve with SLSQP for comparison
        save_plots: If True, save plots to the output directory
        output_dir: Directory for plots
        export_path: Optional .xlsx/.csv path for the result
        logger: Logger instance
        close_plots: If False, leave the figures open for plt.show()

    Returns:
        Dictionary with returns, constraints, result and (optionally) benchmark

    Raises:
        PortfolioSearchError: If any step of the search fails
    """
    if logger is None:
        logger = logging.getLogger("portfolio_search")

    checkpoint = AnalysisCheckpoint(logger)
    results = {}

    assets = config.assets or [str(c) for c in prices.columns]
    missing = [a for a in assets if a not in prices.columns]
    if missing:
        raise DataSourceError(f"No prices for asset(s) {missing}", asset=missing[0])
    prices = prices[assets]

    logger.info("=" * 70)
    logger.info("  MINIMUM-RISK PORTFOLIO SEARCH")
    logger.info("=" * 70)
    logger.info(f"  Assets: {', '.join(assets)}")
    logger.info(f"  Periodicity: {config.periodicity}, returns: {config.return_type}")
    logger.info(f"  Objective: {config.objective}, trials: {config.trials}, seed: {config.seed}")
    logger.info("=" * 70)

    # Step 1: Returns
    checkpoint.start_step("Compute Returns")
    sampled = resample_prices(prices, config.periodicity)
    returns = ReturnSeriesBuilder(config.return_type).build(sampled)
    results['returns'] = returns
    logger.info(f"{len(returns)} {config.periodicity} return periods")
    checkpoint.complete_step("Compute Returns")

    # Step 2: Constraints
    checkpoint.start_step("Build Constraints")
    constraints = config.build_constraints(assets)
    results['constraints'] = constraints
    for c in constraints:
        logger.info(f"  {c.describe()}")
    checkpoint.complete_step("Build Constraints")

    # Step 3: Search
    checkpoint.start_step("Random Search")
    optimizer = RandomSearchOptimizer(
        max_attempts=config.max_attempts,
        n_workers=config.workers,
        max_seconds=config.max_seconds
    )
    result = optimizer.optimize(returns, constraints, config.objective, config.trials, config.seed)
    results['result'] = result
    for line in result.summary_report(config.periods_per_year).splitlines():
        logger.info(line)
    checkpoint.complete_step("Random Search")

    # Step 4: Benchmark
    benchmark_weights = None
    if run_benchmark:
        checkpoint.start_step("SLSQP Benchmark")
        benchmark_weights, benchmark_value, converged = benchmark_min_risk(
            returns, constraints, config.objective
        )
        results['benchmark'] = {
            'weights': benchmark_weights,
            'objective_value': benchmark_value,
            'converged': converged
        }
        logger.info("\n--- SLSQP Benchmark ---")
        for asset, w in benchmark_weights.items():
            logger.info(f"  {asset}: {w*100:>8.2f}%")
        logger.info(f"Benchmark {config.objective}: {benchmark_value:.6f} "
                    f"({'converged' if converged else 'not converged'})")
        logger.info(f"Random search gap: {result.objective_value - benchmark_value:.6f}")
        checkpoint.complete_step("SLSQP Benchmark")

    # Step 5: Export
    if export_path:
        checkpoint.start_step("Export Results")
        results['export_path'] = export_result(result, export_path, benchmark_weights)
        logger.info(f"Saved: {export_path}")
        checkpoint.complete_step("Export Results")

    # Step 6: Plots
    if save_plots:
        checkpoint.start_step("Generate Plots")
        results['plots'] = save_result_plots(returns, constraints, result, config,
                                             get_output_dir(output_dir), logger, close_plots)
        checkpoint.complete_step("Generate Plots")

    checkpoint.log_final_report()
    return results


def save_result_plots(returns, constraints, result, config: RunConfig, output_dir: Path,
                      logger: logging.Logger, close: bool = True) -> List[Path]:
    """Save the standard set of result plots and return their paths."""
    # pyplot loads after main() has picked the backend
    import matplotlib.pyplot as plt
    from portfolio_search.visualization import (
        plot_portfolio_weights,
        plot_random_candidates,
        plot_risk_comparison,
        plot_search_convergence
    )

    paths = [
        output_dir / "optimized_weights.png",
        output_dir / "risk_comparison.png",
        output_dir / "search_convergence.png",
        output_dir / "sampled_portfolios.png",
    ]
    plot_portfolio_weights(result.weights, title="Minimum-Risk Portfolio Weights", save_path=str(paths[0]))
    plot_risk_comparison(result, save_path=str(paths[1]))
    plot_search_convergence(result, save_path=str(paths[2]))
    plot_random_candidates(returns, constraints, result, config.objective,
                           n_samples=min(config.trials, 2000), seed=config.seed,
                           save_path=str(paths[3]))
    for path in paths:
        logger.info(f"Saved: {path.name}")
    if close:
        plt.close('all')
    return paths


def load_prices(
    file_path: Optional[str],
    sheet: str,
    assets: List[str],
    seed: int,
    logger: logging.Logger
) -> pd.DataFrame:
    """Load prices from a file, or generate sample prices when no file is given."""
    if file_path:
        logger.info(f"Loading prices from: {file_path}")
        sheet_arg = int(sheet) if sheet.isdigit() else sheet
        return PriceLoader().load_file(file_path, sheet_arg, assets or None)

    logger.info("No file specified. Using sample data...")
    return generate_sample_prices(assets or None, n_periods=SAMPLE_PERIODS, seed=seed)


def build_config(args: argparse.Namespace) -> RunConfig:
    """Merge the optional YAML config with command-line overrides."""
    config = load_config(args.config) if args.config else RunConfig()
    settings = config.to_dict()

    overrides = {
        'assets': args.assets,
        'periodicity': args.periodicity,
        'return_type': args.return_type,
        'objective': args.objective,
        'trials': args.trials,
        'seed': args.seed,
        'workers': args.workers,
        'max_seconds': args.max_seconds,
        'weight_sum': args.weight_sum,
        'box': args.box,
    }
    settings.update({k: v for k, v in overrides.items() if v is not None})
    if args.allow_short:
        settings['long_only'] = False
    return RunConfig(**settings)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Minimum-Risk Portfolio Search Tool',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  psearch-optimize                                   # Run with sample data
  psearch-optimize --file prices.csv --assets AAPL MSFT KO
  psearch-optimize --config run.yaml --trials 5000
  psearch-optimize --box 0.1 0.3 --weight-sum 0.99 1.01 --benchmark
        """
    )

    parser.add_argument('--config', '-c', type=str, help='YAML run configuration')
    parser.add_argument('--file', '-f', type=str, help='CSV or Excel file with prices')
    parser.add_argument('--sheet', '-s', type=str, default='0',
                        help='Excel sheet name or index (default: 0)')
    parser.add_argument('--assets', '-a', nargs='+', help='Asset symbols to include')
    parser.add_argument('--periodicity', choices=['daily', 'weekly', 'monthly'],
                        help='Return periodicity (default: daily)')
    parser.add_argument('--return-type', choices=['log', 'simple'],
                        help='Return definition (default: log)')
    parser.add_argument('--objective', type=str,
                        help='Risk measure: stddev, variance or semideviation')
    parser.add_argument('--trials', '-n', type=int, help='Number of random trials')
    parser.add_argument('--seed', type=int, help='Random seed')
    parser.add_argument('--workers', type=int, help='Worker threads for the search')
    parser.add_argument('--max-seconds', type=float, help='Wall-clock budget for the search')
    parser.add_argument('--weight-sum', nargs=2, type=float, metavar=('MIN', 'MAX'),
                        help='Bounds on the total weight (default: 1 1)')
    parser.add_argument('--box', nargs=2, type=float, metavar=('MIN', 'MAX'),
                        help='Bounds applied to every asset weight')
    parser.add_argument('--allow-short', action='store_true',
                        help='Drop the long-only constraint')
    parser.add_argument('--benchmark', action='store_true',
                        help='Also solve with SLSQP and report the gap')
    parser.add_argument('--export', type=str, help='Write results to .xlsx or .csv')
    parser.add_argument('--output-dir', type=str, help='Directory for plots')
    parser.add_argument('--log-dir', type=str, help='Directory for log files')
    parser.add_argument('--no-plots', action='store_true', help='Disable plot generation')
    parser.add_argument('--show-plots', action='store_true',
                        help='Show plots interactively (default: just save)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the portfolio search script."""
    args = create_parser().parse_args(argv)

    if not args.show_plots:
        matplotlib.use('Agg')

    logger = setup_logger("portfolio_search", args.log_dir)

    try:
        config = build_config(args)
        prices = load_prices(args.file, args.sheet, config.assets, config.seed, logger)

        results = run_search(
            prices,
            config,
            run_benchmark=args.benchmark,
            save_plots=not args.no_plots,
            output_dir=args.output_dir,
            export_path=args.export,
            logger=logger,
            close_plots=not args.show_plots
        )

        if args.show_plots and not args.no_plots:
            import matplotlib.pyplot as plt
            plt.show()

        logger.info("Search completed successfully! Best %s: %.6f",
                    config.objective, results['result'].objective_value)
        return 0

    except PortfolioSearchError as e:
        logger.error(f"Search failed ({type(e).__name__}): {e}")
        return 1
    except Exception as e:
        logger.error(f"Search failed: {e}")
        logger.error(traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
