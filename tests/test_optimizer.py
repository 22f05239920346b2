"""Tests for portfolio_search.core.optimizer -- sampling, determinism, workers and budgets."""

import itertools
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from portfolio_search.core.constraints import Box, ConstraintSet, ConstraintSetBuilder, LongOnly, WeightSum
from portfolio_search.core.errors import (
    DegenerateSeriesError,
    InfeasibleConstraintSetError,
    InvalidArgumentError,
    NoFeasibleSolutionError,
)
from portfolio_search.core.objective import StdDevObjective
from portfolio_search.core.optimizer import (
    CandidateSampler,
    RandomSearchOptimizer,
    _reduce_outcomes,
    _split_trials,
    _WorkerOutcome,
    optimize,
)


@pytest.fixture
def independent_returns():
    """Two uncorrelated assets with equal volatility."""
    rng = np.random.default_rng(5)
    data = rng.normal(0.0, 0.01, size=(500, 2))
    return pd.DataFrame(data, columns=["A", "B"])


class FakeRng:
    """Generator stand-in that replays fixed draws."""

    def __init__(self, draws):
        self._draws = iter(draws)

    def random(self, n):
        return np.asarray(next(self._draws), dtype=float)


# ---------------------------------------------------------------------------
# Basic search
# ---------------------------------------------------------------------------

class TestRandomSearch:

    def test_result_satisfies_constraints(self, sample_returns, boxed):
        result = optimize(sample_returns, boxed, "stddev", trials=500, rng_seed=1)
        assert boxed.is_feasible(result.weight_values)
        assert result.trials_evaluated == 500
        assert result.assets == boxed.assets

    def test_objective_value_matches_weights(self, sample_returns, fully_invested):
        result = optimize(sample_returns, fully_invested, trials=300, rng_seed=2)
        expected = StdDevObjective().evaluate(result.weights, sample_returns)
        assert result.objective_value == pytest.approx(expected, rel=1e-12)

    def test_standalone_risk_is_column_std(self, sample_returns, fully_invested):
        result = optimize(sample_returns, fully_invested, trials=50, rng_seed=3)
        expected = sample_returns.std(ddof=1)
        for asset in sample_returns.columns:
            assert result.asset_risk[asset] == pytest.approx(expected[asset], rel=1e-12)

    def test_history_is_non_increasing(self, sample_returns, fully_invested):
        result = optimize(sample_returns, fully_invested, trials=400, rng_seed=4)
        assert len(result.history) == 400
        assert np.all(np.diff(result.history) <= 0)
        assert result.history[-1] == result.objective_value

    def test_diversification_beats_every_asset(self, independent_returns):
        cs = ConstraintSetBuilder(["A", "B"]).weight_sum(1.0, 1.0).long_only().build()
        result = optimize(independent_returns, cs, trials=500, rng_seed=0)
        assert all(result.beats_standalone().values())
        assert result.weights["A"] == pytest.approx(0.5, abs=0.1)

    def test_identical_assets_cannot_be_beaten(self, identical_returns, fully_invested):
        result = optimize(identical_returns, fully_invested, trials=200, rng_seed=9)
        standalone = identical_returns.iloc[:, 0].std(ddof=1)
        np.testing.assert_allclose(result.risk_values, standalone, rtol=1e-12)
        assert result.objective_value == pytest.approx(standalone, rel=1e-9)

    def test_single_trial(self, sample_returns, fully_invested):
        result = optimize(sample_returns, fully_invested, trials=1, rng_seed=0)
        assert result.trials_evaluated == 1
        assert fully_invested.is_feasible(result.weight_values)

    def test_column_order_follows_constraint_assets(self, sample_returns, fully_invested):
        shuffled = sample_returns[list(reversed(sample_returns.columns))]
        first = optimize(sample_returns, fully_invested, trials=100, rng_seed=6)
        second = optimize(shuffled, fully_invested, trials=100, rng_seed=6)
        np.testing.assert_array_equal(first.weight_values, second.weight_values)

    def test_thousand_trials_beat_worst_asset(self, sample_returns, fully_invested):
        result = optimize(sample_returns, fully_invested, trials=1000, rng_seed=42)
        assert result.objective_value <= result.risk_values.max()

    @pytest.mark.parametrize("seed", range(8))
    def test_feasible_under_random_constraint_sets(self, sample_returns, seed):
        rng = np.random.default_rng(seed)
        assets = list(sample_returns.columns)
        box_lo = float(rng.uniform(0.0, 0.15))
        box_hi = float(rng.uniform(0.3, 0.8))
        capped = assets[int(rng.integers(len(assets)))]
        cs = (ConstraintSetBuilder(assets)
              .weight_sum(float(rng.uniform(0.95, 1.0)), float(rng.uniform(1.0, 1.05)))
              .long_only()
              .box(box_lo, box_hi)
              .box(box_lo, max(box_lo, 0.25), asset=capped)
              .build())
        result = optimize(sample_returns, cs, trials=200, rng_seed=seed)
        assert cs.is_feasible(result.weight_values)

    def test_package_level_api(self, sample_prices):
        import portfolio_search as ps
        returns = ps.compute_returns(sample_prices)
        cs = ps.ConstraintSetBuilder(list(returns.columns)).weight_sum(1.0, 1.0).long_only().build()
        result = ps.optimize(returns, cs, "stddev", trials=100, rng_seed=42)
        assert isinstance(result, ps.OptimizationResult)
        assert result.seed == 42

    @pytest.mark.parametrize("objective", ["variance", "semideviation"])
    def test_other_objectives(self, sample_returns, fully_invested, objective):
        result = optimize(sample_returns, fully_invested, objective, trials=200, rng_seed=8)
        assert result.objective_name == objective
        assert result.objective_value >= 0.0


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------

class TestDeterminism:

    @pytest.mark.parametrize("seed", [0, 17, 2024])
    def test_same_seed_same_result(self, sample_returns, boxed, seed):
        first = optimize(sample_returns, boxed, trials=200, rng_seed=seed)
        second = optimize(sample_returns, boxed, trials=200, rng_seed=seed)
        np.testing.assert_array_equal(first.weight_values, second.weight_values)
        assert first.objective_value == second.objective_value

    def test_different_seeds_explore_differently(self, sample_returns, fully_invested):
        first = optimize(sample_returns, fully_invested, trials=50, rng_seed=1)
        second = optimize(sample_returns, fully_invested, trials=50, rng_seed=2)
        assert not np.array_equal(first.weight_values, second.weight_values)

    def test_global_random_state_is_untouched(self, sample_returns, fully_invested):
        np.random.seed(123)
        expected = np.random.random(3)
        np.random.seed(123)
        optimize(sample_returns, fully_invested, trials=50, rng_seed=0)
        np.testing.assert_array_equal(np.random.random(3), expected)


# ---------------------------------------------------------------------------
# Parallel workers
# ---------------------------------------------------------------------------

class TestParallel:

    def test_workers_are_deterministic(self, sample_returns, boxed):
        first = optimize(sample_returns, boxed, trials=300, rng_seed=5, n_workers=4)
        second = optimize(sample_returns, boxed, trials=300, rng_seed=5, n_workers=4)
        np.testing.assert_array_equal(first.weight_values, second.weight_values)
        assert first.n_workers == 4
        assert first.trials_evaluated == 300
        assert boxed.is_feasible(first.weight_values)

    def test_never_more_workers_than_trials(self, sample_returns, fully_invested):
        result = optimize(sample_returns, fully_invested, trials=2, rng_seed=0, n_workers=8)
        assert result.n_workers == 2
        assert result.trials_evaluated == 2

    def test_split_trials(self):
        assert _split_trials(10, 3) == [4, 3, 3]
        assert _split_trials(2, 5) == [1, 1]
        assert sum(_split_trials(1001, 7)) == 1001

    def test_reducer_keeps_earliest_on_ties(self):
        first = _WorkerOutcome(np.array([0.5]), np.array([1.0, 0.0]), 0.5, 0, False)
        second = _WorkerOutcome(np.array([0.5]), np.array([0.0, 1.0]), 0.5, 0, False)
        weights, score = _reduce_outcomes([first, second])
        np.testing.assert_array_equal(weights, [1.0, 0.0])
        assert score == 0.5

    def test_reducer_takes_strictly_lower(self):
        first = _WorkerOutcome(np.array([0.5]), np.array([1.0, 0.0]), 0.5, 0, False)
        second = _WorkerOutcome(np.array([0.4]), np.array([0.0, 1.0]), 0.4, 0, False)
        empty = _WorkerOutcome(np.array([np.nan]), None, np.inf, 1, False)
        weights, score = _reduce_outcomes([empty, first, second])
        np.testing.assert_array_equal(weights, [0.0, 1.0])
        assert score == 0.4


# ---------------------------------------------------------------------------
# Candidate sampler
# ---------------------------------------------------------------------------

class TestCandidateSampler:

    def test_zero_total_draw_is_redrawn(self):
        cs = ConstraintSet(["A", "B", "C"], [WeightSum(1.0, 1.0), LongOnly()])
        sampler = CandidateSampler(cs)
        weights = sampler.draw(FakeRng([[0.0, 0.0, 0.0], [1.0, 1.0, 2.0]]))
        np.testing.assert_allclose(weights, [0.25, 0.25, 0.5])

    def test_exhausted_attempts_return_none(self):
        cs = ConstraintSet(["A", "B"], [WeightSum(1.0, 1.0), LongOnly()])
        sampler = CandidateSampler(cs, max_attempts=3)
        assert sampler.draw(FakeRng(itertools.repeat([0.0, 0.0]))) is None

    def test_target_total_is_one_inside_range(self, fully_invested):
        assert CandidateSampler(fully_invested).target_total == 1.0

    def test_target_total_clipped_into_sum_range(self):
        cs = ConstraintSet(["A", "B"], [WeightSum(0.5, 0.8), LongOnly()])
        sampler = CandidateSampler(cs)
        assert sampler.target_total == 0.8
        weights = sampler.draw(np.random.default_rng(0))
        assert weights.sum() == pytest.approx(0.8)

    def test_box_draws_stay_inside_bounds(self, boxed):
        sampler = CandidateSampler(boxed)
        assert sampler.use_box
        rng = np.random.default_rng(12)
        for _ in range(50):
            weights = sampler.draw(rng)
            if weights is not None:
                assert np.all(weights >= 0.1 - 1e-9)
                assert np.all(weights <= 0.3 + 1e-9)


# ---------------------------------------------------------------------------
# Failure modes
# ---------------------------------------------------------------------------

class TestFailures:

    def test_infeasible_set_fails_before_sampling(self, sample_returns):
        cs = ConstraintSetBuilder(sample_returns.columns).weight_sum(1.0, 1.0).box(0.3, 1.0).build(validate=False)
        with patch.object(CandidateSampler, "draw") as draw:
            with pytest.raises(InfeasibleConstraintSetError):
                optimize(sample_returns, cs, trials=100)
        draw.assert_not_called()

    def test_fixed_weights_above_sum_cap(self, sample_returns):
        cs = ConstraintSet(sample_returns.columns, [WeightSum(max=1.01), Box(0.3, 0.3)])
        with patch.object(CandidateSampler, "draw") as draw:
            with pytest.raises(InfeasibleConstraintSetError):
                optimize(sample_returns, cs, trials=1000)
        draw.assert_not_called()

    def test_no_feasible_candidate(self):
        returns = pd.DataFrame(np.random.default_rng(1).normal(0, 0.01, (50, 3)), columns=["A", "B", "C"])
        cs = ConstraintSet(
            ["A", "B", "C"],
            [WeightSum(1.0, 1.0), Box(0.0, 1.0), Box(0.5, 0.5, asset="A")],
        )
        with pytest.raises(NoFeasibleSolutionError) as exc:
            optimize(returns, cs, trials=20, rng_seed=0, max_attempts=10)
        assert exc.value.trials_attempted == 20
        assert exc.value.failed_draws == 20

    def test_many_failed_draws_warn(self, sample_returns, fully_invested):
        good = np.full(5, 0.2)
        draws = itertools.cycle([None, None, good])
        with patch.object(CandidateSampler, "draw", side_effect=lambda rng: next(draws)):
            with pytest.warns(UserWarning, match="no feasible candidate"):
                result = optimize(sample_returns, fully_invested, trials=9, rng_seed=0)
        assert result.failed_draws == 6
        assert result.feasible_trials == 3
        assert np.isnan(result.history[0])

    @pytest.mark.parametrize("trials", [0, -5, 2.5, True])
    def test_invalid_trials(self, sample_returns, fully_invested, trials):
        with pytest.raises(InvalidArgumentError):
            optimize(sample_returns, fully_invested, trials=trials)

    def test_negative_seed(self, sample_returns, fully_invested):
        with pytest.raises(InvalidArgumentError):
            optimize(sample_returns, fully_invested, trials=10, rng_seed=-1)

    @pytest.mark.parametrize("kwargs", [
        {"max_attempts": 0},
        {"n_workers": 0},
        {"max_seconds": 0},
        {"max_seconds": -1.0},
    ])
    def test_invalid_optimizer_settings(self, kwargs):
        with pytest.raises(InvalidArgumentError):
            RandomSearchOptimizer(**kwargs)

    def test_single_period_is_degenerate(self, fully_invested):
        returns = pd.DataFrame([[0.01, 0.02, 0.0, -0.01, 0.03]], columns=fully_invested.assets)
        with pytest.raises(DegenerateSeriesError):
            optimize(returns, fully_invested, trials=10)

    def test_mismatched_columns(self, sample_returns):
        cs = ConstraintSetBuilder(["A", "B"]).weight_sum(1.0, 1.0).build()
        with pytest.raises(InvalidArgumentError):
            optimize(sample_returns, cs, trials=10)

    def test_missing_returns_rejected(self, sample_returns, fully_invested):
        returns = sample_returns.copy()
        returns.iloc[3, 1] = np.nan
        with pytest.raises(InvalidArgumentError):
            optimize(returns, fully_invested, trials=10)


# ---------------------------------------------------------------------------
# Time budget
# ---------------------------------------------------------------------------

class TestTimeBudget:

    def test_budget_returns_best_so_far(self, sample_returns, fully_invested):
        clock = itertools.chain([0.0, 0.1, 0.2], itertools.repeat(5.0))
        with patch("portfolio_search.core.optimizer.time.monotonic", side_effect=lambda: next(clock)):
            result = optimize(sample_returns, fully_invested, trials=10, rng_seed=0, max_seconds=1.0)
        assert result.stopped_early
        assert result.trials_evaluated == 2
        assert fully_invested.is_feasible(result.weight_values)

    def test_generous_budget_runs_all_trials(self, sample_returns, fully_invested):
        result = optimize(sample_returns, fully_invested, trials=20, rng_seed=0, max_seconds=60.0)
        assert not result.stopped_early
        assert result.trials_evaluated == 20
