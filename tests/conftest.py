"""Shared pytest fixtures for the portfolio_search test suite.

Provides synthetic price and return data with fixed seeds for reproducibility.
All fixtures are independent of external data sources.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from portfolio_search.core.constraints import ConstraintSetBuilder
from portfolio_search.core.loader import generate_sample_prices
from portfolio_search.core.returns import compute_returns

FIVE_ASSETS = ["AAPL", "MSFT", "JNJ", "XOM", "KO"]


# ---------------------------------------------------------------------------
# 1. Price fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_prices():
    """Synthetic daily prices for five assets, 252 business days, seeded at 42."""
    return generate_sample_prices(FIVE_ASSETS, n_periods=252, seed=42)


@pytest.fixture
def price_csv(tmp_path, sample_prices):
    """The sample prices written to a CSV file with a Date column."""
    path = tmp_path / "prices.csv"
    sample_prices.to_csv(path, index_label="Date")
    return path


# ---------------------------------------------------------------------------
# 2. Return fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_returns(sample_prices):
    """Daily log returns of the sample prices (251 periods)."""
    return compute_returns(sample_prices, method="log")


@pytest.fixture
def identical_returns():
    """Five perfectly correlated assets with identical return columns."""
    rng = np.random.default_rng(7)
    column = rng.normal(0.0005, 0.015, 120)
    dates = pd.bdate_range(start="2023-01-02", periods=120)
    return pd.DataFrame({a: column for a in FIVE_ASSETS}, index=dates)


# ---------------------------------------------------------------------------
# 3. Constraint fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fully_invested():
    """Long-only, weights summing to 1 within 1%."""
    return ConstraintSetBuilder(FIVE_ASSETS).weight_sum(0.99, 1.01).long_only().build()


@pytest.fixture
def boxed():
    """Long-only, sum within 1%, every asset between 10% and 30%."""
    return (
        ConstraintSetBuilder(FIVE_ASSETS)
        .weight_sum(0.99, 1.01)
        .long_only()
        .box(0.1, 0.3)
        .build()
    )
