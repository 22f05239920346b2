"""Tests for portfolio_search.core.loader -- file loading, alignment and resampling."""

import numpy as np
import pandas as pd
import pytest

from portfolio_search.core.errors import DataSourceError, InvalidArgumentError
from portfolio_search.core.loader import (
    DEFAULT_ASSETS,
    PriceLoader,
    align_prices,
    generate_sample_prices,
    resample_prices,
)


class TestPriceLoader:

    def test_load_csv(self, price_csv, sample_prices):
        prices = PriceLoader().load_csv(price_csv)
        assert list(prices.columns) == list(sample_prices.columns)
        assert len(prices) == len(sample_prices)
        assert isinstance(prices.index, pd.DatetimeIndex)
        np.testing.assert_allclose(prices.values, sample_prices.values)

    def test_load_csv_asset_subset_keeps_order(self, price_csv):
        prices = PriceLoader().load_csv(price_csv, assets=["KO", "AAPL"])
        assert list(prices.columns) == ["KO", "AAPL"]

    def test_unknown_symbol_raises(self, price_csv):
        with pytest.raises(DataSourceError) as exc:
            PriceLoader().load_csv(price_csv, assets=["AAPL", "NOPE"])
        assert exc.value.asset == "NOPE"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DataSourceError):
            PriceLoader().load_csv(tmp_path / "missing.csv")

    def test_date_column_is_case_insensitive(self, tmp_path):
        path = tmp_path / "lower.csv"
        pd.DataFrame({
            "px": [1.0, 2.0, 3.0],
            "date": ["2024-01-03", "2024-01-01", "2024-01-02"],
        }).to_csv(path, index=False)
        prices = PriceLoader().load_csv(path)
        assert list(prices.columns) == ["px"]
        assert prices.index.is_monotonic_increasing
        assert prices["px"].tolist() == [2.0, 3.0, 1.0]

    def test_non_numeric_column_is_skipped(self, tmp_path):
        path = tmp_path / "mixed.csv"
        pd.DataFrame({
            "Date": ["2024-01-01", "2024-01-02"],
            "A": [1.0, 2.0],
            "Note": ["x", "y"],
        }).to_csv(path, index=False)
        prices = PriceLoader().load_csv(path)
        assert list(prices.columns) == ["A"]

    def test_requested_non_numeric_column_raises(self, tmp_path):
        path = tmp_path / "mixed.csv"
        pd.DataFrame({
            "Date": ["2024-01-01", "2024-01-02"],
            "A": [1.0, 2.0],
            "Note": ["x", "y"],
        }).to_csv(path, index=False)
        with pytest.raises(DataSourceError):
            PriceLoader().load_csv(path, assets=["A", "Note"])

    def test_load_excel(self, tmp_path, sample_prices):
        path = tmp_path / "prices.xlsx"
        sample_prices.to_excel(path, sheet_name="Prices", index_label="Date")
        prices = PriceLoader().load_file(path, sheet="Prices", assets=["MSFT", "XOM"])
        assert list(prices.columns) == ["MSFT", "XOM"]
        assert len(prices) == len(sample_prices)

    def test_missing_sheet_raises(self, tmp_path, sample_prices):
        path = tmp_path / "prices.xlsx"
        sample_prices.to_excel(path, sheet_name="Prices", index_label="Date")
        with pytest.raises(DataSourceError):
            PriceLoader().load_excel(path, sheet="Other")

    def test_load_frames_uses_close_column(self):
        dates = pd.date_range("2024-01-01", periods=3, freq="D")
        frames = {
            "A": pd.DataFrame({"Open": [1.0, 2.0, 3.0], "Close": [1.5, 2.5, 3.5]}, index=dates),
            "B": pd.Series([10.0, 11.0, 12.0], index=dates),
        }
        prices = PriceLoader().load_frames(frames)
        assert prices["A"].tolist() == [1.5, 2.5, 3.5]
        assert prices["B"].tolist() == [10.0, 11.0, 12.0]

    def test_load_frames_without_price_column(self):
        frames = {"A": pd.DataFrame({"Open": [1.0, 2.0]})}
        with pytest.raises(DataSourceError) as exc:
            PriceLoader().load_frames(frames)
        assert exc.value.asset == "A"

    def test_load_frames_empty_history(self):
        with pytest.raises(DataSourceError):
            PriceLoader().load_frames({"A": pd.Series([np.nan, np.nan])})


class TestAlignPrices:

    def test_inner_join_on_common_dates(self):
        a = pd.Series([1.0, 2.0, 3.0], index=pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-03"]))
        b = pd.Series([5.0, 6.0], index=pd.to_datetime(["2024-01-02", "2024-01-03"]))
        prices = align_prices({"A": a, "B": b})
        assert len(prices) == 2
        assert prices.index[0] == pd.Timestamp("2024-01-02")

    def test_duplicates_keep_last(self):
        index = pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-02"])
        prices = align_prices({"A": pd.Series([1.0, 2.0, 2.5], index=index)})
        assert prices["A"].tolist() == [1.0, 2.5]

    def test_no_overlap_raises(self):
        a = pd.Series([1.0], index=pd.to_datetime(["2024-01-01"]))
        b = pd.Series([2.0], index=pd.to_datetime(["2024-02-01"]))
        with pytest.raises(DataSourceError):
            align_prices({"A": a, "B": b})

    def test_frame_rows_with_gaps_are_dropped(self):
        frame = pd.DataFrame({"A": [1.0, np.nan, 3.0], "B": [1.0, 2.0, 3.0]},
                             index=pd.date_range("2024-01-01", periods=3, freq="D"))
        assert len(align_prices(frame)) == 2


class TestResampling:

    def test_daily_is_unchanged(self, sample_prices):
        assert resample_prices(sample_prices, "daily") is sample_prices

    def test_weekly_uses_last_price(self, sample_prices):
        weekly = resample_prices(sample_prices, "weekly")
        assert len(weekly) < len(sample_prices)
        first_friday = weekly.index[0]
        assert first_friday.dayofweek == 4
        expected = sample_prices.loc[:first_friday].iloc[-1]
        pd.testing.assert_series_equal(weekly.iloc[0], expected, check_names=False)

    def test_monthly(self, sample_prices):
        monthly = resample_prices(sample_prices, "Monthly")
        assert 11 <= len(monthly) <= 13

    def test_unknown_periodicity(self, sample_prices):
        with pytest.raises(InvalidArgumentError):
            resample_prices(sample_prices, "hourly")


class TestSamplePrices:

    def test_shape_and_defaults(self):
        prices = generate_sample_prices()
        assert list(prices.columns) == DEFAULT_ASSETS
        assert len(prices) == 252
        assert prices.index.name == "Date"
        assert (prices > 0).all().all()

    def test_seeded(self):
        pd.testing.assert_frame_equal(generate_sample_prices(seed=3), generate_sample_prices(seed=3))
