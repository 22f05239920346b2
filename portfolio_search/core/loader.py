"""
Price Loader Module
===================

This module handles loading adjusted-close prices from various sources:
- CSV files (date column + one column per asset)
- Excel workbooks (same layout, any sheet)
- In-memory frames or Series, one per asset

It also provides the preparation steps the return builder expects to have
happened already:
1. Alignment: inner-join every asset on common timestamps
2. Resampling: daily prices to weekly or monthly observations

Any failure to obtain prices (missing file, unreadable sheet, unknown
symbol, empty date range) is raised as ``DataSourceError`` so that it never
reaches the return computation as a confusing downstream error.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from portfolio_search.core.errors import DataSourceError, InvalidArgumentError

logger = logging.getLogger(__name__)

# pandas resample rule per periodicity ('daily' keeps the data unchanged)
PERIODICITY_RULES = {
    'daily': None,
    'weekly': 'W-FRI',
    'monthly': 'ME',
}

PERIODS_PER_YEAR = {
    'daily': 252,
    'weekly': 52,
    'monthly': 12,
}

DEFAULT_ASSETS = ['AAPL', 'MSFT', 'JNJ', 'XOM', 'KO']


class PriceLoader:
    """
    Load aligned price frames for portfolio optimization.

    Every ``load_*`` method returns a DataFrame indexed by timestamp with one
    column of adjusted prices per asset, aligned on common dates.

    Example:
        >>> loader = PriceLoader()
        >>> prices = loader.load_csv("prices.csv", assets=["AAPL", "MSFT"])
    """

    def __init__(self, date_column: str = 'Date'):
        """
        Args:
            date_column: Name of the column holding timestamps
        """
        self.date_column = date_column

    def load_csv(
        self,
        file_path: Union[str, Path],
        assets: Optional[Sequence[str]] = None
    ) -> pd.DataFrame:
        """
        Load prices from a CSV file.

        Args:
            file_path: Path to CSV file
            assets: Optional subset of asset columns to keep (in this order)

        Returns:
            Aligned price DataFrame

        Raises:
            DataSourceError: If the file is missing, unreadable or lacks assets
        """
        path = Path(file_path)
        if not path.exists():
            raise DataSourceError(f"Price file not found: {path}", source=str(path))
        try:
            df = pd.read_csv(path)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise DataSourceError(f"Could not read {path}: {e}", source=str(path)) from e

        return self._prepare(df, str(path), assets)

    def load_excel(
        self,
        file_path: Union[str, Path],
        sheet: Union[str, int] = 0,
        assets: Optional[Sequence[str]] = None
    ) -> pd.DataFrame:
        """
        Load prices from one sheet of an Excel workbook.

        Args:
            file_path: Path to .xlsx file
            sheet: Sheet name or index
            assets: Optional subset of asset columns to keep (in this order)

        Returns:
            Aligned price DataFrame

        Raises:
            DataSourceError: If the workbook or sheet cannot be read
        """
        path = Path(file_path)
        if not path.exists():
            raise DataSourceError(f"Price file not found: {path}", source=str(path))
        try:
            df = pd.read_excel(path, sheet_name=sheet)
        except (OSError, ValueError, KeyError) as e:
            raise DataSourceError(
                f"Could not read sheet {sheet!r} of {path}: {e}", source=str(path)
            ) from e

        return self._prepare(df, f"{path}[{sheet}]", assets)

    def load_file(
        self,
        file_path: Union[str, Path],
        sheet: Union[str, int] = 0,
        assets: Optional[Sequence[str]] = None
    ) -> pd.DataFrame:
        """Dispatch to load_excel or load_csv based on the file extension."""
        suffix = Path(file_path).suffix.lower()
        if suffix in ('.xlsx', '.xlsm', '.xls'):
            return self.load_excel(file_path, sheet, assets)
        return self.load_csv(file_path, assets)

    def load_frames(
        self,
        frames: Mapping[str, Union[pd.Series, pd.DataFrame]],
        price_column: str = 'Close'
    ) -> pd.DataFrame:
        """
        Combine per-asset price histories already in memory.

        Args:
            frames: Mapping of symbol to a price Series, or to an OHLCV
                DataFrame holding ``price_column``
            price_column: Column to use from DataFrame inputs

        Returns:
            Aligned price DataFrame

        Raises:
            DataSourceError: If a history is empty or lacks the price column
        """
        series: Dict[str, pd.Series] = {}
        for symbol, data in frames.items():
            if isinstance(data, pd.DataFrame):
                if price_column not in data.columns:
                    raise DataSourceError(
                        f"No '{price_column}' column for {symbol}", source='frames', asset=str(symbol)
                    )
                data = data[price_column]
            if data is None or data.dropna().empty:
                raise DataSourceError(f"No price data for {symbol}", source='frames', asset=str(symbol))
            series[str(symbol)] = data

        return align_prices(series)

    def _prepare(
        self,
        df: pd.DataFrame,
        source: str,
        assets: Optional[Sequence[str]]
    ) -> pd.DataFrame:
        if df.empty:
            raise DataSourceError(f"No rows in {source}", source=source)

        # Find the date column (case-insensitive), falling back to the first column
        date_col = None
        for col in df.columns:
            if str(col).strip().lower() == self.date_column.lower():
                date_col = col
                break
        if date_col is None:
            date_col = df.columns[0]

        try:
            index = pd.to_datetime(df[date_col])
        except (ValueError, TypeError) as e:
            raise DataSourceError(
                f"Column '{date_col}' in {source} does not hold dates: {e}", source=source
            ) from e

        df = df.drop(columns=[date_col])
        df.index = pd.DatetimeIndex(index, name='Date')
        df.columns = [str(c).strip() for c in df.columns]

        if assets is not None:
            missing = [a for a in assets if a not in df.columns]
            if missing:
                raise DataSourceError(
                    f"Unknown symbol(s) {missing} in {source}. Available: {list(df.columns)}",
                    source=source,
                    asset=missing[0],
                )
            df = df[list(assets)]

        # Drop any columns that contain non-numeric data
        numeric = df.apply(pd.to_numeric, errors='coerce')
        dropped = [c for c in df.columns if numeric[c].isna().all()]
        if dropped:
            if assets is not None:
                raise DataSourceError(
                    f"Column(s) {dropped} in {source} hold no numeric prices",
                    source=source,
                    asset=dropped[0],
                )
            logger.warning("Skipping non-numeric column(s) %s in %s", dropped, source)
            numeric = numeric.drop(columns=dropped)

        if numeric.shape[1] == 0:
            raise DataSourceError(f"No price columns in {source}", source=source)

        prices = align_prices(numeric)
        logger.info(
            "Loaded %d price rows for %d assets from %s", len(prices), prices.shape[1], source
        )
        return prices


def align_prices(prices: Union[pd.DataFrame, Mapping[str, pd.Series]]) -> pd.DataFrame:
    """
    Align asset prices on their common timestamps.

    Keeps only timestamps present for every asset (inner join), sorts them,
    and drops duplicate timestamps (keeping the last observation).

    Args:
        prices: DataFrame of prices or mapping of symbol to price Series

    Returns:
        Aligned price DataFrame

    Raises:
        DataSourceError: If no timestamps are common to all assets
    """
    if isinstance(prices, pd.DataFrame):
        combined = prices.dropna(how='any')
    else:
        if not prices:
            raise DataSourceError("No price series to align")
        cleaned = {}
        for symbol, s in prices.items():
            s = s.dropna()
            cleaned[str(symbol)] = s[~s.index.duplicated(keep='last')]
        combined = pd.concat(cleaned, axis=1, join='inner')

    combined = combined[~combined.index.duplicated(keep='last')].sort_index()
    if combined.empty:
        raise DataSourceError("No overlapping dates across the supplied assets")
    return combined.astype(float)


def resample_prices(prices: pd.DataFrame, periodicity: str = 'daily') -> pd.DataFrame:
    """
    Resample prices to a coarser periodicity using the last price per period.

    Args:
        prices: Aligned price DataFrame with a DatetimeIndex
        periodicity: 'daily', 'weekly' or 'monthly'

    Returns:
        Resampled price DataFrame

    Raises:
        InvalidArgumentError: If the periodicity is unknown
    """
    periodicity = periodicity.lower()
    if periodicity not in PERIODICITY_RULES:
        raise InvalidArgumentError(
            f"Unknown periodicity '{periodicity}'. Use one of {list(PERIODICITY_RULES)}"
        )
    rule = PERIODICITY_RULES[periodicity]
    if rule is None:
        return prices
    if not isinstance(prices.index, pd.DatetimeIndex):
        raise InvalidArgumentError("Resampling needs a DatetimeIndex")
    return prices.resample(rule).last().dropna(how='any')


def generate_sample_prices(
    assets: Optional[List[str]] = None,
    n_periods: int = 252,
    seed: int = 42,
    start: str = '2023-01-02'
) -> pd.DataFrame:
    """
    Generate synthetic daily prices for testing and demos.

    Prices follow correlated geometric Brownian motion with realistic daily
    drifts and volatilities, drawn from a seeded generator.

    Args:
        assets: Asset names (default: five large caps)
        n_periods: Number of daily observations
        seed: Random seed for reproducibility
        start: First business date

    Returns:
        Price DataFrame indexed by business days
    """
    if assets is None:
        assets = list(DEFAULT_ASSETS)
    rng = np.random.default_rng(seed)
    n_assets = len(assets)

    drifts = np.linspace(0.0002, 0.0006, n_assets)
    vols = np.linspace(0.010, 0.025, n_assets)

    # One common market factor plus idiosyncratic noise
    market = rng.normal(0.0, 1.0, size=(n_periods, 1))
    noise = rng.normal(0.0, 1.0, size=(n_periods, n_assets))
    shocks = 0.5 * market + np.sqrt(1 - 0.5 ** 2) * noise

    log_returns = drifts + vols * shocks
    log_returns[0] = 0.0
    prices = 100.0 * np.exp(np.cumsum(log_returns, axis=0))

    dates = pd.bdate_range(start=start, periods=n_periods, name='Date')
    return pd.DataFrame(prices, index=dates, columns=list(assets))
