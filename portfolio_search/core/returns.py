"""
Return Series Builder
=====================

Converts aligned price observations into period-over-period returns.

Two return definitions are supported:

    log return:     r_t = ln(P_t / P_{t-1})
    simple return:  r_t = P_t / P_{t-1} - 1

The first period has no previous price, so an input of N prices yields N-1
returns. Any period whose return is undefined (e.g. next to a missing price)
is dropped for every asset, never imputed, so the resulting matrix has the
same number of periods for every asset.

Alignment is a precondition: every series must share exactly the same
timestamp index. Use ``portfolio_search.core.loader.align_prices`` to align
raw data first.
"""

from typing import Dict, Mapping, Union

import numpy as np
import pandas as pd

from portfolio_search.core.errors import (
    InsufficientDataError,
    InvalidArgumentError,
    MisalignedSeriesError,
)

PriceInput = Union[pd.DataFrame, Mapping[str, pd.Series]]

RETURN_METHODS = ('log', 'simple')


class ReturnSeriesBuilder:
    """
    Build a return matrix (periods x assets) from aligned price series.

    Example:
        >>> prices = pd.DataFrame({'A': [100.0, 110.0, 121.0]})
        >>> ReturnSeriesBuilder('log').build(prices)['A'].round(4).tolist()
        [0.0953, 0.0953]
    """

    def __init__(self, method: str = 'log'):
        """
        Args:
            method: 'log' or 'simple'

        Raises:
            InvalidArgumentError: If the method is unknown
        """
        method = str(method).lower()
        if method not in RETURN_METHODS:
            raise InvalidArgumentError(
                f"Unknown return method '{method}'. Use one of {RETURN_METHODS}"
            )
        self.method = method

    def build(self, prices: PriceInput) -> pd.DataFrame:
        """
        Compute the return matrix.

        Args:
            prices: DataFrame (index = timestamps, columns = assets) or a
                mapping of asset symbol to price Series

        Returns:
            DataFrame of returns with one fewer row than the input (more if
            periods with undefined returns had to be dropped)

        Raises:
            InsufficientDataError: If any series has fewer than 2 observations
            MisalignedSeriesError: If the series do not share one index
            InvalidArgumentError: If a price is zero or negative
        """
        frame = self._to_frame(prices)
        values = frame.to_numpy(dtype=float)

        observed = ~np.isnan(values)
        bad = observed & (values <= 0)
        if bad.any():
            row, col = np.argwhere(bad)[0]
            raise InvalidArgumentError(
                f"Non-positive price {values[row, col]} for asset "
                f"'{frame.columns[col]}' at {frame.index[row]}"
            )

        ratio = values[1:] / values[:-1]
        if self.method == 'log':
            rets = np.log(ratio)
        else:
            rets = ratio - 1.0

        returns = pd.DataFrame(rets, index=frame.index[1:], columns=frame.columns)
        return returns.dropna(how='any')

    # ------------------------------------------------------------------
    # Input normalization
    # ------------------------------------------------------------------

    def _to_frame(self, prices: PriceInput) -> pd.DataFrame:
        if isinstance(prices, pd.DataFrame):
            return self._frame_from_dataframe(prices)
        if isinstance(prices, Mapping):
            return self._frame_from_mapping(prices)
        raise InvalidArgumentError(
            f"Prices must be a DataFrame or a mapping of Series, got {type(prices).__name__}"
        )

    def _frame_from_dataframe(self, prices: pd.DataFrame) -> pd.DataFrame:
        if prices.shape[1] == 0:
            raise InvalidArgumentError("Price frame has no assets")

        columns = [str(c) for c in prices.columns]
        if len(set(columns)) != len(columns):
            raise InvalidArgumentError(f"Duplicate asset columns: {columns}")

        if len(prices) < 2:
            raise InsufficientDataError(
                f"Asset '{columns[0]}' has {len(prices)} observation(s); at least 2 are required",
                asset=columns[0],
                n_observations=len(prices),
            )
        _check_index(columns[0], prices.index)

        frame = prices.copy()
        frame.columns = columns
        return frame

    def _frame_from_mapping(self, prices: Mapping[str, pd.Series]) -> pd.DataFrame:
        if not prices:
            raise InvalidArgumentError("No price series supplied")

        series: Dict[str, pd.Series] = {}
        for asset, values in prices.items():
            s = values if isinstance(values, pd.Series) else pd.Series(values)
            if len(s) < 2:
                raise InsufficientDataError(
                    f"Asset '{asset}' has {len(s)} observation(s); at least 2 are required",
                    asset=str(asset),
                    n_observations=len(s),
                )
            _check_index(str(asset), s.index)
            series[str(asset)] = s

        assets = list(series)
        ref_index = series[assets[0]].index
        for asset in assets[1:]:
            index = series[asset].index
            if len(index) != len(ref_index):
                raise MisalignedSeriesError(
                    f"Asset '{asset}' has {len(index)} observations but "
                    f"'{assets[0]}' has {len(ref_index)}",
                    asset=asset,
                    position=min(len(index), len(ref_index)),
                )
            if not index.equals(ref_index):
                mismatch = np.flatnonzero(np.asarray(index) != np.asarray(ref_index))
                position = int(mismatch[0]) if mismatch.size else 0
                raise MisalignedSeriesError(
                    f"Asset '{asset}' timestamp {index[position]} does not match "
                    f"'{assets[0]}' timestamp {ref_index[position]} at position {position}",
                    asset=asset,
                    position=position,
                )

        return pd.DataFrame(
            {asset: series[asset].to_numpy(dtype=float) for asset in assets},
            index=ref_index,
        )


def _check_index(asset: str, index: pd.Index):
    """Timestamps must be strictly increasing with no duplicates."""
    if index.has_duplicates:
        raise MisalignedSeriesError(
            f"Asset '{asset}' has duplicate timestamps", asset=asset
        )
    if not index.is_monotonic_increasing:
        raise MisalignedSeriesError(
            f"Asset '{asset}' timestamps are not strictly increasing", asset=asset
        )


def compute_returns(prices: PriceInput, method: str = 'log') -> pd.DataFrame:
    """
    Convenience wrapper around ``ReturnSeriesBuilder(method).build(prices)``.

    Args:
        prices: Aligned price frame or mapping of price Series
        method: 'log' or 'simple'

    Returns:
        Return matrix (rows = periods, columns = assets)
    """
    return ReturnSeriesBuilder(method).build(prices)
