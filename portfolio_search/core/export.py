"""Export optimization results to Excel or CSV."""

import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from portfolio_search.core.errors import InvalidArgumentError
from portfolio_search.core.result import OptimizationResult

logger = logging.getLogger(__name__)


def export_result(
    result: OptimizationResult,
    file_path: Union[str, Path],
    benchmark: Optional[pd.Series] = None
) -> Path:
    """
    Write a result to disk.

    ``.xlsx`` files get one sheet each for weights, asset risk, search
    history and a run summary (written with openpyxl). ``.csv`` files get
    the per-asset table only.

    Args:
        result: OptimizationResult to export
        file_path: Destination path (.xlsx or .csv)
        benchmark: Optional benchmark weights added as an extra column

    Returns:
        Path written

    Raises:
        InvalidArgumentError: If the extension is not supported
    """
    path = Path(file_path)
    suffix = path.suffix.lower()

    table = result.to_frame()
    if benchmark is not None:
        table['benchmark_weight'] = benchmark.reindex(table.index)

    if suffix == '.csv':
        table.to_csv(path)
    elif suffix == '.xlsx':
        summary = pd.Series(
            {k: v for k, v in result.to_dict().items() if k not in ('weights', 'asset_risk')},
            name='value',
        )
        history = pd.DataFrame(
            {'running_best': result.history},
            index=pd.RangeIndex(1, len(result.history) + 1, name='trial'),
        )
        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            table[['weight'] + [c for c in table.columns if c == 'benchmark_weight']].to_excel(
                writer, sheet_name='Weights'
            )
            table[['standalone_risk', 'beats_standalone']].to_excel(writer, sheet_name='AssetRisk')
            history.to_excel(writer, sheet_name='History')
            summary.to_frame().to_excel(writer, sheet_name='Summary')
    else:
        raise InvalidArgumentError(f"Unsupported export format '{suffix}'. Use .xlsx or .csv")

    logger.info("Exported result to %s", path)
    return path
