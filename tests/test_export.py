"""Tests for portfolio_search.core.export -- CSV and Excel output."""

import pandas as pd
import pytest

from portfolio_search.core.errors import InvalidArgumentError
from portfolio_search.core.export import export_result
from portfolio_search.core.result import OptimizationResult


@pytest.fixture
def result():
    return OptimizationResult(
        assets=("A", "B"),
        weight_values=[0.7, 0.3],
        objective_value=0.01,
        trials_evaluated=3,
        risk_values=[0.012, 0.015],
        history=[0.02, 0.011, 0.01],
        seed=1,
    )


def test_csv_export(tmp_path, result):
    path = export_result(result, tmp_path / "result.csv")
    table = pd.read_csv(path, index_col="asset")
    assert table.loc["A", "weight"] == pytest.approx(0.7)
    assert list(table.columns) == ["weight", "standalone_risk", "beats_standalone"]


def test_csv_export_with_benchmark(tmp_path, result):
    benchmark = pd.Series({"B": 0.25, "A": 0.75})
    path = export_result(result, tmp_path / "result.csv", benchmark=benchmark)
    table = pd.read_csv(path, index_col="asset")
    assert table.loc["A", "benchmark_weight"] == pytest.approx(0.75)


def test_excel_export_sheets(tmp_path, result):
    path = export_result(result, tmp_path / "result.xlsx")
    sheets = pd.read_excel(path, sheet_name=None, index_col=0)
    assert set(sheets) == {"Weights", "AssetRisk", "History", "Summary"}
    assert sheets["Weights"].loc["B", "weight"] == pytest.approx(0.3)
    assert sheets["History"]["running_best"].tolist() == pytest.approx([0.02, 0.011, 0.01])
    assert sheets["Summary"].loc["trials_evaluated", "value"] == 3


def test_unsupported_extension(tmp_path, result):
    with pytest.raises(InvalidArgumentError):
        export_result(result, tmp_path / "result.json")
