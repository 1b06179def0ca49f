"""
Integration Tests -- Block maxima report workflow and driver script
===================================================================
Runs the full pipeline (prices -> risk factors -> block maxima -> GEV -> metrics) on
simulated heavy-tailed prices.
"""

import importlib.util
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from market_extremes.workflows import BlockMaximaResult, analyze_block_maxima

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "fit_block_maxima.py"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture(scope="module")
def prices():
    """30 years of business-day prices with Student-t(3) log-returns."""
    rng = np.random.default_rng(1987)
    index = pd.bdate_range("1960-01-01", "1989-12-29", name="date")
    log_returns = 0.0003 + 0.006 * rng.standard_t(df=3, size=len(index))
    return pd.Series(100.0 * np.exp(np.cumsum(log_returns)), index=index, name="close")


@pytest.fixture(scope="module")
def report(prices):
    return analyze_block_maxima(prices, end="1987-10-16", event_date="1987-10-19")


def _load_script():
    spec = importlib.util.spec_from_file_location("fit_block_maxima", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------
class TestAnalyzeBlockMaxima:
    """Default granularities, window, and derived metrics."""

    def test_default_granularities(self, report):
        assert set(report["results"]) == {"yearly", "half-yearly"}
        assert all(isinstance(res, BlockMaximaResult) for res in report["results"].values())

    def test_window_applied(self, report):
        assert report["window"].index[-1] == pd.Timestamp("1987-10-16")
        assert report["risk_factors"].index[-1] == pd.Timestamp("1989-12-29")

    def test_block_counts(self, report):
        assert len(report["results"]["yearly"].block_maxima) == 28
        assert len(report["results"]["half-yearly"].block_maxima) == 56

    def test_event_level_from_date(self, report):
        assert report["event_level"] == pytest.approx(report["risk_factors"].loc["1987-10-19"])

    def test_metrics(self, report):
        for res in report["results"].values():
            assert 0.0 < res.exceedance_probability < 1.0
            assert res.prior_max == pytest.approx(res.block_maxima.iloc[:-1].max())
            levels = list(res.return_levels.values())
            assert levels == sorted(levels)
            assert res.event_return_period >= 1.0

    def test_configured_return_periods(self, report):
        assert list(report["results"]["yearly"].return_levels) == [10.0, 50.0]
        assert list(report["results"]["half-yearly"].return_levels) == [20.0, 100.0]

    def test_summary_is_flat(self, report):
        summary = report["results"]["yearly"].summary()
        assert summary["n_blocks"] == 28
        assert {"xi", "mu", "sigma", "se_xi", "return_level_k10", "return_level_k50"} <= set(summary)

    def test_parallel_matches_serial(self, prices, report):
        parallel = analyze_block_maxima(prices, end="1987-10-16", event_date="1987-10-19", max_workers=2)
        for gran, res in report["results"].items():
            assert parallel["results"][gran].fit.params == res.fit.params

    def test_custom_granularity_and_periods(self, prices):
        out = analyze_block_maxima(
            prices,
            granularities=["quarterly"],
            return_periods={"quarterly": [4, 40]},
            event_level=0.05,
        )
        res = out["results"]["quarterly"]
        assert len(res.block_maxima) == 120
        assert res.return_levels[4.0] < res.return_levels[40.0]


# ---------------------------------------------------------------------------
# Driver script
# ---------------------------------------------------------------------------
class TestDriverScript:
    """Exit codes and output of scripts/fit_block_maxima.py."""

    def test_success(self, tmp_path, prices, capsys):
        path = tmp_path / "px.csv"
        prices.to_frame().reset_index().to_csv(path, index=False)
        script = _load_script()
        code = script.main(
            ["--input", str(path), "--granularity", "yearly", "--end", "1987-10-16", "--event-level", "0.2", "--json"]
        )
        assert code == 0
        assert '"yearly"' in capsys.readouterr().out

    def test_failure_exit_code(self, tmp_path, capsys):
        path = tmp_path / "short.csv"
        pd.DataFrame(
            {"date": pd.bdate_range("2020-01-01", periods=20), "close": np.linspace(100, 120, 20)}
        ).to_csv(path, index=False)
        script = _load_script()
        assert script.main(["--input", str(path), "--granularity", "yearly"]) == 1
        assert "InsufficientBlocksError" in capsys.readouterr().err
