"""
標的 impact 連結測試

測試內容：
- 每條路徑的 impact 為各類別 outcome impact 的加總
- 缺少數據的標的被略過並回報原因
- 並行與順序結果一致
- 不修改共用的路徑數據
"""
from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from scenlab.errors import MissingImpactError
from scenlab.analysis.impact import (
    ImpactLinkResult,
    instrument_path_impacts,
    link_instrument_impacts,
)
from scenlab.analysis.models import Outcome, ScenarioCategory
from scenlab.analysis.paths import build_scenario_paths


# ══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def categories():
    """Rates × Growth，X / Y 完整，Z 只在 Rates 有數據，W 有 NaN"""
    rates = ScenarioCategory(
        name="Rates",
        outcomes=(
            Outcome("Up", 0.4, {"X": 2.0, "Y": -1.0, "Z": 1.0, "W": 0.0}),
            Outcome("Down", 0.6, {"X": -3.0, "Y": 1.0, "Z": 1.0, "W": 0.0}),
        ),
    )
    growth = ScenarioCategory(
        name="Growth",
        outcomes=(
            Outcome("High", 0.5, {"X": 5.0, "Y": 0.0, "W": float("nan")}),
            Outcome("Low", 0.5, {"X": -1.0, "Y": 2.0, "W": 1.0}),
        ),
    )
    return [rates, growth]


@pytest.fixture
def paths(categories):
    return build_scenario_paths(categories)


# ══════════════════════════════════════════════════════════════════════════════
# 單一標的
# ══════════════════════════════════════════════════════════════════════════════

class TestInstrumentPathImpacts:
    """instrument_path_impacts 測試"""

    def test_sums_across_categories(self, paths):
        """路徑順序 Up-High, Up-Low, Down-High, Down-Low"""
        np.testing.assert_allclose(instrument_path_impacts(paths, "X"), [7.0, 1.0, 2.0, -4.0])
        np.testing.assert_allclose(instrument_path_impacts(paths, "Y"), [-1.0, 1.0, 1.0, 3.0])

    def test_missing_outcome_raises(self, paths):
        """缺少 outcome 數據時拋出 MissingImpactError"""
        with pytest.raises(MissingImpactError) as exc_info:
            instrument_path_impacts(paths, "Z")

        assert exc_info.value.instrument == "Z"
        assert exc_info.value.category == "Growth"
        assert exc_info.value.outcome == "High"

    def test_nan_counts_as_missing(self, paths):
        """NaN 視為缺少數據，不補 0"""
        with pytest.raises(MissingImpactError):
            instrument_path_impacts(paths, "W")


# ══════════════════════════════════════════════════════════════════════════════
# 所有標的
# ══════════════════════════════════════════════════════════════════════════════

class TestLinkInstrumentImpacts:
    """link_instrument_impacts 測試"""

    def test_discovers_instruments_and_skips_incomplete(self, paths):
        """自動找出標的，缺少數據者列在 skipped"""
        result = link_instrument_impacts(paths)

        assert isinstance(result, ImpactLinkResult)
        assert result.instruments == ["X", "Y"]
        assert set(result.skipped) == {"Z", "W"}
        assert "Growth=High" in result.skipped["Z"]

    def test_probabilities_carried_through(self, paths):
        result = link_instrument_impacts(paths)

        np.testing.assert_array_equal(result.probabilities, paths.probabilities)

    def test_explicit_instrument_order(self, paths):
        """指定標的時保持順序，未知標的被略過"""
        result = link_instrument_impacts(paths, instruments=["Y", "X", "UNKNOWN"])

        assert result.instruments == ["Y", "X"]
        assert "UNKNOWN" in result.skipped

    def test_parallel_matches_sequential(self, paths):
        """並行與順序結果一致"""
        sequential = link_instrument_impacts(paths)
        parallel = link_instrument_impacts(paths, parallel=True, max_workers=3)

        pd.testing.assert_frame_equal(sequential.impacts, parallel.impacts)
        assert sequential.skipped == parallel.skipped

    def test_does_not_mutate_paths(self, paths):
        """共用路徑數據不被修改"""
        index_before = paths.outcome_index.copy()
        proba_before = paths.probabilities.copy()

        link_instrument_impacts(paths, parallel=True)

        np.testing.assert_array_equal(paths.outcome_index, index_before)
        np.testing.assert_array_equal(paths.probabilities, proba_before)

    def test_to_long(self, paths):
        """長格式：每個 (路徑, 標的) 一列"""
        long = link_instrument_impacts(paths).to_long()

        assert list(long.columns) == ["path", "instrument", "impact", "proba"]
        assert len(long) == 4 * 2
        x_rows = long[long["instrument"] == "X"]
        assert x_rows["proba"].sum() == pytest.approx(1.0)
        assert list(x_rows["impact"]) == [7.0, 1.0, 2.0, -4.0]
