"""
非支配過濾測試

測試內容：
- 一階隨機支配的淘汰條件
- 相同累積曲線的 tie-break（先出現者保留）
- 至少保留一個標的
- 並行與順序結果一致
"""
from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from scenlab.analysis.distribution import align_distributions, cumulative_distributions
from scenlab.analysis.dominance import DominanceResult, filter_dominated, find_dominator


def _cumulative(pmfs: dict) -> pd.DataFrame:
    series = {
        name: pd.Series(mapping, dtype=float)
        for name, mapping in pmfs.items()
    }
    return cumulative_distributions(align_distributions(series))


# ══════════════════════════════════════════════════════════════════════════════
# 淘汰條件
# ══════════════════════════════════════════════════════════════════════════════

class TestEliminationRule:
    """filter_dominated 測試"""

    def test_positive_beats_negative(self):
        """X 全部 +10 保留，Y 全部 -10 被淘汰"""
        result = filter_dominated(_cumulative({
            "X": {10.0: 1.0},
            "Y": {-10.0: 1.0},
        }))

        assert result.survivors == ("X",)
        assert result.dominated == {"Y": "X"}
        assert result.ties == ()

    def test_order_does_not_matter(self):
        result = filter_dominated(_cumulative({
            "Y": {-10.0: 1.0},
            "X": {10.0: 1.0},
        }))

        assert result.survivors == ("X",)

    def test_crossing_curves_both_survive(self):
        """累積曲線交叉時互不支配"""
        result = filter_dominated(_cumulative({
            "A": {-1.0: 0.5, 1.0: 0.5},
            "B": {0.0: 1.0},
        }))

        assert result.survivors == ("A", "B")
        assert result.dominated == {}

    def test_chain_keeps_best(self):
        """A > B > C，只保留 A"""
        result = filter_dominated(_cumulative({
            "C": {1.0: 1.0},
            "B": {2.0: 1.0},
            "A": {3.0: 1.0},
        }))

        assert result.survivors == ("A",)
        assert set(result.dominated) == {"B", "C"}

    def test_partial_shift_is_dominated(self):
        """機率質量部分往上移的標的支配原標的"""
        result = filter_dominated(_cumulative({
            "BASE": {-1.0: 0.5, 1.0: 0.5},
            "BETTER": {-1.0: 0.25, 1.0: 0.75},
        }))

        assert result.survivors == ("BETTER",)

    def test_find_dominator(self):
        cumulative = _cumulative({"X": {10.0: 1.0}, "Y": {-10.0: 1.0}})

        assert find_dominator(cumulative, "Y") == ("X", [])
        assert find_dominator(cumulative, "X") == (None, [])


# ══════════════════════════════════════════════════════════════════════════════
# Tie-break
# ══════════════════════════════════════════════════════════════════════════════

class TestTies:
    """相同累積曲線"""

    def test_identical_curves_keep_first(self):
        result = filter_dominated(_cumulative({
            "A": {-1.0: 0.4, 2.0: 0.6},
            "B": {-1.0: 0.4, 2.0: 0.6},
        }))

        assert result.survivors == ("A",)
        assert result.dominated == {"B": "A"}
        assert result.ties == (("A", "B"),)

    def test_identical_and_dominated(self):
        """相同曲線的標的都被第三者支配時全部淘汰"""
        result = filter_dominated(_cumulative({
            "A": {0.0: 1.0},
            "B": {0.0: 1.0},
            "C": {5.0: 1.0},
        }))

        assert result.survivors == ("C",)
        assert ("A", "B") in result.ties

    def test_tie_recorded_when_dominator_comes_first(self, caplog):
        """支配者排在最前面時，後面相同曲線的標的仍被記錄為 tie"""
        with caplog.at_level("WARNING", logger="scenlab.dominance"):
            result = filter_dominated(_cumulative({
                "C": {5.0: 1.0},
                "A": {0.0: 1.0},
                "B": {0.0: 1.0},
            }))

        assert result.survivors == ("C",)
        assert result.dominated == {"A": "C", "B": "C"}
        assert result.ties == (("A", "B"),)
        assert "Identical cumulative distributions for A and B" in caplog.text

    def test_ties_do_not_depend_on_column_order(self):
        pmfs = {"A": {0.0: 1.0}, "B": {0.0: 1.0}, "C": {5.0: 1.0}}
        orders = [("A", "B", "C"), ("C", "A", "B"), ("A", "C", "B")]

        for order in orders:
            result = filter_dominated(_cumulative({name: pmfs[name] for name in order}))
            assert result.ties == (("A", "B"),)
            assert result.survivors == ("C",)

    def test_find_dominator_reports_all_ties(self):
        cumulative = _cumulative({"C": {5.0: 1.0}, "A": {0.0: 1.0}, "B": {0.0: 1.0}})

        assert find_dominator(cumulative, "A") == ("C", ["B"])
        assert find_dominator(cumulative, "B") == ("C", ["A"])

    def test_all_identical(self):
        result = filter_dominated(_cumulative({
            name: {1.0: 0.5, 2.0: 0.5} for name in ("P", "Q", "R")
        }))

        assert result.survivors == ("P",)


# ══════════════════════════════════════════════════════════════════════════════
# 不變量
# ══════════════════════════════════════════════════════════════════════════════

class TestInvariants:
    """過濾結果的不變量"""

    @pytest.mark.parametrize("seed", range(20))
    def test_never_eliminates_everything(self, seed):
        """隨機分布（含重複）至少保留一個標的"""
        rng = np.random.default_rng(seed)
        grid = np.arange(-3, 4) * 0.5
        pmfs = {}
        for i in range(6):
            support = rng.choice(grid, size=rng.integers(1, len(grid) + 1), replace=False)
            proba = rng.dirichlet(np.ones(len(support)))
            pmfs[f"I{i}"] = dict(zip(support, proba))
        pmfs["DUP"] = dict(pmfs["I0"])

        result = filter_dominated(_cumulative(pmfs))

        assert len(result.survivors) >= 1
        assert set(result.survivors) | set(result.dominated) == set(pmfs)

    def test_empty_input(self):
        result = filter_dominated(pd.DataFrame())

        assert result == DominanceResult(survivors=())

    def test_parallel_matches_sequential(self):
        cumulative = _cumulative({
            "A": {-1.0: 0.5, 1.0: 0.5},
            "B": {0.0: 1.0},
            "C": {-2.0: 1.0},
            "D": {0.0: 1.0},
        })

        assert filter_dominated(cumulative, parallel=True, max_workers=2) == filter_dominated(cumulative)

    def test_filter_subsets_columns(self):
        cumulative = _cumulative({"X": {10.0: 1.0}, "Y": {-10.0: 1.0}})
        result = filter_dominated(cumulative)

        assert list(result.filter(cumulative).columns) == ["X"]
