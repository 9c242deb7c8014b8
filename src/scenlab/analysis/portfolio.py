"""
隨機組合抽樣與排名

每次抽樣：
1. 從抽樣範圍中不放回地隨機選 k 個標的
2. 抽 k 個均勻分布權重，歸一化後四捨五入（預設 3 位小數）
3. 在所有 (標的, impact) 列上計算 impact × p × w 序列的
   總和（期望報酬）、樣本標準差（波動率）與兩者比值（Sharpe-like）

- 隨機數來自外部傳入的 numpy Generator，固定種子可重現
- 波動率為 0 時 sharpe 為 NaN，不拋錯
- 四捨五入後某個權重變成 0 時重抽，確保恰好 k 個非零權重
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..config import PortfolioSearchConfig
from ..errors import ScenarioConfigError
from ..utils.log import get_logger

logger = get_logger("scenlab.portfolio")

METRIC_COLUMNS = ["expected_return", "volatility", "sharpe"]

# 每批計算的組合數（控制 N × impact 列 × 標的 的暫存矩陣大小）
_METRIC_CHUNK = 512
# 權重四捨五入出現 0 時最多重抽次數
_MAX_WEIGHT_ATTEMPTS = 1000


@dataclass(frozen=True)
class PortfolioSampleResult:
    """
    組合抽樣結果

    Attributes:
        weights: 權重表（列 = 組合 prtf_1..prtf_N，欄 = 抽樣範圍內的標的）
        metrics: expected_return / volatility / sharpe
        top_n: top / composition 預設的前幾名數量
    """
    weights: pd.DataFrame
    metrics: pd.DataFrame
    top_n: int = 20

    @property
    def n_undefined(self) -> int:
        """sharpe 無定義（波動率為 0）的組合數"""
        return int(self.metrics["sharpe"].isna().sum())

    def ranked(self) -> pd.DataFrame:
        """依 sharpe 由高到低排序，NaN 排最後"""
        return self.metrics.sort_values(
            "sharpe", ascending=False, na_position="last", kind="mergesort"
        )

    def top(self, n: Optional[int] = None) -> pd.DataFrame:
        """排名前 n 的組合（None = top_n）"""
        return self.ranked().head(n or self.top_n)

    def composition(self, n: Optional[int] = None) -> pd.DataFrame:
        """
        前 n 名組合的權重組成（熱力圖資料，n 為 None 時使用 top_n）

        列 = 至少被一個前 n 名組合使用的標的，依最佳組合的權重由高到低排序；
        欄 = 組合（依排名）。
        """
        top_ids = self.top(n).index
        table = self.weights.loc[top_ids].T
        table = table.loc[table.sum(axis=1) != 0]
        if len(top_ids) > 0:
            table = table.sort_values(top_ids[0], ascending=False, kind="mergesort")
        table.index.name = "instrument"
        return table


class PortfolioSampler:
    """
    隨機組合抽樣器

    使用範例:
        sampler = PortfolioSampler(PortfolioSearchConfig(n_draws=5000))
        result = sampler.sample(aligned_pmf, rng=np.random.default_rng(7))
        print(result.top())
    """

    def __init__(self, config: PortfolioSearchConfig | None = None):
        """
        Args:
            config: 組合搜尋配置
        """
        self._config = config or PortfolioSearchConfig()

    @property
    def config(self) -> PortfolioSearchConfig:
        return self._config

    def sample(
        self,
        aligned: pd.DataFrame,
        universe: Optional[Sequence[str]] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> PortfolioSampleResult:
        """
        抽樣並評估組合

        Args:
            aligned: 補齊後的 PMF 表（列 = impact，欄 = 標的）
            universe: 抽樣範圍（None = aligned 的所有欄位）
            rng: 隨機數生成器（None = 依 random_seed 建立）

        Raises:
            ScenarioConfigError: 抽樣範圍小於組合大小 k
        """
        cfg = self._config
        universe = list(universe) if universe is not None else list(aligned.columns)
        k = cfg.portfolio_size
        if k > len(universe):
            raise ScenarioConfigError(
                f"cannot draw {k} distinct instruments from a universe of {len(universe)}."
            )
        rng = rng if rng is not None else np.random.default_rng(cfg.random_seed)

        weights = self._draw_weight_matrix(len(universe), rng)
        contributions = self._contributions(aligned.loc[:, universe])
        expected, volatility = self._evaluate(contributions, weights)

        zero_vol = np.isclose(volatility, 0.0, rtol=0.0, atol=1e-12)
        volatility = np.where(zero_vol, 0.0, volatility)
        with np.errstate(divide="ignore", invalid="ignore"):
            sharpe = np.where(volatility > 0, expected / volatility, np.nan)

        index = pd.Index([f"prtf_{i + 1}" for i in range(cfg.n_draws)], name="portfolio")
        weight_table = pd.DataFrame(weights, index=index, columns=universe)
        metrics = pd.DataFrame(
            {"expected_return": expected, "volatility": volatility, "sharpe": sharpe},
            index=index,
            columns=METRIC_COLUMNS,
        )

        result = PortfolioSampleResult(weights=weight_table, metrics=metrics, top_n=cfg.top_n)
        if result.n_undefined:
            logger.warning(
                f"{result.n_undefined} portfolios have zero volatility, sharpe is undefined"
            )
        logger.info(
            f"Sampled {cfg.n_draws:,} portfolios of {k} from {len(universe)} instruments"
        )
        return result

    def draw_weights(self, rng: np.random.Generator) -> np.ndarray:
        """
        抽一組 k 個權重

        歸一化後四捨五入；出現 0 權重時重抽。
        renormalize_weights=True 時把四捨五入的殘差加到最大權重上。
        """
        cfg = self._config
        k = cfg.portfolio_size
        for _ in range(_MAX_WEIGHT_ATTEMPTS):
            raw = rng.uniform(size=k)
            weights = np.round(raw / raw.sum(), cfg.weight_decimals)
            if np.all(weights > 0):
                break
        else:
            raise ScenarioConfigError(
                f"weight_decimals={cfg.weight_decimals} is too coarse for "
                f"portfolio_size={k}: rounded weights keep hitting zero."
            )

        if cfg.renormalize_weights:
            largest = int(np.argmax(weights))
            residual = 1.0 - weights.sum()
            weights[largest] = round(weights[largest] + residual, cfg.weight_decimals)
        return weights

    def _draw_weight_matrix(self, n_instruments: int, rng: np.random.Generator) -> np.ndarray:
        cfg = self._config
        matrix = np.zeros((cfg.n_draws, n_instruments), dtype=float)
        for d in range(cfg.n_draws):
            picks = rng.choice(n_instruments, size=cfg.portfolio_size, replace=False)
            matrix[d, picks] = self.draw_weights(rng)
        return matrix

    @staticmethod
    def _contributions(aligned: pd.DataFrame) -> np.ndarray:
        """impact × p 矩陣（列 = impact，欄 = 標的）"""
        impact = aligned.index.to_numpy(dtype=float)
        return impact[:, None] * aligned.to_numpy(dtype=float)

    @staticmethod
    def _evaluate(
        contributions: np.ndarray,
        weights: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """分批計算每個組合加權序列的總和與樣本標準差"""
        n_draws = len(weights)
        expected = np.empty(n_draws, dtype=float)
        volatility = np.empty(n_draws, dtype=float)
        n_values = contributions.size

        for start in range(0, n_draws, _METRIC_CHUNK):
            stop = min(start + _METRIC_CHUNK, n_draws)
            series = contributions[None, :, :] * weights[start:stop, None, :]
            series = series.reshape(stop - start, n_values)
            expected[start:stop] = series.sum(axis=1)
            if n_values > 1:
                volatility[start:stop] = series.std(axis=1, ddof=1)
            else:
                volatility[start:stop] = np.nan
        return expected, volatility


def sample_portfolios(
    aligned: pd.DataFrame,
    universe: Optional[Sequence[str]] = None,
    n_draws: int = 10_000,
    portfolio_size: int = 5,
    seed: Optional[int] = 42,
) -> PortfolioSampleResult:
    """
    隨機組合抽樣便捷函數

    Example:
        result = sample_portfolios(aligned, n_draws=2000, seed=1)
        print(result.top(10))
    """
    config = PortfolioSearchConfig(
        n_draws=n_draws,
        portfolio_size=portfolio_size,
        random_seed=seed,
    )
    return PortfolioSampler(config).sample(aligned, universe=universe)
