"""
情境分析流程（Facade）

依序執行：
路徑建構 → impact 連結 → 分布彙總與估值調整 → 補齊與累積 → 支配過濾 → 組合抽樣

配置錯誤直接中止；缺少數據的標的被略過並列在 skipped。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import AnalysisConfig, PortfolioUniverse
from ..errors import ScenarioConfigError
from ..utils.log import get_logger
from .distribution import (
    align_distributions,
    build_impact_distributions,
    cumulative_distributions,
    summarize_distributions,
)
from .dominance import DominanceResult, filter_dominated
from .impact import ImpactLinkResult, link_instrument_impacts
from .models import ScenarioCategory, ScenarioPathSet
from .paths import build_scenario_paths
from .portfolio import PortfolioSampleResult, PortfolioSampler

logger = get_logger("scenlab.pipeline")


@dataclass(frozen=True)
class AnalysisResult:
    """
    一次情境分析的所有輸出

    Attributes:
        paths: 情境路徑集合
        impacts: 每條路徑每個標的的淨 impact
        distributions: 每個標的的 PMF（估值調整後）
        aligned: 補齊後的 PMF 表
        cumulative: 累積分布表
        summary: 每個標的的分布摘要
        dominance: 支配過濾結果
        portfolios: 組合抽樣結果
        skipped: 被略過的標的 → 原因
    """
    paths: ScenarioPathSet
    impacts: ImpactLinkResult
    distributions: Dict[str, pd.Series]
    aligned: pd.DataFrame
    cumulative: pd.DataFrame
    summary: pd.DataFrame
    dominance: DominanceResult
    portfolios: PortfolioSampleResult
    skipped: Dict[str, str] = field(default_factory=dict)

    @property
    def non_dominated_cumulative(self) -> pd.DataFrame:
        """只保留未被支配標的的累積分布"""
        return self.dominance.filter(self.cumulative)

    def top_portfolios(self, n: Optional[int] = None) -> pd.DataFrame:
        """排名前 n 的組合（None = 配置的 top_n）"""
        return self.portfolios.top(n)


class ScenarioAnalyzer:
    """
    情境分析器

    使用範例:
        analyzer = ScenarioAnalyzer(load_config("config/analysis.yaml"))
        result = analyzer.run(categories, {"USDEQUITY": "rich"})
        print(result.dominance.survivors)
        print(result.top_portfolios())
    """

    def __init__(self, config: AnalysisConfig | None = None):
        """
        Args:
            config: 分析配置
        """
        self._config = (config or AnalysisConfig()).validate()
        self._sampler = PortfolioSampler(self._config.portfolio)

    @property
    def config(self) -> AnalysisConfig:
        return self._config

    def run(
        self,
        categories: Sequence[ScenarioCategory],
        valuations: Optional[Mapping[str, object]] = None,
        instruments: Optional[Sequence[str]] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> AnalysisResult:
        """
        執行完整分析

        Args:
            categories: 情境類別
            valuations: 標的 → 估值狀態（沒有的視為 par）
            instruments: 要分析的標的（None = outcome 中出現過的所有標的）
            rng: 組合抽樣用的隨機數生成器（None = 依配置種子建立）

        Raises:
            ScenarioConfigError: 配置錯誤，或沒有任何標的可用
        """
        cfg = self._config

        paths = build_scenario_paths(categories, cfg.scenarios)
        impacts = link_instrument_impacts(
            paths,
            instruments=instruments,
            parallel=cfg.parallel,
            max_workers=cfg.max_workers,
        )
        if not impacts.instruments:
            raise ScenarioConfigError(
                f"no instrument has complete impact data (skipped: {sorted(impacts.skipped)})"
            )

        distributions = build_impact_distributions(impacts, valuations, cfg.distribution)
        aligned = align_distributions(distributions)
        cumulative = cumulative_distributions(aligned, cfg.distribution.cumulative_decimals)
        summary = summarize_distributions(distributions)

        dominance = filter_dominated(
            cumulative,
            parallel=cfg.parallel,
            max_workers=cfg.max_workers,
        )

        if cfg.portfolio.universe == PortfolioUniverse.NON_DOMINATED:
            universe = list(dominance.survivors)
        else:
            universe = list(aligned.columns)
        portfolios = self._sampler.sample(aligned, universe=universe, rng=rng)

        logger.info(
            f"Analysis complete: {len(impacts.instruments)} instruments, "
            f"{len(dominance.survivors)} non-dominated, {len(impacts.skipped)} skipped"
        )
        return AnalysisResult(
            paths=paths,
            impacts=impacts,
            distributions=distributions,
            aligned=aligned,
            cumulative=cumulative,
            summary=summary,
            dominance=dominance,
            portfolios=portfolios,
            skipped=dict(impacts.skipped),
        )


def run_scenario_analysis(
    categories: Sequence[ScenarioCategory],
    valuations: Optional[Mapping[str, object]] = None,
    config: AnalysisConfig | None = None,
    seed: Optional[int] = None,
) -> AnalysisResult:
    """
    執行情境分析便捷函數

    Args:
        categories: 情境類別
        valuations: 標的 → 估值狀態
        config: 分析配置
        seed: 覆蓋配置中的隨機種子

    Example:
        result = run_scenario_analysis(categories_from_frame(df), {"GOLD": "cheap"})
        print(result.summary)
    """
    analyzer = ScenarioAnalyzer(config)
    rng = np.random.default_rng(seed) if seed is not None else None
    return analyzer.run(categories, valuations, rng=rng)
