"""
Impact 分布彙總

兩個步驟依序套用：
1. 分箱：impact 四捨五入到最近的粒度（預設 0.5），同一箱的路徑機率加總
2. 估值調整：依 rich / cheap 狀態與 impact 正負號縮放，重新分箱後再加總
   （調整可能把兩個不同的箱映射到同一個值）

另外提供：
- 補齊：所有標的共用同一組 impact 值（缺少的補 0 機率）
- 累積分布：補齊後排序並累加，供支配過濾使用
- 摘要：期望 impact、離散度、Sharpe-like 比率、賺賠機率
"""
from __future__ import annotations

from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from ..config import DistributionConfig
from ..utils.log import get_logger
from .impact import ImpactLinkResult
from .models import ValuationState

logger = get_logger("scenlab.distribution")


def round_to_granularity(values, granularity: float = 0.5) -> np.ndarray:
    """四捨五入到最近的 granularity 倍數（.5 時取偶數，與 numpy 一致）"""
    rounded = np.round(np.asarray(values, dtype=float) / granularity) * granularity
    # 把 -0.0 統一成 0.0
    return rounded + 0.0


def _group_probability(impacts: np.ndarray, probabilities: np.ndarray) -> pd.Series:
    pmf = pd.Series(np.asarray(probabilities, dtype=float)).groupby(impacts).sum()
    pmf = pmf.sort_index()
    pmf.index = pmf.index.astype(float)
    pmf.index.name = "impact"
    pmf.name = "proba"
    return pmf


def bin_impacts(
    impacts,
    probabilities,
    granularity: float = 0.5,
) -> pd.Series:
    """
    把路徑 impact 分箱成 PMF

    Args:
        impacts: 每條路徑的 impact
        probabilities: 每條路徑的機率
        granularity: 分箱粒度

    Returns:
        以 impact 為索引（遞增、唯一）的機率 Series
    """
    binned = round_to_granularity(impacts, granularity)
    return _group_probability(binned, probabilities)


def adjust_for_valuation(
    pmf: pd.Series,
    state: Optional[ValuationState],
    factor: float = 1.3,
    granularity: float = 0.5,
) -> pd.Series:
    """
    依估值狀態調整 PMF 的 impact 值

    - rich: 正向 impact / F（上檔壓縮），負向 impact × F（下檔放大）
    - cheap: 正向 impact × F（上檔放大），負向 impact / F（下檔壓縮）
    - par 或未知狀態: 不變

    調整後重新分箱，撞在同一箱的機率加總。
    """
    if state not in (ValuationState.RICH, ValuationState.CHEAP):
        return pmf.copy()

    impact = pmf.index.to_numpy(dtype=float)
    positive = impact >= 0
    if state == ValuationState.RICH:
        adjusted = np.where(positive, impact / factor, impact * factor)
    else:
        adjusted = np.where(positive, impact * factor, impact / factor)

    rebinned = round_to_granularity(adjusted, granularity)
    return _group_probability(rebinned, pmf.to_numpy())


def build_impact_distributions(
    link_result: ImpactLinkResult,
    valuations: Optional[Mapping[str, object]] = None,
    config: DistributionConfig | None = None,
) -> Dict[str, pd.Series]:
    """
    建立每個標的經估值調整後的 PMF

    Args:
        link_result: impact 連結結果
        valuations: 標的 → 估值狀態（ValuationState 或字串），沒有的視為 par
        config: 分布配置

    Returns:
        {標的: PMF}
    """
    config = config or DistributionConfig()
    valuations = valuations or {}

    pmfs: Dict[str, pd.Series] = {}
    for instrument in link_result.instruments:
        raw_state = valuations.get(instrument)
        state = ValuationState.parse(raw_state)
        if raw_state is not None and state is None:
            logger.warning(
                f"Unknown valuation state {raw_state!r} for {instrument}, leaving impacts unchanged"
            )

        binned = bin_impacts(
            link_result.impacts[instrument].to_numpy(),
            link_result.probabilities,
            config.granularity,
        )
        pmfs[instrument] = adjust_for_valuation(
            binned,
            state,
            factor=config.valuation_factor,
            granularity=config.granularity,
        )

    n_bins = sum(len(p) for p in pmfs.values())
    logger.info(f"Built impact distributions for {len(pmfs)} instruments ({n_bins} bins)")
    return pmfs


def align_distributions(pmfs: Mapping[str, pd.Series]) -> pd.DataFrame:
    """
    補齊所有標的的 impact 值

    所有 PMF 建好後才能執行：取所有標的 impact 值的聯集，
    缺少的值補 0 機率。

    Returns:
        DataFrame（列 = impact 遞增，欄 = 標的）
    """
    if not pmfs:
        return pd.DataFrame(index=pd.Index([], dtype=float, name="impact"))

    aligned = pd.DataFrame(dict(pmfs)).sort_index().fillna(0.0)
    aligned.index.name = "impact"
    return aligned


def cumulative_distributions(
    aligned: pd.DataFrame,
    decimals: Optional[int] = 4,
) -> pd.DataFrame:
    """
    累積分布（遞增排序後累加）

    Args:
        aligned: align_distributions 的結果
        decimals: 四捨五入位數（None = 不處理）
    """
    cumulative = aligned.sort_index().cumsum()
    if decimals is not None:
        cumulative = cumulative.round(decimals)
    return cumulative


def summarize_distributions(pmfs: Mapping[str, pd.Series]) -> pd.DataFrame:
    """
    每個標的的分布摘要

    Columns:
        expected_impact: Σ impact × p
        stdev: impact × p 序列的樣本標準差
        sharpe: expected_impact / stdev（stdev 為 0 或無定義時為 NaN）
        prob_gain: impact >= 0 的機率
        prob_loss: impact < 0 的機率
    """
    rows = {}
    for instrument, pmf in pmfs.items():
        impact = pmf.index.to_numpy(dtype=float)
        weighted = impact * pmf.to_numpy()
        expected = weighted.sum()
        stdev = weighted.std(ddof=1) if len(weighted) > 1 else np.nan
        sharpe = expected / stdev if np.isfinite(stdev) and stdev > 0 else np.nan
        rows[instrument] = {
            "expected_impact": expected,
            "stdev": stdev,
            "sharpe": sharpe,
            "prob_gain": pmf[impact >= 0].sum(),
            "prob_loss": pmf[impact < 0].sum(),
        }

    summary = pd.DataFrame.from_dict(
        rows,
        orient="index",
        columns=["expected_impact", "stdev", "sharpe", "prob_gain", "prob_loss"],
    )
    summary.index.name = "instrument"

    undefined = summary["sharpe"].isna().sum()
    if undefined:
        logger.warning(f"{undefined} instruments have zero dispersion, sharpe is undefined")
    return summary
