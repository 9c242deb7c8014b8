"""
估值分類（rich / cheap / par）

依已載入的歷史收盤價判斷標的目前的估值狀態：
- rich: 現價 >= 均值 + band_std × 標準差
- cheap: 現價 <= 均值 - band_std × 標準差
- par: 介於兩者之間

價格下載不在此模組範圍內，呼叫者負責提供價格序列。
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict

import pandas as pd

from ..utils.log import get_logger
from .models import ValuationState

logger = get_logger("scenlab.valuation")


@dataclass(frozen=True)
class ValuationSnapshot:
    """
    單一標的的估值快照

    Attributes:
        current: 最新價格
        mean: 歷史均值
        std: 歷史樣本標準差
        lower_bound: cheap 邊界
        upper_bound: rich 邊界
        state: 估值狀態
        distance_from_mean: (現價 - 均值) / 標準差
        percentile_position: 現價在 [下界, 上界] 之間的位置（0 = cheap 邊界，1 = rich 邊界）
        n_observations: 有效價格筆數
    """
    current: float
    mean: float
    std: float
    lower_bound: float
    upper_bound: float
    state: ValuationState
    distance_from_mean: float
    percentile_position: float
    n_observations: int


def classify_valuation(
    prices: pd.Series,
    band_std: float = 1.0,
    min_observations: int = 5,
) -> ValuationSnapshot:
    """
    判斷單一價格序列的估值狀態

    NaN 與非正數價格會先被剔除；序列最後一筆有效價格視為現價。

    Raises:
        ValueError: 有效價格少於 min_observations
    """
    valid = prices.dropna()
    valid = valid[valid > 0]
    if len(valid) < min_observations:
        raise ValueError(
            f"need at least {min_observations} valid prices, got {len(valid)}"
        )

    values = valid.to_numpy(dtype=float)
    current = values[-1]
    mean = values.mean()
    std = values.std(ddof=1)
    lower = mean - band_std * std
    upper = mean + band_std * std

    if current >= upper:
        state = ValuationState.RICH
    elif current <= lower:
        state = ValuationState.CHEAP
    else:
        state = ValuationState.PAR

    if std > 0:
        distance = (current - mean) / std
        position = (current - lower) / (upper - lower)
    else:
        distance = 0.0
        position = 0.5

    return ValuationSnapshot(
        current=current,
        mean=mean,
        std=std,
        lower_bound=lower,
        upper_bound=upper,
        state=state,
        distance_from_mean=distance,
        percentile_position=position,
        n_observations=len(values),
    )


def classify_price_history(
    prices: pd.DataFrame,
    band_std: float = 1.0,
    min_observations: int = 5,
) -> pd.DataFrame:
    """
    對價格表的每一欄（標的）做估值分類

    有效數據不足的標的會被略過並記錄 warning。

    Returns:
        DataFrame（索引 = 標的，欄位 = ValuationSnapshot 的欄位）
    """
    rows = {}
    for instrument in prices.columns:
        try:
            snapshot = classify_valuation(prices[instrument], band_std, min_observations)
        except ValueError as e:
            logger.warning(f"Skipping valuation for {instrument}: {e}")
            continue
        rows[instrument] = asdict(snapshot)

    table = pd.DataFrame.from_dict(rows, orient="index")
    table.index.name = "instrument"
    if len(table):
        counts = table["state"].map(lambda s: s.value).value_counts().to_dict()
        logger.info(f"Valuation classes: {counts}")
    return table


def valuation_states(table: pd.DataFrame) -> Dict[str, ValuationState]:
    """把 classify_price_history 的結果轉成 {標的: 估值狀態}"""
    if len(table) == 0:
        return {}
    return {
        instrument: ValuationState.parse(state)
        for instrument, state in table["state"].items()
    }
