"""
非支配過濾（一階隨機支配）

標的 A 被標的 B 淘汰的條件：在整個 impact 網格上
max(cdf_B - cdf_A) <= 0，也就是 B 的累積曲線從不高於 A
（B 的機率質量整體偏向較高的 impact）。

- 每個標的是否被支配可獨立判斷（可並行），最後再過濾
- 兩條曲線完全相同時，只有排在前面的標的能淘汰後面的標的，
  因此相同曲線中最先出現的會保留，並記錄為 tie
- 非空輸入至少保留一個標的
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ..utils.log import get_logger

logger = get_logger("scenlab.dominance")


@dataclass(frozen=True)
class DominanceResult:
    """
    支配過濾結果

    Attributes:
        survivors: 未被支配的標的（保持原欄位順序）
        dominated: 被淘汰的標的 → 淘汰它的標的
        ties: 累積曲線完全相同的標的對 (先出現, 後出現)
    """
    survivors: Tuple[str, ...]
    dominated: Dict[str, str] = field(default_factory=dict)
    ties: Tuple[Tuple[str, str], ...] = ()

    def filter(self, table: pd.DataFrame) -> pd.DataFrame:
        """只保留 survivors 的欄位"""
        return table.loc[:, list(self.survivors)]


def find_dominator(
    cumulative: pd.DataFrame,
    instrument: str,
) -> Tuple[Optional[str], List[str]]:
    """
    找出第一個淘汰 instrument 的標的

    找到淘汰者後仍會比較其餘標的，確保所有相同曲線都被記錄。

    Returns:
        (淘汰者或 None, 所有累積曲線與 instrument 完全相同的標的)
    """
    columns = list(cumulative.columns)
    position = columns.index(instrument)
    own = cumulative[instrument].to_numpy(dtype=float)
    dominator: Optional[str] = None
    ties: List[str] = []

    for j, other in enumerate(columns):
        if j == position:
            continue
        diff = cumulative[other].to_numpy(dtype=float) - own
        if diff.max() > 0:
            continue
        if diff.min() == 0:
            # 完全相同：只有排在前面的能淘汰
            ties.append(other)
            if j > position:
                continue
        if dominator is None:
            dominator = other

    return dominator, ties


def filter_dominated(
    cumulative: pd.DataFrame,
    parallel: bool = False,
    max_workers: int = 4,
) -> DominanceResult:
    """
    淘汰被其他標的支配的標的

    Args:
        cumulative: 累積分布（列 = impact 遞增，欄 = 標的，已補齊）
        parallel: 是否並行判斷
        max_workers: 最大並行工作數

    Returns:
        DominanceResult
    """
    columns = list(cumulative.columns)
    if not columns:
        return DominanceResult(survivors=())

    if parallel and len(columns) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(lambda name: find_dominator(cumulative, name), columns))
    else:
        outcomes = [find_dominator(cumulative, name) for name in columns]

    dominated: Dict[str, str] = {}
    tie_pairs = set()
    for name, (dominator, ties) in zip(columns, outcomes):
        if dominator is not None:
            dominated[name] = dominator
        for other in ties:
            pair = tuple(sorted((name, other), key=columns.index))
            tie_pairs.add(pair)

    survivors = tuple(name for name in columns if name not in dominated)
    ties = tuple(sorted(tie_pairs, key=lambda p: (columns.index(p[0]), columns.index(p[1]))))

    for first, second in ties:
        logger.warning(
            f"Identical cumulative distributions for {first} and {second}, {first} takes precedence"
        )
    logger.info(
        f"Dominance filter kept {len(survivors)} of {len(columns)} instruments"
    )
    return DominanceResult(survivors=survivors, dominated=dominated, ties=ties)
