"""
標的 impact 連結

把每個標的在各 outcome 的 impact 對應到每條情境路徑，
並跨類別加總得到 (標的, 路徑) 的淨 impact。

- 缺少 impact 數據時，該標的整個被略過並回報原因（不補 0，避免扭曲分布）
- 各標的互相獨立，可用 thread pool 並行；路徑數據唯讀共用
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..errors import MissingImpactError
from ..utils.log import get_logger
from .models import ScenarioPathSet

logger = get_logger("scenlab.impact")


@dataclass(frozen=True)
class ImpactLinkResult:
    """
    Impact 連結結果

    Attributes:
        impacts: 每條路徑（列）每個標的（欄）的淨 impact
        probabilities: 路徑機率（原樣傳遞）
        skipped: 被略過的標的 → 原因
    """
    impacts: pd.DataFrame
    probabilities: np.ndarray
    skipped: Dict[str, str] = field(default_factory=dict)

    @property
    def instruments(self) -> List[str]:
        return list(self.impacts.columns)

    def to_long(self) -> pd.DataFrame:
        """長格式：path, instrument, impact, proba"""
        long = self.impacts.reset_index(drop=True)
        long.insert(0, "path", np.arange(len(long)))
        long = long.melt(id_vars="path", var_name="instrument", value_name="impact")
        long["proba"] = np.tile(self.probabilities, len(self.impacts.columns))
        return long


def _discover_instruments(paths: ScenarioPathSet) -> List[str]:
    seen: Dict[str, None] = {}
    for category in paths.categories:
        for name in category.instruments:
            seen.setdefault(name, None)
    return list(seen)


def instrument_path_impacts(paths: ScenarioPathSet, instrument: str) -> np.ndarray:
    """
    計算單一標的在每條路徑的淨 impact

    Raises:
        MissingImpactError: 任何一個 outcome 缺少該標的的 impact
    """
    total = np.zeros(len(paths), dtype=float)
    for j, category in enumerate(paths.categories):
        lookup = np.empty(len(category.outcomes), dtype=float)
        for i, outcome in enumerate(category.outcomes):
            value = outcome.impact_for(instrument)
            if value is None:
                raise MissingImpactError(instrument, category.name, outcome.name)
            lookup[i] = value
        total = total + lookup[paths.outcome_index[:, j]]
    return total


def _link_one(paths: ScenarioPathSet, instrument: str):
    try:
        return instrument, instrument_path_impacts(paths, instrument), None
    except MissingImpactError as e:
        return instrument, None, str(e)


def link_instrument_impacts(
    paths: ScenarioPathSet,
    instruments: Optional[Sequence[str]] = None,
    parallel: bool = False,
    max_workers: int = 4,
) -> ImpactLinkResult:
    """
    連結所有標的的路徑 impact

    Args:
        paths: 情境路徑集合
        instruments: 要計算的標的（None = 所有 outcome 中出現過的標的）
        parallel: 是否並行
        max_workers: 最大並行工作數

    Returns:
        ImpactLinkResult（欄位順序與 instruments 相同，略過的標的不在其中）
    """
    names = list(instruments) if instruments is not None else _discover_instruments(paths)

    if parallel and len(names) > 1:
        outputs = {}
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(_link_one, paths, name): name
                for name in names
            }
            for future in as_completed(futures):
                name, values, error = future.result()
                outputs[name] = (values, error)
        ordered = [(name, *outputs[name]) for name in names]
    else:
        ordered = [_link_one(paths, name) for name in names]

    columns = {}
    skipped = {}
    for name, values, error in ordered:
        if error is not None:
            skipped[name] = error
            logger.warning(f"Skipping {name}: {error}")
            continue
        columns[name] = values

    impacts = pd.DataFrame(columns, index=pd.RangeIndex(len(paths), name="path"))
    logger.info(
        f"Linked {len(columns)} instruments across {len(paths):,} paths "
        f"({len(skipped)} skipped)"
    )
    return ImpactLinkResult(
        impacts=impacts,
        probabilities=paths.probabilities,
        skipped=skipped,
    )
