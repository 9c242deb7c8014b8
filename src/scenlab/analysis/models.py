"""
情境分析資料模型

- Outcome / ScenarioCategory: 輸入的情境類別與其互斥 outcome
- ScenarioPath / ScenarioPathSet: 每個類別各選一個 outcome 的聯合路徑
- ValuationState: 標的目前的估值狀態（rich / cheap / par）

設計原則：
- 結果不可變：使用 frozen dataclass，路徑陣列設為唯讀
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Mapping, Optional, Tuple

import numpy as np
import pandas as pd


class ValuationState(str, Enum):
    """估值狀態（相對於自身歷史價格分布）"""
    RICH = "rich"
    CHEAP = "cheap"
    PAR = "par"

    @classmethod
    def parse(cls, value) -> Optional["ValuationState"]:
        """
        寬鬆解析估值標籤

        無法辨識的標籤回傳 None（impact 不做調整）。
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Outcome:
    """
    情境類別中的一個 outcome

    Attributes:
        name: outcome 名稱（在類別內唯一）
        probability: 發生機率
        impacts: 各標的的績效影響（百分比，可正可負）
    """
    name: str
    probability: float
    impacts: Mapping[str, float] = field(default_factory=dict)

    def impact_for(self, instrument: str) -> Optional[float]:
        """取得某標的的 impact，沒有資料（缺少或 NaN）時回傳 None"""
        value = self.impacts.get(instrument)
        if value is None:
            return None
        value = float(value)
        if np.isnan(value):
            return None
        return value


@dataclass(frozen=True)
class ScenarioCategory:
    """一個獨立的市場不確定性軸（例如利率），包含互斥且完整的 outcome"""
    name: str
    outcomes: Tuple[Outcome, ...]

    @property
    def outcome_names(self) -> Tuple[str, ...]:
        return tuple(o.name for o in self.outcomes)

    @property
    def probabilities(self) -> np.ndarray:
        return np.array([o.probability for o in self.outcomes], dtype=float)

    @property
    def instruments(self) -> Tuple[str, ...]:
        """出現在任一 outcome 中的標的（依首次出現順序）"""
        seen: Dict[str, None] = {}
        for outcome in self.outcomes:
            for name in outcome.impacts:
                seen.setdefault(name, None)
        return tuple(seen)


@dataclass(frozen=True)
class ScenarioPath:
    """一條情境路徑：每個類別各一個 outcome，機率為各 outcome 機率的乘積"""
    outcomes: Tuple[str, ...]
    probability: float


@dataclass(frozen=True)
class ScenarioPathSet:
    """
    一次分析的完整路徑集合

    Attributes:
        categories: 依序排列的情境類別
        outcome_index: (n_paths, n_categories) 唯讀矩陣，值為各類別 outcome 的索引
        probabilities: (n_paths,) 唯讀聯合機率
    """
    categories: Tuple[ScenarioCategory, ...]
    outcome_index: np.ndarray
    probabilities: np.ndarray

    def __len__(self) -> int:
        return len(self.probabilities)

    def __iter__(self) -> Iterator[ScenarioPath]:
        names = [c.outcome_names for c in self.categories]
        for row, proba in zip(self.outcome_index, self.probabilities):
            yield ScenarioPath(
                outcomes=tuple(names[j][i] for j, i in enumerate(row)),
                probability=float(proba),
            )

    @property
    def category_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.categories)

    @property
    def total_probability(self) -> float:
        return float(self.probabilities.sum())

    def to_frame(self) -> pd.DataFrame:
        """轉成 DataFrame：每個類別一欄 outcome 名稱，加上 proba 欄"""
        data = {}
        for j, category in enumerate(self.categories):
            names = np.asarray(category.outcome_names, dtype=object)
            data[category.name] = names[self.outcome_index[:, j]]
        data["proba"] = self.probabilities
        return pd.DataFrame(data)
