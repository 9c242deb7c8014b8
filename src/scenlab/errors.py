"""
錯誤類型

- ScenarioConfigError: 配置錯誤（致命，計算前回報）
- MissingImpactError: 單一標的缺少 impact 數據（可隔離，該標的被略過）
"""
from __future__ import annotations


class ScenarioConfigError(ValueError):
    """情境樹或分析參數設定錯誤，整個分析中止"""


class MissingImpactError(KeyError):
    """某個 (標的, outcome) 組合沒有 impact 數據"""

    def __init__(self, instrument: str, category: str, outcome: str):
        self.instrument = instrument
        self.category = category
        self.outcome = outcome
        super().__init__(instrument)

    def __str__(self) -> str:
        return (
            f"missing impact for instrument '{self.instrument}' "
            f"in {self.category}={self.outcome}"
        )
