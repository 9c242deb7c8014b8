"""
DataFrame 轉換

把已載入的表格（例如試算表的 Scenarios / Values 工作表）轉成分析用的資料模型。
檔案讀取由呼叫者負責。

Scenarios 表（寬格式）:
    ScenarioType | Outcome | proba | <標的 1> | <標的 2> | ...

Values 表:
    Instrument | Rich_cheap
"""
from __future__ import annotations

import re
from typing import Dict, List

import pandas as pd

from ..errors import ScenarioConfigError
from .models import Outcome, ScenarioCategory

SCENARIO_COLUMNS = ("ScenarioType", "Outcome", "proba")


def _strip_spaces(name) -> str:
    return re.sub(r"\s+", "", str(name))


def categories_from_frame(frame: pd.DataFrame) -> List[ScenarioCategory]:
    """
    寬格式 Scenarios 表 → 情境類別

    欄位名稱中的空白會被移除；類別依首次出現順序排列；
    標的欄中的空值保留為 NaN（連結時視為缺少數據）。

    Raises:
        ScenarioConfigError: 缺少必要欄位，或 ScenarioType / Outcome 為空
    """
    frame = frame.rename(columns=_strip_spaces)
    missing = [c for c in SCENARIO_COLUMNS if c not in frame.columns]
    if missing:
        raise ScenarioConfigError(f"scenario table is missing columns: {missing}")

    for column in ("ScenarioType", "Outcome"):
        blank = frame[column].isna()
        if blank.any():
            rows = frame.index[blank].tolist()
            raise ScenarioConfigError(
                f"scenario table has blank '{column}' in rows {rows}."
            )

    instruments = [c for c in frame.columns if c not in SCENARIO_COLUMNS]

    categories: List[ScenarioCategory] = []
    for name in pd.unique(frame["ScenarioType"]):
        rows = frame[frame["ScenarioType"] == name]
        outcomes = tuple(
            Outcome(
                name=str(row["Outcome"]),
                probability=float(row["proba"]),
                impacts={
                    inst: float(row[inst]) if pd.notna(row[inst]) else float("nan")
                    for inst in instruments
                },
            )
            for _, row in rows.iterrows()
        )
        categories.append(ScenarioCategory(name=str(name), outcomes=outcomes))
    return categories


def valuations_from_frame(
    frame: pd.DataFrame,
    instrument_column: str = "Instrument",
    state_column: str = "Rich_cheap",
) -> Dict[str, str]:
    """
    Values 表 → {標的: 估值標籤}

    標的名稱中的空白會被移除，與 Scenarios 表的欄位名稱一致。
    """
    for column in (instrument_column, state_column):
        if column not in frame.columns:
            raise ScenarioConfigError(f"valuation table is missing column '{column}'")

    labels = {}
    for instrument, state in zip(frame[instrument_column], frame[state_column]):
        if pd.isna(state):
            continue
        labels[_strip_spaces(instrument)] = str(state)
    return labels
