"""
情境路徑建構

把多個獨立的情境類別組合成所有可能的聯合路徑（笛卡兒積），
路徑機率為各 outcome 機率的乘積。

路徑數 = 各類別 outcome 數的乘積，會隨類別數指數成長，
因此在列舉之前先檢查上限，超過時直接報錯而不是截斷。
"""
from __future__ import annotations

from functools import reduce
from typing import Sequence, Tuple

import numpy as np

from ..config import ScenarioTreeConfig
from ..errors import ScenarioConfigError
from ..utils.log import get_logger
from .models import ScenarioCategory, ScenarioPathSet

logger = get_logger("scenlab.paths")


def validate_categories(
    categories: Sequence[ScenarioCategory],
    tolerance: float = 1e-6,
) -> None:
    """
    檢查情境類別設定

    Raises:
        ScenarioConfigError: 沒有類別、類別沒有 outcome、名稱重複、
            機率為負，或同一類別機率總和不為 1
    """
    if len(categories) == 0:
        raise ScenarioConfigError("at least one scenario category is required.")

    seen_categories = set()
    for category in categories:
        if category.name in seen_categories:
            raise ScenarioConfigError(f"duplicate scenario category '{category.name}'.")
        seen_categories.add(category.name)

        if len(category.outcomes) == 0:
            raise ScenarioConfigError(f"scenario category '{category.name}' has no outcomes.")

        names = category.outcome_names
        if len(set(names)) != len(names):
            raise ScenarioConfigError(
                f"scenario category '{category.name}' has duplicate outcome names."
            )

        probabilities = category.probabilities
        if np.any(~np.isfinite(probabilities)) or np.any(probabilities < 0):
            raise ScenarioConfigError(
                f"scenario category '{category.name}' has negative or missing probabilities."
            )

        total = probabilities.sum()
        if abs(total - 1.0) > tolerance:
            raise ScenarioConfigError(
                f"outcome probabilities of '{category.name}' sum to {total:.8f}, expected 1."
            )


def count_paths(categories: Sequence[ScenarioCategory]) -> int:
    """路徑總數（各類別 outcome 數的乘積）"""
    return reduce(lambda acc, c: acc * len(c.outcomes), categories, 1)


def _cross(
    state: Tuple[np.ndarray, np.ndarray],
    category: ScenarioCategory,
) -> Tuple[np.ndarray, np.ndarray]:
    """把目前的路徑集合與下一個類別做交叉，回傳新的 (索引矩陣, 機率)"""
    index, proba = state
    n_paths = len(proba)
    n_outcomes = len(category.outcomes)

    new_index = np.hstack([
        np.repeat(index, n_outcomes, axis=0),
        np.tile(np.arange(n_outcomes), n_paths)[:, None],
    ])
    new_proba = np.repeat(proba, n_outcomes) * np.tile(category.probabilities, n_paths)
    return new_index, new_proba


def build_scenario_paths(
    categories: Sequence[ScenarioCategory],
    config: ScenarioTreeConfig | None = None,
) -> ScenarioPathSet:
    """
    建構所有情境路徑

    從第一個類別的 outcome 開始，逐一與後續類別做交叉，
    每一步都產生新的陣列（不修改前一步的結果）。

    Args:
        categories: 依序排列的情境類別
        config: 情境樹配置（路徑上限、機率容許誤差）

    Returns:
        ScenarioPathSet（唯讀）

    Raises:
        ScenarioConfigError: 類別設定不合法或路徑數超過上限
    """
    config = config or ScenarioTreeConfig()
    categories = tuple(categories)
    validate_categories(categories, config.probability_tolerance)

    n_paths = count_paths(categories)
    if n_paths > config.max_paths:
        raise ScenarioConfigError(
            f"scenario tree has {n_paths:,} paths, exceeding max_paths={config.max_paths:,}."
        )

    first = categories[0]
    initial = (
        np.arange(len(first.outcomes))[:, None],
        first.probabilities,
    )
    index, proba = reduce(_cross, categories[1:], initial)

    index.setflags(write=False)
    proba.setflags(write=False)

    logger.info(
        f"Built {len(proba):,} scenario paths from {len(categories)} categories "
        f"(total probability {proba.sum():.6f})"
    )
    return ScenarioPathSet(
        categories=categories,
        outcome_index=index,
        probabilities=proba,
    )
