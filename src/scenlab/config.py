from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import os
import yaml
from dotenv import load_dotenv

from .errors import ScenarioConfigError


class PortfolioUniverse(str, Enum):
    """組合抽樣的標的範圍"""
    ALL = "all"  # 所有成功連結的標的（原始流程的行為）
    NON_DOMINATED = "non_dominated"  # 只用未被支配的標的


@dataclass(frozen=True)
class ScenarioTreeConfig:
    """
    情境樹配置

    max_paths: 路徑數上限，超過直接報錯（不截斷）
        - 路徑數 = 各情境類別 outcome 數的乘積，隨類別數指數成長
    probability_tolerance: 同一類別內 outcome 機率總和與 1 的容許誤差
    """
    max_paths: int = 1_000_000
    probability_tolerance: float = 1e-6


@dataclass(frozen=True)
class DistributionConfig:
    """
    Impact 分布配置

    granularity: 分箱粒度（0.5 = 四捨五入到最近的 0.5）
    valuation_factor: rich / cheap 調整係數 F
        - rich: 正向 impact / F，負向 impact × F
        - cheap: 正向 impact × F，負向 impact / F
    cumulative_decimals: 累積機率的四捨五入位數
        - 避免浮點誤差影響支配比較
        - None = 不四捨五入
    """
    granularity: float = 0.5
    valuation_factor: float = 1.3
    cumulative_decimals: int | None = 4


@dataclass(frozen=True)
class PortfolioSearchConfig:
    """
    隨機組合搜尋配置

    n_draws: 抽樣組合數量
    portfolio_size: 每個組合的標的數 k
    weight_decimals: 權重四捨五入位數
    renormalize_weights: 四捨五入後是否重新歸一化
        - False（預設）：保留原始流程的權重總和微小偏差
        - True：把殘差加到最大權重上，總和精確為 1
    top_n: 排名前幾名的組合
    universe: 抽樣範圍 ("all" / "non_dominated")
    random_seed: 隨機種子（None 表示不固定）
    """
    n_draws: int = 10_000
    portfolio_size: int = 5
    weight_decimals: int = 3
    renormalize_weights: bool = False
    top_n: int = 20
    universe: PortfolioUniverse = PortfolioUniverse.ALL
    random_seed: int | None = 42


@dataclass(frozen=True)
class AnalysisConfig:
    """
    單次情境分析的完整配置

    parallel: 是否以 thread pool 並行處理各標的（連結與支配過濾）
    max_workers: 最大並行工作數
    """
    scenarios: ScenarioTreeConfig = ScenarioTreeConfig()
    distribution: DistributionConfig = DistributionConfig()
    portfolio: PortfolioSearchConfig = PortfolioSearchConfig()
    parallel: bool = False
    max_workers: int = 4

    def validate(self) -> "AnalysisConfig":
        """檢查參數範圍，不合法時拋出 ScenarioConfigError"""
        sc = self.scenarios
        if sc.max_paths <= 0:
            raise ScenarioConfigError("scenarios.max_paths must be > 0.")
        if sc.probability_tolerance < 0:
            raise ScenarioConfigError("scenarios.probability_tolerance must be >= 0.")

        dist = self.distribution
        if dist.granularity <= 0:
            raise ScenarioConfigError("distribution.granularity must be > 0.")
        if dist.valuation_factor <= 0:
            raise ScenarioConfigError("distribution.valuation_factor must be > 0.")
        if dist.cumulative_decimals is not None and dist.cumulative_decimals < 0:
            raise ScenarioConfigError("distribution.cumulative_decimals must be >= 0.")

        pf = self.portfolio
        if pf.n_draws <= 0:
            raise ScenarioConfigError("portfolio.n_draws must be > 0.")
        if pf.portfolio_size <= 0:
            raise ScenarioConfigError("portfolio.portfolio_size must be > 0.")
        if pf.weight_decimals < 1:
            raise ScenarioConfigError("portfolio.weight_decimals must be >= 1.")
        if pf.top_n <= 0:
            raise ScenarioConfigError("portfolio.top_n must be > 0.")

        if self.max_workers <= 0:
            raise ScenarioConfigError("max_workers must be > 0.")
        return self


def _resolve_env_var(value):
    """
    解析環境變數語法 ${VAR_NAME}

    例如：${SCENLAB_SEED} → 實際值（字串）
    """
    if not value or not isinstance(value, str):
        return value
    if value.startswith("${") and value.endswith("}"):
        env_name = value[2:-1]
        return os.getenv(env_name)
    return value


def _section(raw: dict, key: str) -> dict:
    section = raw.get(key) or {}
    if not isinstance(section, dict):
        raise ScenarioConfigError(f"config section '{key}' must be a mapping.")
    return {k: _resolve_env_var(v) for k, v in section.items()}


def _optional_int(value) -> int | None:
    return None if value is None else int(value)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def load_config(path: str = "config/analysis.yaml") -> AnalysisConfig:
    """
    從 YAML 載入分析配置

    所有 section 都是可選的，缺少時使用預設值。
    """
    load_dotenv()
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    # scenarios 可選
    sc_raw = _section(raw, "scenarios")
    scenarios = ScenarioTreeConfig(
        max_paths=int(sc_raw.get("max_paths", 1_000_000)),
        probability_tolerance=float(sc_raw.get("probability_tolerance", 1e-6)),
    )

    # distribution 可選
    dist_raw = _section(raw, "distribution")
    distribution = DistributionConfig(
        granularity=float(dist_raw.get("granularity", 0.5)),
        valuation_factor=float(dist_raw.get("valuation_factor", 1.3)),
        cumulative_decimals=_optional_int(dist_raw.get("cumulative_decimals", 4)),
    )

    # portfolio 可選
    pf_raw = _section(raw, "portfolio")
    try:
        universe = PortfolioUniverse(pf_raw.get("universe", "all"))
    except ValueError as e:
        raise ScenarioConfigError(f"portfolio.universe: {e}") from e
    portfolio = PortfolioSearchConfig(
        n_draws=int(pf_raw.get("n_draws", 10_000)),
        portfolio_size=int(pf_raw.get("portfolio_size", 5)),
        weight_decimals=int(pf_raw.get("weight_decimals", 3)),
        renormalize_weights=_as_bool(pf_raw.get("renormalize_weights", False)),
        top_n=int(pf_raw.get("top_n", 20)),
        universe=universe,
        random_seed=_optional_int(pf_raw.get("random_seed", 42)),
    )

    execution_raw = _section(raw, "execution")
    config = AnalysisConfig(
        scenarios=scenarios,
        distribution=distribution,
        portfolio=portfolio,
        parallel=_as_bool(execution_raw.get("parallel", False)),
        max_workers=int(execution_raw.get("max_workers", 4)),
    )
    return config.validate()
