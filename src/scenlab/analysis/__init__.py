"""
情境分析模組

提供情境樹列舉、標的 impact 分布、估值調整、支配過濾與隨機組合排名。

使用範例:
    from scenlab.analysis import (
        categories_from_frame,
        valuations_from_frame,
        run_scenario_analysis,
    )

    result = run_scenario_analysis(
        categories_from_frame(scenarios_df),
        valuations_from_frame(values_df),
    )
"""
from __future__ import annotations

from .models import (
    Outcome,
    ScenarioCategory,
    ScenarioPath,
    ScenarioPathSet,
    ValuationState,
)
from .paths import (
    build_scenario_paths,
    count_paths,
    validate_categories,
)
from .impact import (
    ImpactLinkResult,
    instrument_path_impacts,
    link_instrument_impacts,
)
from .distribution import (
    adjust_for_valuation,
    align_distributions,
    bin_impacts,
    build_impact_distributions,
    cumulative_distributions,
    round_to_granularity,
    summarize_distributions,
)
from .dominance import (
    DominanceResult,
    filter_dominated,
    find_dominator,
)
from .portfolio import (
    PortfolioSampleResult,
    PortfolioSampler,
    sample_portfolios,
)
from .valuation import (
    ValuationSnapshot,
    classify_price_history,
    classify_valuation,
    valuation_states,
)
from .loaders import (
    categories_from_frame,
    valuations_from_frame,
)
from .pipeline import (
    AnalysisResult,
    ScenarioAnalyzer,
    run_scenario_analysis,
)

__all__ = [
    # Models
    "Outcome",
    "ScenarioCategory",
    "ScenarioPath",
    "ScenarioPathSet",
    "ValuationState",
    # Paths
    "build_scenario_paths",
    "count_paths",
    "validate_categories",
    # Impacts
    "ImpactLinkResult",
    "instrument_path_impacts",
    "link_instrument_impacts",
    # Distributions
    "adjust_for_valuation",
    "align_distributions",
    "bin_impacts",
    "build_impact_distributions",
    "cumulative_distributions",
    "round_to_granularity",
    "summarize_distributions",
    # Dominance
    "DominanceResult",
    "filter_dominated",
    "find_dominator",
    # Portfolios
    "PortfolioSampleResult",
    "PortfolioSampler",
    "sample_portfolios",
    # Valuation
    "ValuationSnapshot",
    "classify_price_history",
    "classify_valuation",
    "valuation_states",
    # Loaders
    "categories_from_frame",
    "valuations_from_frame",
    # Pipeline
    "AnalysisResult",
    "ScenarioAnalyzer",
    "run_scenario_analysis",
]
