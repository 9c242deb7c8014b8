"""
Scenario Analysis Script

Usage:
    python scripts/run_scenario_analysis.py --scenarios data/scenarios.csv
    python scripts/run_scenario_analysis.py --scenarios data/scenarios.csv --values data/values.csv
    python scripts/run_scenario_analysis.py --scenarios data/scenarios.csv --prices data/prices.csv -o reports/scenarios
"""
import argparse
import sys
from pathlib import Path

import pandas as pd

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))

from scenlab.config import AnalysisConfig, load_config
from scenlab.analysis import (
    categories_from_frame,
    classify_price_history,
    run_scenario_analysis,
    valuation_states,
    valuations_from_frame,
)


def _load_valuations(args) -> dict:
    """--values 優先；否則由 --prices 的歷史價格判斷估值"""
    if args.values:
        return valuations_from_frame(pd.read_csv(args.values))
    if args.prices:
        prices = pd.read_csv(args.prices, index_col=0, parse_dates=True)
        return valuation_states(classify_price_history(prices, band_std=args.band_std))
    return {}


def main():
    parser = argparse.ArgumentParser(description="Run Scenario Analysis")
    parser.add_argument("--scenarios", type=str, required=True,
                        help="Scenarios CSV (ScenarioType, Outcome, proba, <instruments>...)")
    parser.add_argument("--values", type=str, help="Valuation CSV (Instrument, Rich_cheap)")
    parser.add_argument("--prices", type=str, help="Price history CSV (date index, one column per instrument)")
    parser.add_argument("--band-std", type=float, default=1.0, help="Valuation band width in std (default: 1.0)")
    parser.add_argument("-c", "--config", type=str, default="config/analysis.yaml", help="Path to config file")
    parser.add_argument("--seed", type=int, help="Random seed (overrides config)")
    parser.add_argument("-o", "--output", type=str, default="reports/scenarios", help="Output directory")

    args = parser.parse_args()

    scenarios_path = Path(args.scenarios)
    if not scenarios_path.exists():
        print(f"Error: Scenarios file not found at {scenarios_path}")
        sys.exit(1)

    cfg_path = Path(args.config)
    cfg = load_config(str(cfg_path)) if cfg_path.exists() else AnalysisConfig()

    categories = categories_from_frame(pd.read_csv(scenarios_path))
    valuations = _load_valuations(args)

    print("=== Scenario Analysis ===")
    print(f"Categories: {', '.join(c.name for c in categories)}")
    print(f"Valuations: {len(valuations)} instruments")

    result = run_scenario_analysis(categories, valuations, config=cfg, seed=args.seed)

    if result.skipped:
        print(f"\nSkipped {len(result.skipped)} instruments:")
        for name, reason in result.skipped.items():
            print(f"  - {name}: {reason}")

    print(f"\nNon-dominated ({len(result.dominance.survivors)}): {', '.join(result.dominance.survivors)}")
    print("\nDistribution summary:")
    print(result.summary.round(3).to_string())

    top_n = cfg.portfolio.top_n
    print(f"\nTop {top_n} portfolios:")
    print(result.portfolios.top(top_n).round(4).to_string())

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    result.paths.to_frame().to_csv(output_dir / "paths.csv", index=False)
    result.impacts.to_long().to_csv(output_dir / "impacts.csv", index=False)
    result.aligned.to_csv(output_dir / "pmf.csv")
    result.cumulative.to_csv(output_dir / "cumulative.csv")
    result.non_dominated_cumulative.to_csv(output_dir / "cumulative_non_dominated.csv")
    result.summary.to_csv(output_dir / "summary.csv")
    result.portfolios.weights.join(result.portfolios.metrics).to_csv(output_dir / "portfolios.csv")
    result.portfolios.composition(top_n).to_csv(output_dir / "top_composition.csv")
    print(f"\nResults saved to {output_dir}")


if __name__ == "__main__":
    main()
