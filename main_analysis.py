"""
Main Analysis Script
- Builds an optimizer input from a voyage schedule + supplier price table (or the sample voyage)
- Runs every lube-oil strategy through the smart optimizer
- Saves the ranked plans and the best plan's port-by-port actions
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from lube_models import GRADE_LABELS, OptimizerOutput, SmartOptimizerConfig, SmartOptimizerResult
from sample_voyage import (
    SAMPLE_AVG_DAILY_CONSUMPTION,
    SAMPLE_CURRENT_ROB,
    SAMPLE_VESSEL,
    get_prices_df,
    get_schedule_df,
)
from smart_optimizer import run_smart_optimizer
from voyage_input import build_optimizer_input


def ranked_plans_df(result: SmartOptimizerResult) -> pd.DataFrame:
    """One row per ranked plan, best first."""
    rows: List[Dict[str, Any]] = []
    for plan in result.plans:
        rows.append({
            "rank": plan.rank,
            "strategy": plan.strategy,
            "strategy_label": plan.strategy_label,
            "all_in_cost": round(plan.all_in_cost, 2),
            "oil_cost": round(plan.output.total_cost["total"], 2),
            "delivery_charges": round(plan.output.total_delivery_charges, 2),
            "purchase_events": plan.output.purchase_events,
            "baseline_all_in_cost": round(plan.baseline_all_in_cost, 2),
            "savings": round(plan.savings, 2),
            "savings_pct": round(plan.savings_pct, 2),
            "safe": plan.safe,
            "rob_breaches": plan.rob_breaches,
        })
    return pd.DataFrame(rows)


def port_plan_df(output: OptimizerOutput) -> pd.DataFrame:
    """Flatten a plan to one row per port x grade."""
    rows: List[Dict[str, Any]] = []
    for seq, port in enumerate(output.ports, start=1):
        for grade, action in port.actions.items():
            rows.append({
                "seq": seq,
                "port_name": port.port_name,
                "port_code": port.port_code,
                "arrival_date": port.arrival_date,
                "sea_days_to_next": port.sea_days_to_next,
                "grade": GRADE_LABELS.get(grade, grade),
                "action": action.action,
                "quantity": round(action.quantity, 1),
                "price_per_liter": action.price_per_liter,
                "cost": round(action.cost, 2),
                "rob_on_arrival": round(action.rob_on_arrival, 1),
                "rob_on_departure": round(action.rob_on_departure, 1),
                "rob_at_next_port": round(action.rob_at_next_port, 1),
                "port_delivery_charge": round(port.delivery_charge, 2),
            })
    return pd.DataFrame(rows)


def main(
    schedule_path: Optional[str] = None,
    prices_path: Optional[str] = None,
    output_dir: str = ".",
    config: Optional[SmartOptimizerConfig] = None,
) -> Tuple[pd.DataFrame, Optional[pd.DataFrame]]:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    print("Lube-Oil Replenishment Planner")
    print("Smart Optimizer - Main Analysis\n")

    # Load inputs
    schedule = pd.read_csv(schedule_path) if schedule_path else get_schedule_df()
    prices = pd.read_csv(prices_path) if prices_path else get_prices_df()
    print(f"✓ Loaded {len(schedule)} port calls")
    print(f"✓ Loaded {len(prices)} price rows\n")

    inp = build_optimizer_input(
        SAMPLE_VESSEL,
        schedule,
        prices,
        SAMPLE_CURRENT_ROB,
        SAMPLE_AVG_DAILY_CONSUMPTION,
    )

    # 1) Rank strategies
    print(f"Running smart optimizer for {inp.vessel.vessel_name}...")
    result = run_smart_optimizer(inp, config)

    plans_df = ranked_plans_df(result)
    plans_df.to_csv(f"{output_dir}/ranked_plans.csv", index=False)
    print("✓ Saved: ranked_plans.csv")
    print(f"  Combinations evaluated: {result.combinations_evaluated} in {result.elapsed_ms} ms")
    print(f"  Baseline all-in cost: {result.baseline['cost']:.2f}\n")

    if not result.plans:
        print("✗ No plans produced.")
        return plans_df, None

    # 2) Best plan detail
    best = result.plans[0]
    ports_df = port_plan_df(best.output)
    ports_df.to_csv(f"{output_dir}/best_plan_ports.csv", index=False)
    print("✓ Saved: best_plan_ports.csv")
    print(f"BEST PLAN: {best.strategy_label}")
    print(f"ALL-IN COST: {best.all_in_cost:.2f} (savings {best.savings:.2f}, {best.savings_pct:.1f}%)")
    if not best.safe:
        print(f"✗ Best plan still has {best.rob_breaches} ROB breaches")

    return plans_df, ports_df


if __name__ == "__main__":
    main()
