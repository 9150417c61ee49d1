"""
Smart multi-strategy optimizer.

Runs, depending on configuration:
  1. Grid search: parametric sweep over the standard optimizer (+ delivery consolidation)
  2. Cheapest-Port: backward planning
  3. Delivery-Aware: standard optimizer + delivery consolidation
  4. Consolidated: minimize delivery events

Every plan is scored against one shared baseline and ranked:
  - safe plans first, by all-in cost (oil + delivery) ascending
  - unsafe plans after, by fewest ROB breaches, then cost
Duplicates (same cost, events, delivery charges, safety) are collapsed before the top N are returned.
"""

import logging
import math
import os
import time
from concurrent.futures import ProcessPoolExecutor
from itertools import product
from typing import List, Optional, Tuple

from lube_models import (
    GRID,
    BaselineSummary,
    GridConfig,
    OptimizerInput,
    RankedPlan,
    SmartOptimizerConfig,
    SmartOptimizerResult,
)
from plan_builder import validate_plan_safety
from rob_engine import compute_baseline
from strategies import SINGLE_RUN_STRATEGIES, GridStrategy, Strategy

logger = logging.getLogger(__name__)


def grid_strategies(grid: GridConfig) -> List[GridStrategy]:
    return [
        GridStrategy(fill, disc, trigger, window)
        for fill, disc, trigger, window in product(
            grid.target_fill_pcts,
            grid.opportunity_discount_pcts,
            grid.rob_trigger_multipliers,
            grid.window_sizes,
        )
    ]


def build_strategies(config: SmartOptimizerConfig) -> List[Strategy]:
    units: List[Strategy] = []
    if GRID in config.strategies:
        units.extend(grid_strategies(config.grid))
    for name, cls in SINGLE_RUN_STRATEGIES.items():
        if name in config.strategies:
            units.append(cls())
    return units


def evaluate_strategy(
    strategy: Strategy,
    inp: OptimizerInput,
    baseline: BaselineSummary,
) -> RankedPlan:
    """Run one strategy against the shared baseline and wrap it as an (unranked) plan."""
    output = strategy.run(inp, baseline)
    verdict = validate_plan_safety(output, strategy.prepare(inp))

    all_in = output.all_in_cost
    baseline_all_in = baseline.all_in_cost
    savings = baseline_all_in - all_in
    logger.debug("%s: all-in %.2f, safe=%s", strategy.label, all_in, verdict["safe"])

    return RankedPlan(
        rank=0,
        strategy=strategy.name,
        strategy_label=strategy.label,
        params=strategy.params,
        output=output,
        all_in_cost=all_in,
        baseline_all_in_cost=baseline_all_in,
        savings=savings,
        savings_pct=(savings / baseline_all_in) * 100.0 if baseline_all_in > 0 else 0.0,
        safe=bool(verdict["safe"]),
        rob_breaches=int(verdict["rob_breaches"]),
    )


def _evaluate_packed(args: Tuple[Strategy, OptimizerInput, BaselineSummary]) -> RankedPlan:
    return evaluate_strategy(*args)


def rank_key(plan: RankedPlan) -> Tuple[int, int, float]:
    if plan.safe:
        return (0, 0, plan.all_in_cost)
    return (1, plan.rob_breaches, plan.all_in_cost)


def _cents(value: float) -> int:
    return int(math.floor(value * 100 + 0.5))


def plan_fingerprint(plan: RankedPlan) -> Tuple[int, int, int, bool]:
    return (
        _cents(plan.all_in_cost),
        plan.output.purchase_events,
        _cents(plan.output.total_delivery_charges),
        plan.safe,
    )


def deduplicate_plans(plans: List[RankedPlan]) -> List[RankedPlan]:
    seen = set()
    result: List[RankedPlan] = []
    for plan in plans:
        fp = plan_fingerprint(plan)
        if fp in seen:
            continue
        seen.add(fp)
        result.append(plan)
    return result


def _resolve_workers(max_workers: Optional[int], units: int) -> int:
    workers = max_workers if max_workers is not None else (os.cpu_count() or 1)
    return max(1, min(workers, units))


def run_smart_optimizer(inp: OptimizerInput, config: Optional[SmartOptimizerConfig] = None) -> SmartOptimizerResult:
    """
    Args:
        inp: validated optimizer input
        config: strategies to run, top N, grid axes, worker count (None -> CPU count)
    """
    start = time.perf_counter()
    cfg = config or SmartOptimizerConfig()

    baseline = compute_baseline(inp)
    units = build_strategies(cfg)
    workers = _resolve_workers(cfg.max_workers, len(units))

    logger.info("smart optimizer: %d strategy runs on %d worker(s)", len(units), workers)

    jobs = [(unit, inp, baseline) for unit in units]
    if workers == 1:
        plans = [_evaluate_packed(job) for job in jobs]
    else:
        chunksize = max(1, len(jobs) // (workers * 4))
        with ProcessPoolExecutor(max_workers=workers) as executor:
            plans = list(executor.map(_evaluate_packed, jobs, chunksize=chunksize))

    plans.sort(key=rank_key)
    top = deduplicate_plans(plans)[: cfg.top_n]
    for rank, plan in enumerate(top, start=1):
        plan.rank = rank

    elapsed_ms = int(round((time.perf_counter() - start) * 1000))
    if top and not top[0].safe:
        logger.warning("smart optimizer: no safe plan found (best has %d ROB breaches)", top[0].rob_breaches)
    logger.info("smart optimizer: %d plans evaluated, %d returned in %d ms", len(plans), len(top), elapsed_ms)

    return SmartOptimizerResult(
        plans=top,
        baseline={
            "cost": baseline.all_in_cost,
            "oil_cost": baseline.oil_cost,
            "delivery_charges": baseline.delivery_charges,
            "purchase_events": baseline.purchase_events,
        },
        combinations_evaluated=len(units),
        elapsed_ms=elapsed_ms,
    )
