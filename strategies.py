"""
Strategy variants behind one interface.

Every strategy maps an OptimizerInput (plus the shared, read-only baseline) to an OptimizerOutput.
Instances are small and picklable so the orchestrator can ship them to worker processes.
"""

from dataclasses import replace
from typing import Dict, Optional

from cheapest_port import run_cheapest_port_strategy
from consolidate_deliveries import consolidate_deliveries, extract_allocations
from consolidated_strategy import run_consolidated_strategy
from lube_models import (
    CHEAPEST_PORT,
    CONSOLIDATED,
    DELIVERY_AWARE,
    GRID,
    BaselineSummary,
    OptimizerInput,
    OptimizerOutput,
)
from plan_builder import build_output_with_alerts
from rob_engine import run_optimizer


def run_delivery_aware_strategy(inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
    """Standard optimizer run, then delivery consolidation, then rebuild with ALERT detection."""
    base = run_optimizer(inp, baseline)
    allocations = extract_allocations(base, inp)
    consolidate_deliveries(inp, allocations)
    return build_output_with_alerts(inp, allocations, baseline or _baseline_of(base))


def _baseline_of(output: OptimizerOutput) -> BaselineSummary:
    cost = {g: v for g, v in output.baseline_cost.items() if g != "total"}
    return BaselineSummary(
        cost=cost,
        delivery_charges=output.baseline_delivery_charges,
        purchase_events=output.baseline_purchase_events,
    )


class Strategy:
    name = ""
    label = ""

    @property
    def params(self) -> Optional[Dict[str, float]]:
        return None

    def prepare(self, inp: OptimizerInput) -> OptimizerInput:
        """Input this strategy actually plans against (grid variants override reorder settings)."""
        return inp

    def run(self, inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
        raise NotImplementedError


class GridStrategy(Strategy):
    """One grid-search combination: engine run, delivery consolidation, rebuild."""

    name = GRID

    def __init__(self, target_fill_pct: float, opportunity_discount_pct: float, rob_trigger_multiplier: float, window_size: int):
        self.target_fill_pct = target_fill_pct
        self.opportunity_discount_pct = opportunity_discount_pct
        self.rob_trigger_multiplier = rob_trigger_multiplier
        self.window_size = window_size

    @property
    def label(self) -> str:
        return (
            f"Grid: Fill {round(self.target_fill_pct * 100)}%, Disc {self.opportunity_discount_pct:g}%, "
            f"ROB {self.rob_trigger_multiplier:g}x, Win {self.window_size}"
        )

    @property
    def params(self) -> Dict[str, float]:
        return {
            "target_fill_pct": self.target_fill_pct,
            "opportunity_discount_pct": self.opportunity_discount_pct,
            "rob_trigger_multiplier": self.rob_trigger_multiplier,
            "window_size": self.window_size,
        }

    def prepare(self, inp: OptimizerInput) -> OptimizerInput:
        return replace(
            inp,
            window_size=self.window_size,
            reorder_config=replace(
                inp.reorder_config,
                target_fill_pct=self.target_fill_pct,
                opportunity_discount_pct=self.opportunity_discount_pct,
                rob_trigger_multiplier=self.rob_trigger_multiplier,
            ),
        )

    def run(self, inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
        variant = self.prepare(inp)
        return run_delivery_aware_strategy(variant, baseline)


class CheapestPortStrategy(Strategy):
    name = CHEAPEST_PORT
    label = "Cheapest Port"

    def run(self, inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
        return run_cheapest_port_strategy(inp, baseline)


class DeliveryAwareStrategy(Strategy):
    name = DELIVERY_AWARE
    label = "Delivery-Aware"

    def run(self, inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
        return run_delivery_aware_strategy(inp, baseline)


class ConsolidatedStrategy(Strategy):
    name = CONSOLIDATED
    label = "Consolidated"

    def run(self, inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
        return run_consolidated_strategy(inp, baseline)


SINGLE_RUN_STRATEGIES = {
    CHEAPEST_PORT: CheapestPortStrategy,
    DELIVERY_AWARE: DeliveryAwareStrategy,
    CONSOLIDATED: ConsolidatedStrategy,
}
