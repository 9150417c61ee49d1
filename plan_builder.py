"""
Shared output builder for all strategies.

Converts sparse allocation tables (grade -> port index -> liters) into a full OptimizerOutput:
  - minimum order enforcement (round up only when the tank has room for the rest of the voyage)
  - action labels inferred after the fact (URGENT / ORDER / ALERT / SKIP)
  - ROB re-simulated port by port, one delivery charge per purchasing port
"""

import logging
from typing import Dict, List, Optional

from lube_models import (
    ALERT,
    ORDER,
    SKIP,
    URGENT,
    Allocations,
    BaselineSummary,
    GradeAction,
    OptimizerInput,
    OptimizerOutput,
    PortPlan,
    clone_allocations,
)
from rob_engine import (
    assemble_output,
    compute_baseline,
    get_port_price,
    leg_consumption,
    new_port_plan,
    port_delivery,
    tank_headroom,
)

logger = logging.getLogger(__name__)

# Pre-purchase ROB below this multiple of min ROB labels a purchase URGENT
URGENT_LABEL_MULTIPLIER = 1.2
NEGATIVE_ROB_PENALTY = 5


def apply_min_orders(inp: OptimizerInput, allocations: Allocations) -> Allocations:
    """
    Copy of the allocations with sub-minimum lots rounded up to the grade's minimum order.

    A lot is rounded only when the extra liters fit the tank at that port and at every later
    port (later purchases of the grade included); otherwise it keeps its raw quantity.
    """
    rounded = clone_allocations(allocations)
    for grade_cfg in inp.oil_grades:
        min_qty = inp.min_order_qty.for_grade(grade_cfg.category)
        table = rounded.setdefault(grade_cfg.category, {})
        for idx in sorted(table):
            qty = table[idx]
            if 0 < qty < min_qty and tank_headroom(inp, grade_cfg, table, idx) >= min_qty - qty:
                table[idx] = min_qty
    return rounded


def build_output_with_alerts(
    inp: OptimizerInput,
    allocations: Allocations,
    baseline: Optional[BaselineSummary] = None,
) -> OptimizerOutput:
    buffer = inp.buffer
    grades = inp.grade_names
    allocations = apply_min_orders(inp, allocations)

    rob = {g: float(inp.current_rob.get(g, 0.0)) for g in grades}
    total_cost = {g: 0.0 for g in grades}
    total_delivery = 0.0
    purchase_events = 0
    port_plans: List[PortPlan] = []

    for i, port in enumerate(inp.ports):
        plan = new_port_plan(port)

        for grade_cfg in inp.oil_grades:
            grade = grade_cfg.category
            tank = grade_cfg.tank_config
            price = get_port_price(port, grade)
            rob_on_arrival = rob[grade]
            consumption = leg_consumption(port, grade_cfg.avg_daily_consumption, buffer)

            qty = float(allocations[grade].get(i, 0.0))
            cost = qty * (price or 0.0)
            rob_on_departure = rob_on_arrival + qty
            rob_at_next = rob_on_departure - consumption
            rob[grade] = rob_at_next
            total_cost[grade] += cost

            if qty > 0:
                action = URGENT if rob_on_arrival < tank.min_rob * URGENT_LABEL_MULTIPLIER else ORDER
            elif price is None and (rob_at_next < tank.min_rob or rob_on_arrival < tank.min_rob):
                action = ALERT
                logger.debug("ALERT %s at %s: ROB below minimum with no price", grade, port.port_name)
            else:
                action = SKIP

            plan.actions[grade] = GradeAction(
                action=action,
                quantity=qty,
                cost=cost,
                price_per_liter=price or 0.0,
                rob_on_arrival=rob_on_arrival,
                rob_on_departure=rob_on_departure,
                rob_at_next_port=rob_at_next,
            )

        liters = plan.liters_purchased
        if liters > 0:
            breakdown = port_delivery(port, liters)
            plan.delivery_charge = breakdown.total
            plan.delivery_breakdown = breakdown
            total_delivery += breakdown.total
            purchase_events += 1

        port_plans.append(plan)

    if baseline is None:
        baseline = compute_baseline(inp)

    return assemble_output(inp, port_plans, total_cost, total_delivery, purchase_events, baseline)


def validate_plan_safety(output: OptimizerOutput, inp: OptimizerInput) -> Dict[str, object]:
    """
    Count ROB breaches: one per port/grade where ROB at the next port falls below min ROB
    (final port and zero-travel legs excluded), plus 5 for any negative ROB.

    Returns:
        {"safe": bool, "rob_breaches": int}
    """
    breaches = 0
    last = len(output.ports) - 1

    for i, port_plan in enumerate(output.ports):
        for grade_cfg in inp.oil_grades:
            action = port_plan.actions.get(grade_cfg.category)
            if action is None:
                continue
            if action.rob_at_next_port < grade_cfg.tank_config.min_rob and port_plan.sea_days_to_next > 0 and i < last:
                breaches += 1
            if action.rob_at_next_port < 0:
                breaches += NEGATIVE_ROB_PENALTY

    return {"safe": breaches == 0, "rob_breaches": breaches}
