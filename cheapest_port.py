"""
Cheapest-Port strategy (backward planning).

Per grade:
  1. Simulate forward under current allocations -> find the next ROB breach past the last purchase
  2. Need window = (last purchase port, breach port]
  3. Buy at the lowest-priced port in the window (extend forward if the window has no price)
  4. Quantity = min(target fill - ROB, tank capacity - ROB); repeat until no breach remains

Then a cross-grade pass lets grades piggyback on ports where another grade already buys, when
buying early costs less than 80% of the delivery the grade would otherwise pay at its next solo port.
"""

import logging
from typing import Dict, List, Optional

from consolidate_deliveries import consolidate_deliveries
from delivery_cost import estimate_delivery_cost
from lube_models import Allocations, BaselineSummary, OptimizerInput, OptimizerOutput, empty_allocations
from plan_builder import build_output_with_alerts
from rob_engine import get_port_price, leg_consumption, tank_headroom

logger = logging.getLogger(__name__)

PIGGYBACK_SAVINGS_FACTOR = 0.8


def run_cheapest_port_strategy(inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
    allocations = empty_allocations(inp.grade_names)
    target_fill_pct = inp.reorder_config.target_fill_pct

    for grade_cfg in inp.oil_grades:
        tank = grade_cfg.tank_config
        _plan_grade(
            inp,
            grade_cfg.category,
            starting_rob=float(inp.current_rob.get(grade_cfg.category, 0.0)),
            min_rob=tank.min_rob,
            target_fill=tank.capacity * target_fill_pct,
            tank_capacity=tank.capacity,
            avg_daily=grade_cfg.avg_daily_consumption,
            allocation=allocations[grade_cfg.category],
        )

    _consolidate_across_grades(inp, allocations)
    consolidate_deliveries(inp, allocations)
    return build_output_with_alerts(inp, allocations, baseline)


def simulate_rob(
    inp: OptimizerInput,
    starting_rob: float,
    avg_daily: float,
    allocation: Dict[int, float],
) -> List[float]:
    """ROB on arrival at each port under the given single-grade allocation."""
    rob_at_port: List[float] = []
    rob = starting_rob
    for i, port in enumerate(inp.ports):
        rob_at_port.append(rob)
        rob += allocation.get(i, 0.0)
        rob -= leg_consumption(port, avg_daily, inp.buffer)
    return rob_at_port


def _find_breach(
    inp: OptimizerInput,
    rob_at_port: List[float],
    min_rob: float,
    avg_daily: float,
    allocation: Dict[int, float],
    after: int = -1,
) -> int:
    """
    First port past `after` whose arrival ROB falls below min; a purchase at a port counts toward
    the leg after it. Breaches up to `after` are out of reach of any later purchase.
    """
    for i in range(max(0, after), len(inp.ports) - 1):
        rob_at_next = rob_at_port[i] + allocation.get(i, 0.0) - leg_consumption(inp.ports[i], avg_daily, inp.buffer)
        if rob_at_next < min_rob:
            return i + 1
    return -1


def _plan_grade(
    inp: OptimizerInput,
    grade: str,
    starting_rob: float,
    min_rob: float,
    target_fill: float,
    tank_capacity: float,
    avg_daily: float,
    allocation: Dict[int, float],
) -> None:
    last_purchase = -1
    n = len(inp.ports)

    for _ in range(n):
        rob_at_port = simulate_rob(inp, starting_rob, avg_daily, allocation)
        breach = _find_breach(inp, rob_at_port, min_rob, avg_daily, allocation, last_purchase)
        if breach == -1:
            break

        best_idx = -1
        best_price = float("inf")
        for i in range(max(0, last_purchase + 1), min(breach, n - 1) + 1):
            price = get_port_price(inp.ports[i], grade)
            if price is not None and price < best_price:
                best_price = price
                best_idx = i

        if best_idx == -1:
            for i in range(breach + 1, n):
                if get_port_price(inp.ports[i], grade) is not None:
                    best_idx = i
                    break
            if best_idx == -1:
                break

        rob_here = rob_at_port[best_idx]
        qty = min(max(0.0, target_fill - rob_here), tank_capacity - rob_here)
        if qty <= 0:
            break

        allocation[best_idx] = qty
        last_purchase = best_idx
        logger.debug("cheapest-port %s: buy %.0f L at port %d (breach at %d)", grade, qty, best_idx, breach)


def _next_solo_purchase(inp: OptimizerInput, allocations: Allocations, grade: str, start: int) -> int:
    """Next port from start where only this grade buys (a delivery it pays for alone)."""
    for i in range(start, len(inp.ports)):
        if i not in allocations[grade]:
            continue
        if not any(g != grade and i in allocations[g] for g in inp.grade_names):
            return i
    return -1


def _consolidate_across_grades(inp: OptimizerInput, allocations: Allocations) -> None:
    purchase_ports = sorted({idx for g in inp.grade_names for idx in allocations[g]})
    target_fill_pct = inp.reorder_config.target_fill_pct

    for port_idx in purchase_ports:
        for grade_cfg in inp.oil_grades:
            grade = grade_cfg.category
            if port_idx in allocations[grade]:
                continue

            price = get_port_price(inp.ports[port_idx], grade)
            if price is None:
                continue

            future_idx = _next_solo_purchase(inp, allocations, grade, port_idx + 1)
            if future_idx == -1:
                continue

            future_port = inp.ports[future_idx]
            future_price = get_port_price(future_port, grade) or 0.0
            future_qty = allocations[grade].get(future_idx, 0.0)
            avoided_delivery = estimate_delivery_cost(future_port.delivery_config, future_qty, future_port.delivery_charge)

            tank = grade_cfg.tank_config
            rob_here = simulate_rob(
                inp, float(inp.current_rob.get(grade, 0.0)), grade_cfg.avg_daily_consumption, allocations[grade]
            )[port_idx]
            qty = min(max(0.0, tank.capacity * target_fill_pct - rob_here), tank.capacity - rob_here)
            # the lot rides in the tank until future_idx, past any shared purchase in between;
            # beyond that only what the reduced solo purchase does not absorb
            qty = min(
                qty,
                tank_headroom(inp, grade_cfg, allocations[grade], port_idx, future_idx),
                future_qty + tank_headroom(inp, grade_cfg, allocations[grade], future_idx),
            )
            if qty <= 0:
                continue

            extra_oil_cost = qty * (price - future_price)
            if extra_oil_cost < avoided_delivery * PIGGYBACK_SAVINGS_FACTOR:
                allocations[grade][port_idx] = qty
                remaining = max(0.0, future_qty - qty)
                if remaining <= 0:
                    allocations[grade].pop(future_idx, None)
                else:
                    allocations[grade][future_idx] = remaining
                logger.debug("cheapest-port %s: piggyback %.0f L at port %d, future port %d", grade, qty, port_idx, future_idx)
