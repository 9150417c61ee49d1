"""
Consolidated strategy: minimize delivery events.

  1. Score every priced port across all grades:
       score = sum_grades((route avg - port price) x estimated qty) - estimated delivery charge
     with estimated qty = half of the target fill
  2. For each grade, walk forward; wherever ROB would breach min, buy up to target fill at the
     best-scored priced port since the last purchase (first priced port if none scored)
  3. Let other grades piggyback at selected ports when priced within 5% of the route average,
     capped so the tank still holds every later purchase of the grade
"""

from typing import Dict, List, Optional, Tuple

from consolidate_deliveries import consolidate_deliveries
from delivery_cost import estimate_delivery_cost
from lube_models import BaselineSummary, OptimizerInput, OptimizerOutput, empty_allocations
from plan_builder import build_output_with_alerts
from rob_engine import compute_route_average_price, get_port_price, leg_consumption, tank_headroom

ESTIMATED_QTY_FRACTION = 0.5
PIGGYBACK_PRICE_TOLERANCE = 1.05


def score_ports(inp: OptimizerInput, route_avg: Dict[str, float]) -> List[Tuple[int, float]]:
    """(port index, score) for every port with at least one price, best score first."""
    target_fill_pct = inp.reorder_config.target_fill_pct
    scores: List[Tuple[int, float]] = []

    for i, port in enumerate(inp.ports):
        value = 0.0
        estimated_liters = 0.0
        has_price = False
        for grade_cfg in inp.oil_grades:
            price = get_port_price(port, grade_cfg.category)
            if price is None:
                continue
            has_price = True
            est_qty = grade_cfg.tank_config.capacity * target_fill_pct * ESTIMATED_QTY_FRACTION
            value += (route_avg[grade_cfg.category] - price) * est_qty
            estimated_liters += est_qty

        if has_price:
            charge = estimate_delivery_cost(port.delivery_config, estimated_liters, port.delivery_charge)
            scores.append((i, value - charge))

    scores.sort(key=lambda s: -s[1])
    return scores


def _rob_at_port(inp: OptimizerInput, grade: str, avg_daily: float, allocation: Dict[int, float], target: int) -> float:
    rob = float(inp.current_rob.get(grade, 0.0))
    for i in range(min(target, len(inp.ports))):
        rob += allocation.get(i, 0.0)
        rob -= leg_consumption(inp.ports[i], avg_daily, inp.buffer)
    return rob


def _window_start(allocation: Dict[int, float], before: int) -> int:
    start = 0
    for idx in allocation:
        if idx < before:
            start = max(start, idx + 1)
    return start


def run_consolidated_strategy(inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
    target_fill_pct = inp.reorder_config.target_fill_pct
    route_avg = compute_route_average_price(inp)
    port_scores = score_ports(inp, route_avg)

    allocations = empty_allocations(inp.grade_names)
    selected: List[int] = []

    # must-buy pass
    for grade_cfg in inp.oil_grades:
        grade = grade_cfg.category
        tank = grade_cfg.tank_config
        avg_daily = grade_cfg.avg_daily_consumption
        allocation = allocations[grade]
        target_fill = tank.capacity * target_fill_pct

        rob = float(inp.current_rob.get(grade, 0.0))
        for i, port in enumerate(inp.ports):
            consumption = leg_consumption(port, avg_daily, inp.buffer)
            if rob - consumption >= tank.min_rob:
                rob -= consumption
                continue

            start = _window_start(allocation, i)
            best_idx = -1
            best_score = float("-inf")
            for idx, score in port_scores:
                if start <= idx <= i and get_port_price(inp.ports[idx], grade) is not None and score > best_score:
                    best_score = score
                    best_idx = idx

            if best_idx == -1:
                for j in range(start, min(i, len(inp.ports) - 1) + 1):
                    if get_port_price(inp.ports[j], grade) is not None:
                        best_idx = j
                        break

            if best_idx >= 0:
                rob_there = _rob_at_port(inp, grade, avg_daily, allocation, best_idx)
                qty = max(0.0, min(target_fill - rob_there, tank.capacity - rob_there))
                if qty > 0:
                    allocation[best_idx] = qty
                    if best_idx not in selected:
                        selected.append(best_idx)

            rob = _rob_at_port(inp, grade, avg_daily, allocation, i) + allocation.get(i, 0.0) - consumption

    # piggyback pass
    for port_idx in sorted(selected):
        for grade_cfg in inp.oil_grades:
            grade = grade_cfg.category
            if port_idx in allocations[grade]:
                continue
            price = get_port_price(inp.ports[port_idx], grade)
            if price is None or price > route_avg[grade] * PIGGYBACK_PRICE_TOLERANCE:
                continue

            tank = grade_cfg.tank_config
            rob_there = _rob_at_port(inp, grade, grade_cfg.avg_daily_consumption, allocations[grade], port_idx)
            qty = max(0.0, min(tank.capacity * target_fill_pct - rob_there, tank.capacity - rob_there))
            qty = min(qty, tank_headroom(inp, grade_cfg, allocations[grade], port_idx))
            if qty > 0:
                allocations[grade][port_idx] = qty

    consolidate_deliveries(inp, allocations)
    return build_output_with_alerts(inp, allocations, baseline)
