"""
Forward ROB simulation engine.

Skip-by-default planner with urgency / opportunity triggers. For each port, for each grade:
  1. No price here -> ALERT if ROB breaches min before the next priced port, else SKIP
  2. Voyage-safety guard: if ROB stays above min for the whole known schedule, urgency is suppressed
  3. Urgency: ROB drops below min x trigger before the next priced port -> URGENT, fill to target
  4. Opportunity: price at least X% below route average -> ORDER, fill to target
  5. Otherwise SKIP

A delivery charge is incurred once per port when ANY grade buys there. The same module computes
the reactive baseline every plan is measured against.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import numpy as np

from delivery_cost import compute_available_days, compute_delivery_cost
from lube_models import (
    ALERT,
    ORDER,
    SKIP,
    URGENT,
    BaselineSummary,
    DeliveryBreakdown,
    GradeAction,
    OilGradeConfig,
    OptimizerInput,
    OptimizerOutput,
    PortPlan,
    PortStop,
)

logger = logging.getLogger(__name__)


# ------------------------- shared helpers -------------------------
def get_port_price(port: PortStop, grade: str) -> Optional[float]:
    """Best price at this port for the grade; None (or non-positive) means no offer."""
    price = port.prices.get(grade)
    if price is None or price <= 0:
        return None
    return float(price)


def leg_consumption(port: PortStop, avg_daily_consumption: float, buffer: float) -> float:
    return port.sea_days_to_next * avg_daily_consumption * buffer


def tank_headroom(
    inp: OptimizerInput,
    grade_cfg: OilGradeConfig,
    allocation: Dict[int, float],
    start: int,
    end: Optional[int] = None,
) -> float:
    """
    Liters that can still be added at port `start` without ROB on departure exceeding tank
    capacity at any port in [start, end) under the given single-grade allocation.
    """
    capacity = grade_cfg.tank_config.capacity
    end = len(inp.ports) if end is None else min(end, len(inp.ports))
    rob = float(inp.current_rob.get(grade_cfg.category, 0.0))
    headroom = float("inf")

    for i, port in enumerate(inp.ports[:end]):
        rob += allocation.get(i, 0.0)
        if i >= start:
            headroom = min(headroom, capacity - rob)
        rob -= leg_consumption(port, grade_cfg.avg_daily_consumption, inp.buffer)

    if headroom == float("inf"):
        return 0.0
    return max(0.0, headroom)


def compute_route_average_price(inp: OptimizerInput) -> Dict[str, float]:
    """Mean of all positive prices per grade across the full port list (0 when none)."""
    result: Dict[str, float] = {}
    for grade in inp.grade_names:
        prices = [p for p in (get_port_price(port, grade) for port in inp.ports) if p is not None]
        result[grade] = float(np.mean(prices)) if prices else 0.0
    return result


def port_delivery(port: PortStop, liters: float) -> DeliveryBreakdown:
    return compute_delivery_cost(
        port.delivery_config,
        liters,
        compute_available_days(port.arrival_date),
        port.delivery_charge,
    )


def enforce_min_order(
    raw_qty: float,
    min_qty: float,
    tank_capacity: float,
    rob_on_arrival: float,
    is_urgent: bool,
) -> float:
    """
    Minimum order rule:
      - no minimum configured (cylinder oil) or raw >= min -> raw
      - urgent below min -> round up to min if the tank has room, else buy what fits
      - opportunity below min -> suppressed (0)
    """
    if raw_qty <= 0:
        return 0.0
    if min_qty <= 0 or raw_qty >= min_qty:
        return raw_qty

    room = tank_capacity - rob_on_arrival
    if not is_urgent:
        return 0.0
    return min_qty if room >= min_qty else raw_qty


def new_port_plan(port: PortStop) -> PortPlan:
    return PortPlan(
        port_name=port.port_name,
        port_code=port.port_code,
        country=port.country,
        arrival_date=port.arrival_date,
        departure_date=port.departure_date,
        sea_days_to_next=port.sea_days_to_next,
    )


def assemble_output(
    inp: OptimizerInput,
    port_plans: List[PortPlan],
    total_cost: Dict[str, float],
    total_delivery_charges: float,
    purchase_events: int,
    baseline: BaselineSummary,
) -> OptimizerOutput:
    oil_total = float(sum(total_cost.values()))
    optimized_all_in = oil_total + total_delivery_charges
    baseline_all_in = baseline.all_in_cost

    savings = {g: baseline.cost.get(g, 0.0) - total_cost.get(g, 0.0) for g in inp.grade_names}
    savings["total"] = baseline_all_in - optimized_all_in
    savings["pct"] = (savings["total"] / baseline_all_in) * 100.0 if baseline_all_in > 0 else 0.0

    return OptimizerOutput(
        vessel_id=inp.vessel.vessel_id,
        vessel_name=inp.vessel.vessel_name,
        ports=port_plans,
        total_cost={**total_cost, "total": oil_total},
        total_delivery_charges=total_delivery_charges,
        purchase_events=purchase_events,
        baseline_cost={**baseline.cost, "total": baseline.oil_cost},
        baseline_delivery_charges=baseline.delivery_charges,
        baseline_purchase_events=baseline.purchase_events,
        savings=savings,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


# ------------------------- optimizer -------------------------
def run_optimizer(inp: OptimizerInput, baseline: Optional[BaselineSummary] = None) -> OptimizerOutput:
    reorder = inp.reorder_config
    buffer = inp.buffer
    grades = inp.grade_names

    rob = {g: float(inp.current_rob.get(g, 0.0)) for g in grades}
    route_avg = compute_route_average_price(inp)

    port_plans: List[PortPlan] = []
    total_cost = {g: 0.0 for g in grades}
    total_delivery = 0.0
    purchase_events = 0

    for i, port in enumerate(inp.ports):
        plan = new_port_plan(port)
        ports_ahead = inp.ports[i + 1:]

        for grade_cfg in inp.oil_grades:
            grade = grade_cfg.category
            tank = grade_cfg.tank_config
            rob_on_arrival = rob[grade]
            consumption = leg_consumption(port, grade_cfg.avg_daily_consumption, buffer)
            price = get_port_price(port, grade)

            action, qty = _determine_action(
                rob_on_arrival=rob_on_arrival,
                min_rob=tank.min_rob,
                target_fill=tank.capacity * reorder.target_fill_pct,
                consumption_to_next=consumption,
                price=price,
                route_avg_price=route_avg[grade],
                opportunity_discount_pct=reorder.opportunity_discount_pct,
                rob_trigger_multiplier=reorder.rob_trigger_multiplier,
                min_qty=inp.min_order_qty.for_grade(grade),
                tank_capacity=tank.capacity,
                avg_daily=grade_cfg.avg_daily_consumption,
                buffer=buffer,
                ports_ahead=ports_ahead,
                grade=grade,
            )
            if action == ALERT:
                logger.debug("ALERT %s at %s: no price before ROB breach", grade, port.port_name)

            cost = qty * (price or 0.0)
            rob_on_departure = rob_on_arrival + qty
            rob_at_next = rob_on_departure - consumption
            rob[grade] = rob_at_next
            total_cost[grade] += cost

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


def _cumulative_to_next_priced(
    consumption_to_next: float,
    ports_ahead: List[PortStop],
    grade: str,
    avg_daily: float,
    buffer: float,
) -> Tuple[float, bool]:
    """
    Consumption from here to the next port with a price for this grade.
    Returns (consumption, found); when no priced port exists, consumption runs to voyage end.
    """
    cumulative = consumption_to_next
    for port in ports_ahead:
        if get_port_price(port, grade) is not None:
            return cumulative, True
        cumulative += leg_consumption(port, avg_daily, buffer)
    return cumulative, False


def _is_voyage_safe(
    rob_on_arrival: float,
    min_rob: float,
    consumption_to_next: float,
    ports_ahead: List[PortStop],
    avg_daily: float,
    buffer: float,
) -> bool:
    """Can the vessel finish the whole known schedule above min ROB without buying?"""
    remaining = consumption_to_next + sum(leg_consumption(p, avg_daily, buffer) for p in ports_ahead)
    return rob_on_arrival - remaining >= min_rob


def _determine_action(
    rob_on_arrival: float,
    min_rob: float,
    target_fill: float,
    consumption_to_next: float,
    price: Optional[float],
    route_avg_price: float,
    opportunity_discount_pct: float,
    rob_trigger_multiplier: float,
    min_qty: float,
    tank_capacity: float,
    avg_daily: float,
    buffer: float,
    ports_ahead: List[PortStop],
    grade: str,
) -> Tuple[str, float]:
    if price is None:
        cumulative, _ = _cumulative_to_next_priced(consumption_to_next, ports_ahead, grade, avg_daily, buffer)
        if rob_on_arrival - cumulative < min_rob:
            return ALERT, 0.0
        return SKIP, 0.0

    voyage_safe = _is_voyage_safe(rob_on_arrival, min_rob, consumption_to_next, ports_ahead, avg_daily, buffer)

    is_urgent = False
    if not voyage_safe:
        threshold = min_rob * rob_trigger_multiplier
        if rob_on_arrival - consumption_to_next < threshold:
            is_urgent = True
        else:
            cumulative, _ = _cumulative_to_next_priced(consumption_to_next, ports_ahead, grade, avg_daily, buffer)
            is_urgent = rob_on_arrival - cumulative < threshold

    is_opportunity = route_avg_price > 0 and price <= route_avg_price * (1 - opportunity_discount_pct / 100.0)

    raw_qty = max(0.0, target_fill - rob_on_arrival)

    if is_urgent:
        return URGENT, enforce_min_order(raw_qty, min_qty, tank_capacity, rob_on_arrival, True)

    if is_opportunity:
        qty = enforce_min_order(raw_qty, min_qty, tank_capacity, rob_on_arrival, False)
        if qty <= 0:
            return SKIP, 0.0
        return ORDER, qty

    return SKIP, 0.0


# ------------------------- baseline -------------------------
def compute_baseline(inp: OptimizerInput) -> BaselineSummary:
    """
    Reactive superintendent: buys only when ROB would drop below 1.0x min ROB before the
    next port, fills to target at whatever port is available. No opportunism.
    """
    target_fill_pct = inp.reorder_config.target_fill_pct
    buffer = inp.buffer
    grades = inp.grade_names

    rob = {g: float(inp.current_rob.get(g, 0.0)) for g in grades}
    cost = {g: 0.0 for g in grades}
    delivery_charges = 0.0
    purchase_events = 0

    for port in inp.ports:
        liters_here = 0.0

        for grade_cfg in inp.oil_grades:
            grade = grade_cfg.category
            tank = grade_cfg.tank_config
            consumption = leg_consumption(port, grade_cfg.avg_daily_consumption, buffer)
            rob_on_arrival = rob[grade]
            price = get_port_price(port, grade)
            rob_if_no_buy = rob_on_arrival - consumption

            if rob_if_no_buy < tank.min_rob and price is not None:
                qty = max(0.0, tank.capacity * target_fill_pct - rob_on_arrival)
                cost[grade] += qty * price
                rob[grade] = rob_on_arrival + qty - consumption
                liters_here += qty
            else:
                rob[grade] = rob_if_no_buy

        if liters_here > 0:
            delivery_charges += port_delivery(port, liters_here).total
            purchase_events += 1

    return BaselineSummary(cost=cost, delivery_charges=delivery_charges, purchase_events=purchase_events)
