"""
Delivery consolidation post-processor.

Superintendent's rules applied to any strategy's allocation tables:
  1. Delivery worthiness: paying a $5,000 delivery for $1,600 of oil is not worth it. When the
     worst oil-value / delivery-charge ratio is below 2.0, move that port's purchases to the
     nearest other delivery port.
  2. Proximity: two delivery ports within 10 sea-days of each other are merged (smaller value
     into larger) when the extra oil cost is below 90% of the delivery charge saved.

Allocations are mutated in place, but every move is tried on a copy, verified for tank capacity
and ROB safety over the whole voyage, and only then committed. Greedy and local: the loop is capped
at 10 passes and makes no global optimality claim.
"""

import logging
from typing import List, Optional, Tuple

from lube_models import Allocations, OptimizerInput, OptimizerOutput, clone_allocations, empty_allocations
from plan_builder import apply_min_orders
from rob_engine import get_port_price, leg_consumption, port_delivery

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10
MIN_WORTHINESS_RATIO = 2.0
MAX_MERGE_SEA_DAYS = 10.0
PROXIMITY_SAVINGS_FACTOR = 0.9
CAPACITY_TOLERANCE = 1.01


def consolidate_deliveries(inp: OptimizerInput, allocations: Allocations) -> int:
    """
    Merge unworthy / nearby delivery events in place.

    Returns:
        number of merges applied
    """
    merges = 0

    for _ in range(MAX_ITERATIONS):
        delivery_ports = _delivery_ports(allocations, inp)
        if len(delivery_ports) <= 1:
            break

        changed = _worthiness_pass(inp, allocations, delivery_ports)
        if not changed:
            changed = _proximity_pass(inp, allocations)
        if not changed:
            break
        merges += 1

    return merges


def extract_allocations(output: OptimizerOutput, inp: OptimizerInput) -> Allocations:
    """Sparse allocation tables from a materialized plan (positive quantities only)."""
    allocations = empty_allocations(inp.grade_names)
    for i, port_plan in enumerate(output.ports):
        for grade in inp.grade_names:
            action = port_plan.actions.get(grade)
            if action is not None and action.quantity > 0:
                allocations[grade][i] = action.quantity
    return allocations


# ------------------------- passes -------------------------
def _worthiness_pass(inp: OptimizerInput, allocations: Allocations, delivery_ports: List[int]) -> bool:
    worst_idx = -1
    worst_ratio = float("inf")

    for idx in delivery_ports:
        charge = _delivery_charge_at(inp, allocations, idx)
        if charge <= 0:
            continue  # free delivery is always worth it
        ratio = _oil_value(inp, allocations, idx) / charge
        if ratio < worst_ratio:
            worst_ratio = ratio
            worst_idx = idx

    if worst_idx < 0 or worst_ratio >= MIN_WORTHINESS_RATIO:
        return False

    candidates = sorted(
        (p for p in delivery_ports if p != worst_idx),
        key=lambda p: _sea_days_between(inp, min(p, worst_idx), max(p, worst_idx)),
    )
    for dest in candidates:
        if _try_full_merge(inp, allocations, worst_idx, dest):
            logger.debug("worthiness merge %d -> %d (ratio %.2f)", worst_idx, dest, worst_ratio)
            return True
    return False


def _proximity_pass(inp: OptimizerInput, allocations: Allocations) -> bool:
    delivery_ports = _delivery_ports(allocations, inp)

    for port_a, port_b in zip(delivery_ports, delivery_ports[1:]):
        if _sea_days_between(inp, port_a, port_b) > MAX_MERGE_SEA_DAYS:
            continue

        value_a = _oil_value(inp, allocations, port_a)
        value_b = _oil_value(inp, allocations, port_b)
        src, dest = (port_a, port_b) if value_a <= value_b else (port_b, port_a)

        saved_charge = _delivery_charge_at(inp, allocations, src)
        extra_cost = _merge_extra_cost(inp, allocations, src, dest)
        if extra_cost is None:
            continue

        if extra_cost < saved_charge * PROXIMITY_SAVINGS_FACTOR and _try_full_merge(inp, allocations, src, dest):
            logger.debug("proximity merge %d -> %d (extra %.2f, saved %.2f)", src, dest, extra_cost, saved_charge)
            return True
    return False


# ------------------------- merge mechanics -------------------------
def _try_full_merge(inp: OptimizerInput, allocations: Allocations, src: int, dest: int) -> bool:
    moves: List[Tuple[str, float]] = []
    for grade in inp.grade_names:
        qty = allocations[grade].get(src, 0.0)
        if qty <= 0:
            continue
        if get_port_price(inp.ports[dest], grade) is None:
            return False
        moves.append((grade, qty))

    if not moves:
        return False

    trial = clone_allocations(allocations)
    for grade, qty in moves:
        _move(trial, grade, src, dest, qty)

    if not _verify_allocations(inp, trial):
        return _try_partial_merge(inp, allocations, src, dest, moves)

    _commit(allocations, trial)
    return True


def _try_partial_merge(
    inp: OptimizerInput,
    allocations: Allocations,
    src: int,
    dest: int,
    moves: List[Tuple[str, float]],
) -> bool:
    """
    Shrink each move to the destination's tank headroom. Succeeds only when everything at the
    source is absorbed; any leftover would still need a delivery at the source.

    With no leftover the trial is the same table as the full merge that just failed verification,
    so this never commits a merge the full-merge check rejected.
    """
    trial = clone_allocations(allocations)

    for grade, qty in moves:
        grade_cfg = inp.grade(grade)
        rob = float(inp.current_rob.get(grade, 0.0))
        for i in range(min(dest, len(inp.ports))):
            rob += trial[grade].get(i, 0.0)
            rob -= leg_consumption(inp.ports[i], grade_cfg.avg_daily_consumption, inp.buffer)

        existing = trial[grade].get(dest, 0.0)
        max_additional = max(0.0, grade_cfg.tank_config.capacity - rob - existing)
        adjusted = min(qty, max_additional)
        if adjusted <= 0 or qty - adjusted > 0:
            return False

        _move(trial, grade, src, dest, adjusted)

    if not _verify_allocations(inp, trial):
        return False

    _commit(allocations, trial)
    return True


def _move(allocations: Allocations, grade: str, src: int, dest: int, qty: float) -> None:
    allocations[grade].pop(src, None)
    allocations[grade][dest] = allocations[grade].get(dest, 0.0) + qty


def _commit(allocations: Allocations, trial: Allocations) -> None:
    for grade, table in trial.items():
        current = allocations.setdefault(grade, {})
        current.clear()
        current.update(table)


def _verify_allocations(inp: OptimizerInput, allocations: Allocations) -> bool:
    """
    Tank never over capacity (1% tolerance) and ROB never below min (last port / zero legs excluded).
    Checked on the lots the plan builder will actually buy, minimum orders applied.
    """
    allocations = apply_min_orders(inp, allocations)
    last = len(inp.ports) - 1
    for grade_cfg in inp.oil_grades:
        grade = grade_cfg.category
        tank = grade_cfg.tank_config
        rob = float(inp.current_rob.get(grade, 0.0))

        for i, port in enumerate(inp.ports):
            qty = allocations[grade].get(i, 0.0)
            if rob + qty > tank.capacity * CAPACITY_TOLERANCE:
                return False
            rob += qty - leg_consumption(port, grade_cfg.avg_daily_consumption, inp.buffer)
            if rob < tank.min_rob and port.sea_days_to_next > 0 and i < last:
                return False
    return True


# ------------------------- metrics -------------------------
def _delivery_ports(allocations: Allocations, inp: OptimizerInput) -> List[int]:
    ports = set()
    for grade in inp.grade_names:
        for idx, qty in allocations.get(grade, {}).items():
            if qty > 0:
                ports.add(idx)
    return sorted(ports)


def _liters_at(inp: OptimizerInput, allocations: Allocations, idx: int) -> float:
    return float(sum(allocations[g].get(idx, 0.0) for g in inp.grade_names))


def _delivery_charge_at(inp: OptimizerInput, allocations: Allocations, idx: int) -> float:
    return port_delivery(inp.ports[idx], _liters_at(inp, allocations, idx)).total


def _oil_value(inp: OptimizerInput, allocations: Allocations, idx: int) -> float:
    total = 0.0
    for grade in inp.grade_names:
        qty = allocations[grade].get(idx, 0.0)
        if qty > 0:
            total += qty * (get_port_price(inp.ports[idx], grade) or 0.0)
    return total


def _sea_days_between(inp: OptimizerInput, from_idx: int, to_idx: int) -> float:
    return float(sum(p.sea_days_to_next for p in inp.ports[from_idx:to_idx]))


def _merge_extra_cost(inp: OptimizerInput, allocations: Allocations, src: int, dest: int) -> Optional[float]:
    """Extra oil cost of buying src's purchases at dest's prices; None if dest lacks a grade."""
    extra = 0.0
    for grade in inp.grade_names:
        qty = allocations[grade].get(src, 0.0)
        if qty <= 0:
            continue
        dest_price = get_port_price(inp.ports[dest], grade)
        if dest_price is None:
            return None
        extra += (dest_price - (get_port_price(inp.ports[src], grade) or 0.0)) * qty
    return extra
