"""
Forward ROB engine: urgency / opportunity / ALERT decisions, min-order rule, baseline.
"""
import pytest

from conftest import make_grade, make_grades, make_input, make_port
from lube_models import (
    AE_SYSTEM_OIL,
    ALERT,
    CYLINDER_OIL,
    ME_SYSTEM_OIL,
    ORDER,
    SKIP,
    URGENT,
    MinOrderConfig,
    ReorderConfig,
)
from rob_engine import (
    compute_baseline,
    compute_route_average_price,
    enforce_min_order,
    get_port_price,
    run_optimizer,
    tank_headroom,
)
from sample_voyage import build_sample_input


def _ae_input(ports, rob, min_order=None):
    grade = make_grade(AE_SYSTEM_OIL, capacity=20000, min_rob=5000, avg_daily=100)
    return make_input(ports, grades=[grade], rob={AE_SYSTEM_OIL: rob}, min_order=min_order)


def test_urgent_when_already_below_minimum():
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 0.50}),
        make_port("B", prices={AE_SYSTEM_OIL: 0.50}),
    ]
    out = run_optimizer(_ae_input(ports, rob=4000))
    action = out.ports[0].actions[AE_SYSTEM_OIL]
    assert action.action == URGENT
    assert action.quantity == pytest.approx(10000)
    assert action.cost == pytest.approx(5000)
    assert action.rob_on_departure == pytest.approx(14000)


def test_urgent_quantity_meets_configured_minimum():
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 0.50}),
        make_port("B", prices={AE_SYSTEM_OIL: 0.50}),
    ]
    out = run_optimizer(_ae_input(ports, rob=4000, min_order=MinOrderConfig(0, 10000, 10000)))
    assert out.ports[0].actions[AE_SYSTEM_OIL].quantity == pytest.approx(10000)


def test_opportunity_order_when_voyage_is_safe():
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 0.85}),
        make_port("B", sea_days=5, prices={AE_SYSTEM_OIL: 1.15}),
        make_port("C", prices={AE_SYSTEM_OIL: 1.00}),
    ]
    out = run_optimizer(_ae_input(ports, rob=10000))
    first = out.ports[0].actions[AE_SYSTEM_OIL]
    assert first.action == ORDER
    assert first.quantity == pytest.approx(4000)
    assert out.ports[1].actions[AE_SYSTEM_OIL].action == SKIP


def test_voyage_safety_guard_suppresses_urgency():
    # 5,100 L at the next port is below 1.2 x min, but the whole voyage stays above min
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 1.0}),
        make_port("B", prices={AE_SYSTEM_OIL: 1.0}),
    ]
    out = run_optimizer(_ae_input(ports, rob=5600))
    assert out.ports[0].actions[AE_SYSTEM_OIL].action == SKIP
    assert out.purchase_events == 0


def test_urgent_before_next_priced_port():
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 1.0}),
        make_port("B", sea_days=5),
        make_port("C", sea_days=10, prices={AE_SYSTEM_OIL: 1.0}),
        make_port("D", prices={AE_SYSTEM_OIL: 1.0}),
    ]
    out = run_optimizer(_ae_input(ports, rob=6900))
    action = out.ports[0].actions[AE_SYSTEM_OIL]
    assert action.action == URGENT
    assert action.quantity == pytest.approx(14000 - 6900)


def test_alert_without_any_future_price():
    ports = [make_port("A", sea_days=5), make_port("B")]
    out = run_optimizer(_ae_input(ports, rob=5200))
    action = out.ports[0].actions[AE_SYSTEM_OIL]
    assert action.action == ALERT
    assert action.quantity == 0
    assert action.rob_at_next_port == pytest.approx(4700)


def test_unpriced_port_with_enough_oil_is_skip():
    ports = [make_port("A", sea_days=5), make_port("B", prices={AE_SYSTEM_OIL: 1.0})]
    out = run_optimizer(_ae_input(ports, rob=12000))
    assert out.ports[0].actions[AE_SYSTEM_OIL].action == SKIP


def test_enforce_min_order():
    # no minimum / already above minimum
    assert enforce_min_order(3000, 0, 20000, 5000, False) == 3000
    assert enforce_min_order(12000, 10000, 30000, 5000, False) == 12000
    # urgent: round up when the tank has room, else buy what fits
    assert enforce_min_order(3000, 10000, 20000, 5000, True) == 10000
    assert enforce_min_order(3000, 10000, 12000, 8000, True) == 3000
    # opportunity below minimum is suppressed
    assert enforce_min_order(3000, 10000, 20000, 5000, False) == 0
    assert enforce_min_order(0, 10000, 20000, 5000, True) == 0


def test_opportunity_below_minimum_is_skipped():
    ports = [
        make_port("A", sea_days=1, prices={AE_SYSTEM_OIL: 0.5}),
        make_port("B", prices={AE_SYSTEM_OIL: 1.5}),
    ]
    # raw quantity 14,000 - 12,000 = 2,000 < 10,000 minimum
    out = run_optimizer(_ae_input(ports, rob=12000, min_order=MinOrderConfig(0, 10000, 10000)))
    assert out.ports[0].actions[AE_SYSTEM_OIL].action == SKIP
    assert out.ports[0].actions[AE_SYSTEM_OIL].quantity == 0


def test_route_average_and_missing_prices():
    ports = [
        make_port("A", prices={ME_SYSTEM_OIL: 1.0, CYLINDER_OIL: 0}),
        make_port("B"),
        make_port("C", prices={ME_SYSTEM_OIL: 2.0}),
    ]
    inp = make_input(ports, grades=make_grades())
    avg = compute_route_average_price(inp)
    assert avg[ME_SYSTEM_OIL] == pytest.approx(1.5)
    assert avg[CYLINDER_OIL] == 0
    assert avg[AE_SYSTEM_OIL] == 0
    assert get_port_price(ports[0], CYLINDER_OIL) is None


def test_one_delivery_charge_per_port():
    prices = {CYLINDER_OIL: 1.0, ME_SYSTEM_OIL: 1.0, AE_SYSTEM_OIL: 1.0}
    ports = [make_port("A", sea_days=5, prices=prices), make_port("B", prices=prices)]
    rob = {CYLINDER_OIL: 4000, ME_SYSTEM_OIL: 4000, AE_SYSTEM_OIL: 4000}
    out = run_optimizer(make_input(ports, grades=make_grades(), rob=rob))
    assert all(a.action == URGENT for a in out.ports[0].actions.values())
    assert out.purchase_events == 1
    assert out.total_delivery_charges == pytest.approx(1000)
    assert out.ports[0].delivery_breakdown is not None
    assert out.total_cost["total"] == pytest.approx(30000)


def test_baseline_buys_only_before_breach():
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 1.0}),
        make_port("B", sea_days=5, prices={AE_SYSTEM_OIL: 2.0}),
        make_port("C", prices={AE_SYSTEM_OIL: 1.0}),
    ]
    baseline = compute_baseline(_ae_input(ports, rob=5800))
    assert baseline.cost[AE_SYSTEM_OIL] == pytest.approx(8700 * 2.0)
    assert baseline.delivery_charges == pytest.approx(1000)
    assert baseline.purchase_events == 1
    assert baseline.all_in_cost == pytest.approx(18400)


def test_savings_against_baseline():
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 1.0}),
        make_port("B", sea_days=5, prices={AE_SYSTEM_OIL: 2.0}),
        make_port("C", prices={AE_SYSTEM_OIL: 1.0}),
    ]
    inp = _ae_input(ports, rob=5800)
    out = run_optimizer(inp)
    baseline_all_in = out.baseline_cost["total"] + out.baseline_delivery_charges
    assert out.savings["total"] == pytest.approx(baseline_all_in - out.all_in_cost)
    assert out.generated_at.endswith("+00:00")


def test_capacity_never_exceeded_on_sample_voyage():
    inp = build_sample_input()
    out = run_optimizer(inp)
    for port in out.ports:
        for grade, action in port.actions.items():
            assert action.rob_on_departure <= inp.grade(grade).tank_config.capacity * 1.01


def test_tank_headroom_counts_later_purchases():
    ports = [make_port("A", sea_days=5), make_port("B", sea_days=5), make_port("C")]
    inp = _ae_input(ports, rob=8000)
    grade_cfg = inp.grade(AE_SYSTEM_OIL)
    allocation = {1: 9000.0}

    # departures: A 8,000, B 16,500, C 16,000
    assert tank_headroom(inp, grade_cfg, allocation, 0) == pytest.approx(3500)
    assert tank_headroom(inp, grade_cfg, allocation, 0, end=1) == pytest.approx(12000)
    assert tank_headroom(inp, grade_cfg, allocation, 2) == pytest.approx(4000)
    assert tank_headroom(inp, grade_cfg, {1: 20000.0}, 0) == 0


def test_target_fill_changes_quantity():
    ports = [
        make_port("A", sea_days=5, prices={AE_SYSTEM_OIL: 0.50}),
        make_port("B", prices={AE_SYSTEM_OIL: 0.50}),
    ]
    grade = make_grade(AE_SYSTEM_OIL, capacity=20000, min_rob=5000, avg_daily=100)
    inp = make_input(ports, grades=[grade], rob={AE_SYSTEM_OIL: 4000}, reorder=ReorderConfig(target_fill_pct=0.5))
    assert run_optimizer(inp).ports[0].actions[AE_SYSTEM_OIL].quantity == pytest.approx(6000)
