"""
Cheapest-port backward planning and cross-grade piggyback.
"""
import pytest

from cheapest_port import run_cheapest_port_strategy, simulate_rob
from conftest import make_grade, make_input, make_port
from lube_models import AE_SYSTEM_OIL, ALERT, CYLINDER_OIL, ME_SYSTEM_OIL, ORDER, URGENT
from plan_builder import validate_plan_safety


def test_simulate_rob_returns_arrival_levels():
    ports = [make_port("A", sea_days=5), make_port("B", sea_days=5), make_port("C")]
    inp = make_input(ports)
    assert simulate_rob(inp, 7000, 100, {1: 2000}) == pytest.approx([7000, 6500, 8000])


def test_buys_at_cheapest_port_in_need_window():
    ports = [
        make_port("A", sea_days=5, prices={ME_SYSTEM_OIL: 1.5}),
        make_port("B", sea_days=5, prices={ME_SYSTEM_OIL: 1.0}),
        make_port("C", sea_days=5, prices={ME_SYSTEM_OIL: 2.0}),
        make_port("D", prices={ME_SYSTEM_OIL: 1.0}),
    ]
    grade = make_grade(ME_SYSTEM_OIL, capacity=20000, min_rob=5000, avg_daily=200)
    inp = make_input(ports, grades=[grade], rob={ME_SYSTEM_OIL: 7000})

    out = run_cheapest_port_strategy(inp)

    bought = {i: p.actions[ME_SYSTEM_OIL].quantity for i, p in enumerate(out.ports) if p.actions[ME_SYSTEM_OIL].quantity > 0}
    assert bought == pytest.approx({1: 8000})
    assert out.ports[1].actions[ME_SYSTEM_OIL].action == ORDER
    assert out.purchase_events == 1
    assert validate_plan_safety(out, inp)["safe"]


def test_window_without_price_extends_forward_once():
    ports = [make_port("A", sea_days=5), make_port("B", sea_days=5), make_port("C", prices={ME_SYSTEM_OIL: 1.0})]
    grade = make_grade(ME_SYSTEM_OIL, capacity=20000, min_rob=5000, avg_daily=100)
    out = run_cheapest_port_strategy(make_input(ports, grades=[grade], rob={ME_SYSTEM_OIL: 5400}))

    assert out.ports[0].actions[ME_SYSTEM_OIL].action == ALERT
    assert out.ports[1].actions[ME_SYSTEM_OIL].action == ALERT
    last = out.ports[2].actions[ME_SYSTEM_OIL]
    assert last.action == URGENT
    assert last.quantity == pytest.approx(9600)


def test_grades_piggyback_on_shared_delivery():
    ports = [
        make_port("A", sea_days=5, prices={ME_SYSTEM_OIL: 1.0, AE_SYSTEM_OIL: 1.05}),
        make_port("B", sea_days=5, prices={AE_SYSTEM_OIL: 1.0}),
        make_port("C", prices={ME_SYSTEM_OIL: 1.0, AE_SYSTEM_OIL: 1.0}),
    ]
    grades = [
        make_grade(ME_SYSTEM_OIL, capacity=20000, min_rob=5000, avg_daily=100),
        make_grade(AE_SYSTEM_OIL, capacity=20000, min_rob=5000, avg_daily=100),
    ]
    inp = make_input(ports, grades=grades, rob={ME_SYSTEM_OIL: 5400, AE_SYSTEM_OIL: 5900})

    out = run_cheapest_port_strategy(inp)

    # AE would buy alone at B; paying 5% more at A beats a second delivery charge
    assert out.purchase_events == 1
    assert out.ports[0].actions[ME_SYSTEM_OIL].quantity == pytest.approx(8600)
    assert out.ports[0].actions[AE_SYSTEM_OIL].quantity == pytest.approx(8600)
    assert out.ports[1].liters_purchased == 0
    assert out.total_delivery_charges == pytest.approx(1000)


def test_no_purchase_when_voyage_is_covered():
    ports = [make_port("A", sea_days=5, prices={ME_SYSTEM_OIL: 1.0}), make_port("B", prices={ME_SYSTEM_OIL: 1.0})]
    out = run_cheapest_port_strategy(make_input(ports))
    assert out.purchase_events == 0
    assert out.total_cost["total"] == 0


def test_purchase_at_breach_port_clears_the_breach():
    ports = [
        make_port("A", sea_days=5, prices={ME_SYSTEM_OIL: 2.0}),
        make_port("B", sea_days=5, prices={ME_SYSTEM_OIL: 1.0}),
        make_port("C", prices={ME_SYSTEM_OIL: 1.5}),
    ]
    inp = make_input(ports, rob={ME_SYSTEM_OIL: 5900})

    out = run_cheapest_port_strategy(inp)

    # 8,600 L at B covers the leg to C; no top-up at C
    bought = {i: p.actions[ME_SYSTEM_OIL].quantity for i, p in enumerate(out.ports) if p.actions[ME_SYSTEM_OIL].quantity > 0}
    assert bought == pytest.approx({1: 8600})
    assert out.ports[1].actions[ME_SYSTEM_OIL].rob_on_departure == pytest.approx(14000)
    assert out.purchase_events == 1


def test_piggyback_leaves_room_for_shared_purchase():
    ports = [
        make_port("A", sea_days=2, prices={CYLINDER_OIL: 1.0, AE_SYSTEM_OIL: 1.05}),
        make_port("B", sea_days=5, prices={ME_SYSTEM_OIL: 1.0, AE_SYSTEM_OIL: 1.0}),
        make_port("C", sea_days=5, prices={AE_SYSTEM_OIL: 1.0}),
        make_port("D"),
    ]
    grades = [
        make_grade(CYLINDER_OIL, avg_daily=100),
        make_grade(ME_SYSTEM_OIL, avg_daily=100),
        make_grade(AE_SYSTEM_OIL, avg_daily=1000),
    ]
    inp = make_input(ports, grades=grades, rob={CYLINDER_OIL: 5100, ME_SYSTEM_OIL: 5600, AE_SYSTEM_OIL: 7000})

    out = run_cheapest_port_strategy(inp)

    # AE buys 9,000 L at B alongside ME; the lot moved up from C to A must still leave room for it
    ae = [p.actions[AE_SYSTEM_OIL] for p in out.ports]
    assert ae[0].quantity == pytest.approx(6000)
    assert ae[1].quantity == pytest.approx(9000)
    assert ae[2].quantity == 0
    assert max(a.rob_on_departure for a in ae) == pytest.approx(20000)
    for port_plan in out.ports:
        for grade_cfg in inp.oil_grades:
            assert port_plan.actions[grade_cfg.category].rob_on_departure <= grade_cfg.tank_config.capacity * 1.01
    assert validate_plan_safety(out, inp)["safe"]
