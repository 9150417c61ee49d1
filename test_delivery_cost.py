"""
Delivery cost model: differential, small-order and urgent surcharges, working-day countdown.
"""
from datetime import datetime, timezone

import pytest

from delivery_cost import compute_available_days, compute_delivery_cost, estimate_delivery_cost
from lube_models import PortDeliveryConfig

BUSAN = PortDeliveryConfig(
    port_name="BUSAN",
    country="SOUTH KOREA",
    differential_per_100l=3.5,
    lead_time_days=5,
    small_order_threshold_l=4000,
    small_order_surcharge=200,
    urgent_order_surcharge=300,
)


def test_zero_liters_costs_nothing():
    assert compute_delivery_cost(BUSAN, 0, 10, 1500).total == 0
    assert compute_delivery_cost(None, 0, 10, 1500).total == 0


def test_no_config_uses_flat_charge():
    b = compute_delivery_cost(None, 12000, 10, 1500)
    assert b.differential == 1500
    assert b.total == 1500
    assert b.small_order_surcharge == 0 and b.urgent_surcharge == 0


def test_differential_only():
    b = compute_delivery_cost(BUSAN, 10000, 30, 1500)
    assert b.differential == pytest.approx(350.0)
    assert b.small_order_surcharge == 0
    assert b.urgent_surcharge == 0
    assert b.total == pytest.approx(350.0)


def test_small_order_surcharge_below_threshold():
    b = compute_delivery_cost(BUSAN, 3000, 30, 1500)
    assert b.differential == pytest.approx(105.0)
    assert b.small_order_surcharge == 200
    assert b.total == pytest.approx(305.0)


def test_urgent_surcharge_inside_lead_time():
    b = compute_delivery_cost(BUSAN, 10000, 4, 1500)
    assert b.urgent_surcharge == 300
    assert b.total == pytest.approx(650.0)


def test_unknown_days_never_urgent():
    assert compute_delivery_cost(BUSAN, 10000, -1, 1500).urgent_surcharge == 0


def test_all_components_sum():
    b = compute_delivery_cost(BUSAN, 2000, 0, 1500)
    assert b.total == pytest.approx(b.differential + b.small_order_surcharge + b.urgent_surcharge)
    assert b.total == pytest.approx(70.0 + 200 + 300)


def test_estimate_ignores_urgency():
    assert estimate_delivery_cost(BUSAN, 10000, 1500) == pytest.approx(350.0)
    assert estimate_delivery_cost(BUSAN, 1000, 1500) == pytest.approx(35.0 + 200)
    assert estimate_delivery_cost(None, 10000, 1500) == 1500


def test_available_days():
    now = datetime(2027, 3, 1, tzinfo=timezone.utc)
    # 14 calendar days -> 10 working days
    assert compute_available_days("2027-03-15T00:00:00Z", now=now) == 10
    assert compute_available_days("2027-03-15", now=now) == 10
    # past arrivals clamp to 0
    assert compute_available_days("2027-02-01T00:00:00Z", now=now) == 0


def test_available_days_unknown_dates():
    assert compute_available_days("") == -1
    assert compute_available_days(None) == -1
    assert compute_available_days("not a date") == -1
