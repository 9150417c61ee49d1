"""
Shared builders for the optimizer tests.
Defaults keep the arithmetic easy: no safety buffer, no minimum order, no arrival dates (never urgent).
"""

from typing import Dict, List, Optional

from lube_models import (
    AE_SYSTEM_OIL,
    CYLINDER_OIL,
    GRADE_LABELS,
    ME_SYSTEM_OIL,
    DeliveryChargeConfig,
    MinOrderConfig,
    OilGradeConfig,
    OptimizerInput,
    PortDeliveryConfig,
    PortStop,
    ReorderConfig,
    TankConfig,
    Vessel,
)

NO_MIN_ORDER = MinOrderConfig(cylinder_oil=0.0, me_system_oil=0.0, ae_system_oil=0.0)


def make_port(
    name: str = "PORT",
    sea_days: float = 0.0,
    prices: Optional[Dict[str, Optional[float]]] = None,
    charge: float = 1000.0,
    delivery_config: Optional[PortDeliveryConfig] = None,
    arrival_date: str = "",
) -> PortStop:
    return PortStop(
        port_name=name,
        port_code=name[:5].upper(),
        country="XX",
        arrival_date=arrival_date,
        sea_days_to_next=sea_days,
        delivery_charge=charge,
        prices=dict(prices or {}),
        delivery_config=delivery_config,
    )


def make_grade(
    category: str = ME_SYSTEM_OIL,
    capacity: float = 20000.0,
    min_rob: float = 5000.0,
    avg_daily: float = 100.0,
) -> OilGradeConfig:
    return OilGradeConfig(
        category=category,
        label=GRADE_LABELS[category],
        tank_config=TankConfig(capacity=capacity, max_fill_pct=0.85, min_rob=min_rob),
        avg_daily_consumption=avg_daily,
    )


def make_grades(avg_daily: float = 100.0) -> List[OilGradeConfig]:
    """All three grades with the same tank shape and burn rate."""
    return [make_grade(g, avg_daily=avg_daily) for g in (CYLINDER_OIL, ME_SYSTEM_OIL, AE_SYSTEM_OIL)]


def make_input(
    ports: List[PortStop],
    grades: Optional[List[OilGradeConfig]] = None,
    rob: Optional[Dict[str, float]] = None,
    reorder: Optional[ReorderConfig] = None,
    min_order: Optional[MinOrderConfig] = None,
    safety_buffer_pct: float = 0.0,
) -> OptimizerInput:
    grades = grades or [make_grade()]
    rob = rob if rob is not None else {g.category: 10000.0 for g in grades}
    return OptimizerInput(
        vessel=Vessel(vessel_id="V-1", vessel_name="Test Vessel", lube_supplier="Gulf Oil Marine"),
        ports=ports,
        current_rob=rob,
        oil_grades=grades,
        safety_buffer_pct=safety_buffer_pct,
        delivery_charges=DeliveryChargeConfig(),
        min_order_qty=min_order or NO_MIN_ORDER,
        reorder_config=reorder or ReorderConfig(),
    )
