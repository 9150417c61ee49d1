"""
Lube-Oil Replenishment Planner
Domain model: grades, tanks, port stops, configuration and plan outputs
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# ------------------------- GRADES / ACTIONS -------------------------
CYLINDER_OIL, ME_SYSTEM_OIL, AE_SYSTEM_OIL = "cylinder_oil", "me_system_oil", "ae_system_oil"
GRADES: Tuple[str, ...] = (CYLINDER_OIL, ME_SYSTEM_OIL, AE_SYSTEM_OIL)

GRADE_LABELS = {
    CYLINDER_OIL: "Cylinder Oil",
    ME_SYSTEM_OIL: "ME System Oil",
    AE_SYSTEM_OIL: "AE System Oil",
}

ORDER, URGENT, SKIP, ALERT = "ORDER", "URGENT", "SKIP", "ALERT"

# Strategy identities
GRID, CHEAPEST_PORT, DELIVERY_AWARE, CONSOLIDATED = "grid", "cheapest-port", "delivery-aware", "consolidated"
STRATEGY_NAMES: Tuple[str, ...] = (GRID, CHEAPEST_PORT, DELIVERY_AWARE, CONSOLIDATED)

# grade -> {port index -> liters}
Allocations = Dict[str, Dict[int, float]]


def env_float(name: str, default: float) -> float:
    """Read a numeric env var; missing, unparseable or zero values fall back to default."""
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    return value if value else float(default)


# ------------------------- VESSEL / TANKS -------------------------
@dataclass(frozen=True)
class Vessel:
    vessel_id: str
    vessel_name: str
    vessel_code: str = ""
    vessel_type: str = ""
    fleet: str = ""
    lube_supplier: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class TankConfig:
    capacity: float        # total tank capacity (L)
    max_fill_pct: float    # 0.85 = 85%
    min_rob: float         # minimum safe ROB (L); dynamic for cylinder oil


@dataclass(frozen=True)
class OilGradeConfig:
    category: str
    label: str
    tank_config: TankConfig
    avg_daily_consumption: float  # L/day


# ------------------------- PORTS -------------------------
@dataclass(frozen=True)
class PortDeliveryConfig:
    """Supplier delivery terms at one port (price differential, lead time, surcharges)."""

    port_name: str
    country: str
    differential_per_100l: float
    lead_time_days: float = 5
    small_order_threshold_l: float = 4000
    small_order_surcharge: float = 200
    urgent_order_surcharge: float = 200


@dataclass(frozen=True)
class PortStop:
    port_name: str
    port_code: str
    country: str
    arrival_date: str = ""
    departure_date: str = ""
    sea_days_to_next: float = 0.0
    delivery_charge: float = 0.0          # flat USD per bunkering event (fallback)
    prices: Dict[str, Optional[float]] = field(default_factory=dict)  # best USD/L per grade, None = no offer
    delivery_config: Optional[PortDeliveryConfig] = None
    price_details: Dict[str, Dict[str, float]] = field(default_factory=dict)


# ------------------------- CONFIGURATION -------------------------
@dataclass(frozen=True)
class DeliveryChargeConfig:
    default_charge: float = 1500.0                                 # USD per bunkering event
    port_overrides: Dict[str, float] = field(default_factory=dict)  # port_code -> charge

    @classmethod
    def from_env(cls, port_overrides: Optional[Dict[str, float]] = None) -> "DeliveryChargeConfig":
        return cls(
            default_charge=env_float("DELIVERY_CHARGE_DEFAULT", 1500.0),
            port_overrides=dict(port_overrides or {}),
        )


@dataclass(frozen=True)
class MinOrderConfig:
    cylinder_oil: float = 0.0       # no minimum for cylinder oil
    me_system_oil: float = 10000.0
    ae_system_oil: float = 10000.0

    def for_grade(self, grade: str) -> float:
        return float(getattr(self, grade, 0.0) or 0.0)

    @classmethod
    def from_env(cls) -> "MinOrderConfig":
        return cls(
            cylinder_oil=0.0,
            me_system_oil=env_float("MIN_ORDER_QTY_ME_SYSTEM", 10000.0),
            ae_system_oil=env_float("MIN_ORDER_QTY_AE_SYSTEM", 10000.0),
        )


@dataclass(frozen=True)
class ReorderConfig:
    target_fill_pct: float = 0.70          # fill to 70% of capacity
    rob_trigger_multiplier: float = 1.2    # urgent when ROB < 1.2x min ROB
    opportunity_discount_pct: float = 10.0  # buy when 10%+ below route average

    @classmethod
    def from_env(cls) -> "ReorderConfig":
        return cls(
            target_fill_pct=env_float("TARGET_FILL_PCT", 70.0) / 100.0,
            rob_trigger_multiplier=env_float("REORDER_ROB_TRIGGER_MULTIPLIER", 1.2),
            opportunity_discount_pct=env_float("OPPORTUNITY_DISCOUNT_PCT", 10.0),
        )


@dataclass(frozen=True)
class OptimizerInput:
    """
    Immutable snapshot for one optimization request.

    current_rob is keyed by grade category; oil_grades fixes the grade order used
    by every loop in the engine and strategies.
    """

    vessel: Vessel
    ports: List[PortStop]
    current_rob: Dict[str, float]
    oil_grades: List[OilGradeConfig]
    window_size: int = 5
    safety_buffer_pct: float = 10.0
    delivery_charges: DeliveryChargeConfig = field(default_factory=DeliveryChargeConfig)
    min_order_qty: MinOrderConfig = field(default_factory=MinOrderConfig)
    reorder_config: ReorderConfig = field(default_factory=ReorderConfig)

    @property
    def buffer(self) -> float:
        return 1.0 + self.safety_buffer_pct / 100.0

    @property
    def grade_names(self) -> List[str]:
        return [g.category for g in self.oil_grades]

    def grade(self, category: str) -> OilGradeConfig:
        for g in self.oil_grades:
            if g.category == category:
                return g
        raise KeyError(category)


# ------------------------- OUTPUTS -------------------------
@dataclass(frozen=True)
class DeliveryBreakdown:
    differential: float = 0.0
    small_order_surcharge: float = 0.0
    urgent_surcharge: float = 0.0
    total: float = 0.0


@dataclass
class GradeAction:
    action: str
    quantity: float
    cost: float
    price_per_liter: float
    rob_on_arrival: float
    rob_on_departure: float
    rob_at_next_port: float


@dataclass
class PortPlan:
    port_name: str
    port_code: str
    country: str
    arrival_date: str
    departure_date: str
    sea_days_to_next: float
    delivery_charge: float = 0.0
    actions: Dict[str, GradeAction] = field(default_factory=dict)
    delivery_breakdown: Optional[DeliveryBreakdown] = None

    @property
    def liters_purchased(self) -> float:
        return sum(a.quantity for a in self.actions.values())


@dataclass(frozen=True)
class BaselineSummary:
    """Reactive-superintendent reference: oil cost per grade, delivery charges, events."""

    cost: Dict[str, float]
    delivery_charges: float
    purchase_events: int

    @property
    def oil_cost(self) -> float:
        return float(sum(self.cost.values()))

    @property
    def all_in_cost(self) -> float:
        return self.oil_cost + self.delivery_charges


@dataclass
class OptimizerOutput:
    vessel_id: str
    vessel_name: str
    ports: List[PortPlan]
    total_cost: Dict[str, float]            # per grade + "total" (oil only)
    total_delivery_charges: float
    purchase_events: int
    baseline_cost: Dict[str, float]
    baseline_delivery_charges: float
    baseline_purchase_events: int
    savings: Dict[str, float]               # per grade + "total" + "pct"
    generated_at: str

    @property
    def all_in_cost(self) -> float:
        return self.total_cost["total"] + self.total_delivery_charges


@dataclass
class RankedPlan:
    rank: int
    strategy: str
    strategy_label: str
    output: OptimizerOutput
    all_in_cost: float
    baseline_all_in_cost: float
    savings: float
    savings_pct: float
    safe: bool
    rob_breaches: int
    params: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class GridConfig:
    target_fill_pcts: Tuple[float, ...] = (0.55, 0.60, 0.65, 0.70, 0.75, 0.80)
    opportunity_discount_pcts: Tuple[float, ...] = (5, 10, 15, 20, 25)
    rob_trigger_multipliers: Tuple[float, ...] = (1.0, 1.2, 1.4, 1.6)
    window_sizes: Tuple[int, ...] = (3, 5, 7)

    @property
    def size(self) -> int:
        return (
            len(self.target_fill_pcts)
            * len(self.opportunity_discount_pcts)
            * len(self.rob_trigger_multipliers)
            * len(self.window_sizes)
        )


@dataclass(frozen=True)
class SmartOptimizerConfig:
    strategies: Tuple[str, ...] = STRATEGY_NAMES
    top_n: int = 5
    grid: GridConfig = field(default_factory=GridConfig)
    max_workers: Optional[int] = None   # None -> CPU count, 1 -> run in-process


@dataclass
class SmartOptimizerResult:
    plans: List[RankedPlan]
    baseline: Dict[str, Any]
    combinations_evaluated: int
    elapsed_ms: int


# ------------------------- ALLOCATIONS -------------------------
def empty_allocations(grades: List[str]) -> Allocations:
    return {g: {} for g in grades}


def clone_allocations(allocations: Allocations) -> Allocations:
    return {g: dict(table) for g, table in allocations.items()}


def total_liters(allocations: Allocations, grade: str) -> float:
    return float(sum(allocations.get(grade, {}).values()))
