"""
Voyage input builder.
Turns a voyage schedule and a supplier price table into an OptimizerInput.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from lube_models import (
    AE_SYSTEM_OIL,
    CYLINDER_OIL,
    GRADE_LABELS,
    GRADES,
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
    env_float,
)

logger = logging.getLogger(__name__)

SCHEDULE_COLUMNS = {"port_name", "port_code", "country", "arrival_date", "departure_date"}
PRICE_COLUMNS = {"port", "country", "supplier", "grade", "product", "price"}

# price-table grade -> optimizer grade (cylinder oil: LS preferred, HS fallback)
PRICE_GRADES = {
    "cylinder_oil_ls": CYLINDER_OIL,
    "cylinder_oil_hs": CYLINDER_OIL,
    ME_SYSTEM_OIL: ME_SYSTEM_OIL,
    AE_SYSTEM_OIL: AE_SYSTEM_OIL,
}

DELIVERY_DEFAULTS = {
    "lead_time_days": 5.0,
    "small_order_threshold_l": 4000.0,
    "small_order_surcharge": 200.0,
    "urgent_order_surcharge": 200.0,
}


def default_tank_configs(avg_daily_consumption: Dict[str, float], cylinder_min_rob_days: Optional[float] = None) -> Dict[str, TankConfig]:
    """Tank defaults (env-overridable). Cylinder min ROB = avg daily x min-ROB days."""
    max_fill = env_float("TANK_MAX_FILL_PCT", 85.0) / 100.0
    days = cylinder_min_rob_days if cylinder_min_rob_days is not None else env_float("CYLINDER_MIN_ROB_DAYS", 60.0)
    return {
        CYLINDER_OIL: TankConfig(
            capacity=env_float("TANK_CAPACITY_CYLINDER", 100000.0),
            max_fill_pct=max_fill,
            min_rob=float(avg_daily_consumption.get(CYLINDER_OIL, 0.0)) * days,
        ),
        ME_SYSTEM_OIL: TankConfig(
            capacity=env_float("TANK_CAPACITY_ME_SYSTEM", 95000.0),
            max_fill_pct=max_fill,
            min_rob=env_float("MIN_ROB_ME_SYSTEM", 30000.0),
        ),
        AE_SYSTEM_OIL: TankConfig(
            capacity=env_float("TANK_CAPACITY_AE_SYSTEM", 20000.0),
            max_fill_pct=max_fill,
            min_rob=env_float("MIN_ROB_AE_SYSTEM", 5000.0),
        ),
    }


class VoyageInputBuilder:
    def __init__(self, prices_df: pd.DataFrame, supplier: str):
        """
        Args:
            prices_df: long price table with port, country, supplier, grade, product, price
                       (optional delivery columns: differential_per_100l, lead_time_days,
                        small_order_threshold_l, small_order_surcharge, urgent_order_surcharge)
            supplier: vessel's lube supplier; matched case-insensitively, prefix either way
        """
        self.prices = prices_df.copy()
        self.supplier = str(supplier).strip()

        self._create_price_lookup()
        self._create_delivery_lookup()

    def _create_price_lookup(self):
        """Best price per (port key, grade) for the vessel's supplier."""
        missing = PRICE_COLUMNS - set(self.prices.columns)
        if missing:
            raise ValueError(f"prices_df missing columns: {sorted(missing)}")

        df = self.prices.copy()
        df["P"] = df["port"].astype(str).str.upper().str.strip()
        df["C"] = df["country"].astype(str).str.upper().str.strip()
        df["S"] = df["supplier"].astype(str).str.lower().str.strip()
        df["G"] = df["grade"].astype(str).str.lower().str.strip()
        df["V"] = pd.to_numeric(df["price"], errors="coerce")

        bad = df["V"].isna() | (df["V"] <= 0) | ~df["G"].isin(list(PRICE_GRADES))
        if bad.any():
            logger.warning("dropping %d unusable price rows", int(bad.sum()))
        df = df[~bad]

        df = df[df["S"].map(self._supplier_matches).astype(bool)]

        self.price_lookup: Dict[str, Dict[str, Dict[str, float]]] = {}
        for (p, c, g), grp in df.groupby(["P", "C", "G"]):
            products = {str(prod): float(v) for prod, v in zip(grp["product"], grp["V"])}
            for key in (f"{p}|{c}", p):
                self.price_lookup.setdefault(key, {}).setdefault(g, {}).update(products)

    def _create_delivery_lookup(self):
        """Delivery terms per port from ALL suppliers; first row with a differential wins."""
        self.delivery_lookup: Dict[str, PortDeliveryConfig] = {}
        if "differential_per_100l" not in self.prices.columns:
            return

        for row in self.prices.to_dict("records"):
            diff = self._to_float(row.get("differential_per_100l"))
            if diff is None:
                continue
            p = str(row["port"]).upper().strip()
            c = str(row["country"]).upper().strip()
            key = f"{p}|{c}"
            if key in self.delivery_lookup:
                continue
            cfg = PortDeliveryConfig(
                port_name=str(row["port"]),
                country=str(row["country"]),
                differential_per_100l=diff,
                **{k: self._to_float(row.get(k), d) for k, d in DELIVERY_DEFAULTS.items()},
            )
            self.delivery_lookup[key] = cfg
            self.delivery_lookup.setdefault(p, cfg)

    def _supplier_matches(self, name: str) -> bool:
        s = self.supplier.lower()
        return name == s or s.startswith(name) or name.startswith(s)

    @staticmethod
    def _to_float(x: Any, default: Optional[float] = None) -> Optional[float]:
        """Safe float conversion; returns default on None/NaN/invalid."""
        if x is None:
            return default
        try:
            v = float(x)
        except (TypeError, ValueError):
            return default
        return default if np.isnan(v) else v

    @staticmethod
    def _port_keys(port_name: str, country: str) -> List[str]:
        """Lookup keys in priority order: full|country, full, short|country, short ("TOKYO, TOKYO" -> "TOKYO")."""
        p = str(port_name).upper().strip()
        c = str(country).upper().strip()
        short = p.split(",")[0].strip() if "," in p else p
        return [f"{p}|{c}", p, f"{short}|{c}", short]

    def _resolve(self, table: Dict[str, Any], port_name: str, country: str) -> Optional[Any]:
        for key in self._port_keys(port_name, country):
            if key in table:
                return table[key]
        return None

    def port_prices(self, port_name: str, country: str) -> Dict[str, Optional[float]]:
        found = self._resolve(self.price_lookup, port_name, country) or {}

        def best(*price_grades: str) -> Optional[float]:
            for g in price_grades:
                products = found.get(g)
                if products:
                    return min(products.values())
            return None

        return {
            CYLINDER_OIL: best("cylinder_oil_ls", "cylinder_oil_hs"),
            ME_SYSTEM_OIL: best(ME_SYSTEM_OIL),
            AE_SYSTEM_OIL: best(AE_SYSTEM_OIL),
        }

    def price_details(self, port_name: str, country: str) -> Dict[str, Dict[str, float]]:
        found = self._resolve(self.price_lookup, port_name, country) or {}
        return {
            CYLINDER_OIL: {**found.get("cylinder_oil_ls", {}), **found.get("cylinder_oil_hs", {})},
            ME_SYSTEM_OIL: dict(found.get(ME_SYSTEM_OIL, {})),
            AE_SYSTEM_OIL: dict(found.get(AE_SYSTEM_OIL, {})),
        }

    def delivery_config(self, port_name: str, country: str) -> Optional[PortDeliveryConfig]:
        return self._resolve(self.delivery_lookup, port_name, country)

    def build_port_stops(self, schedule_df: pd.DataFrame, delivery_charges: DeliveryChargeConfig) -> List[PortStop]:
        missing = SCHEDULE_COLUMNS - set(schedule_df.columns)
        if missing:
            raise ValueError(f"schedule_df missing columns: {sorted(missing)}")
        if schedule_df.empty:
            raise ValueError("schedule_df has no port calls")

        df = schedule_df.reset_index(drop=True).copy()
        arrival = pd.to_datetime(df["arrival_date"], errors="coerce", utc=True)
        departure = pd.to_datetime(df["departure_date"], errors="coerce", utc=True)

        # sea days = next arrival - this departure, never negative, 0 when unknown / last stop
        sea_days = (arrival.shift(-1) - departure).dt.total_seconds() / 86400.0
        df["sea_days_to_next"] = np.clip(sea_days.fillna(0.0).to_numpy(dtype=float), 0.0, None)

        stops: List[PortStop] = []
        for i, row in enumerate(df.to_dict("records")):
            port_name = str(row["port_name"])
            country = str(row["country"])
            port_code = str(row["port_code"])
            stops.append(PortStop(
                port_name=port_name,
                port_code=port_code,
                country=country,
                arrival_date=self._date_text(arrival.iloc[i]),
                departure_date=self._date_text(departure.iloc[i]),
                sea_days_to_next=float(row["sea_days_to_next"]),
                delivery_charge=float(delivery_charges.port_overrides.get(port_code, delivery_charges.default_charge)),
                prices=self.port_prices(port_name, country),
                delivery_config=self.delivery_config(port_name, country),
                price_details=self.price_details(port_name, country),
            ))
        return stops

    @staticmethod
    def _date_text(d: Any) -> str:
        """ISO text of a parsed schedule date; unparseable dates come through as NaT -> ""."""
        if d is None or pd.isna(d):
            return ""
        return pd.Timestamp(d).isoformat()


def build_optimizer_input(
    vessel: Vessel,
    schedule: pd.DataFrame,
    prices: pd.DataFrame,
    current_rob: Dict[str, float],
    avg_daily_consumption: Dict[str, float],
    supplier: Optional[str] = None,
    window_size: Optional[int] = None,
    safety_buffer_pct: Optional[float] = None,
    tank_overrides: Optional[Dict[str, Dict[str, float]]] = None,
    delivery_charges: Optional[DeliveryChargeConfig] = None,
    min_order_qty: Optional[MinOrderConfig] = None,
    reorder_config: Optional[ReorderConfig] = None,
    cylinder_min_rob_days: Optional[float] = None,
) -> OptimizerInput:
    """
    Bridge between raw voyage data and the pure optimizer. Fails fast with ValueError on
    malformed tables or grade mappings; the optimizer itself assumes a validated input.
    """
    for name, mapping in (("current_rob", current_rob), ("avg_daily_consumption", avg_daily_consumption)):
        unknown = set(mapping) - set(GRADES)
        if unknown:
            raise ValueError(f"{name} has unknown grades: {sorted(unknown)}")

    delivery_charges = delivery_charges or DeliveryChargeConfig.from_env()
    builder = VoyageInputBuilder(prices, supplier if supplier is not None else vessel.lube_supplier)
    ports = builder.build_port_stops(schedule, delivery_charges)

    tanks = default_tank_configs(avg_daily_consumption, cylinder_min_rob_days)
    oil_grades: List[OilGradeConfig] = []
    for grade in GRADES:
        tank = tanks[grade]
        override = (tank_overrides or {}).get(grade, {})
        if override:
            tank = TankConfig(
                capacity=float(override.get("capacity", tank.capacity)),
                max_fill_pct=float(override.get("max_fill_pct", tank.max_fill_pct)),
                min_rob=float(override.get("min_rob", tank.min_rob)),
            )
        oil_grades.append(OilGradeConfig(
            category=grade,
            label=GRADE_LABELS[grade],
            tank_config=tank,
            avg_daily_consumption=float(avg_daily_consumption.get(grade, 0.0)),
        ))

    inp = OptimizerInput(
        vessel=vessel,
        ports=ports,
        current_rob={g: float(current_rob.get(g, 0.0)) for g in GRADES},
        oil_grades=oil_grades,
        window_size=int(window_size if window_size is not None else env_float("OPTIMIZER_WINDOW_SIZE", 5)),
        safety_buffer_pct=float(safety_buffer_pct if safety_buffer_pct is not None else env_float("OPTIMIZER_SAFETY_BUFFER_PCT", 10.0)),
        delivery_charges=delivery_charges,
        min_order_qty=min_order_qty or MinOrderConfig.from_env(),
        reorder_config=reorder_config or ReorderConfig.from_env(),
    )
    validate_optimizer_input(inp)
    return inp


def validate_optimizer_input(inp: OptimizerInput) -> None:
    """Structural checks the optimizer relies on; raises ValueError listing every problem."""
    issues: List[str] = []

    if not inp.ports:
        issues.append("no port stops")
    if set(inp.current_rob) != set(inp.grade_names):
        issues.append("current_rob grades do not match oil_grades")
    for g in inp.oil_grades:
        if g.tank_config.capacity < 0 or g.tank_config.min_rob < 0:
            issues.append(f"{g.category}: negative tank capacity or min ROB")
        if g.avg_daily_consumption < 0:
            issues.append(f"{g.category}: negative daily consumption")
    if any(p.sea_days_to_next < 0 for p in inp.ports):
        issues.append("negative sea days")
    if not (0 < inp.reorder_config.target_fill_pct <= 1):
        issues.append("target_fill_pct must be in (0, 1]")

    if issues:
        raise ValueError("invalid optimizer input: " + "; ".join(issues))
