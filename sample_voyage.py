"""
Sample voyage: one container vessel on a six-port Asia -> US West Coast rotation.
Used by main_analysis when no CSVs are given, and by the tests.
"""

from typing import Any, Dict, List

import pandas as pd

from lube_models import AE_SYSTEM_OIL, CYLINDER_OIL, ME_SYSTEM_OIL, OptimizerInput, Vessel
from voyage_input import build_optimizer_input

SAMPLE_SUPPLIER = "Gulf Oil Marine"

SAMPLE_VESSEL = Vessel(
    vessel_id="V-9001",
    vessel_name="Ocean Meridian",
    vessel_code="OMER",
    vessel_type="Container",
    fleet="Transpacific",
    lube_supplier=SAMPLE_SUPPLIER,
)

# liters on board at the first port
SAMPLE_CURRENT_ROB: Dict[str, float] = {
    CYLINDER_OIL: 45000.0,
    ME_SYSTEM_OIL: 52000.0,
    AE_SYSTEM_OIL: 9000.0,
}

# liters per sea day
SAMPLE_AVG_DAILY_CONSUMPTION: Dict[str, float] = {
    CYLINDER_OIL: 450.0,
    ME_SYSTEM_OIL: 1000.0,
    AE_SYSTEM_OIL: 150.0,
}

SAMPLE_SCHEDULE: List[Dict[str, Any]] = [
    {"port_name": "SINGAPORE", "port_code": "SGSIN", "country": "SINGAPORE",
     "arrival_date": "2027-03-01T06:00:00Z", "departure_date": "2027-03-02T06:00:00Z"},
    {"port_name": "HONG KONG", "port_code": "HKHKG", "country": "HONG KONG",
     "arrival_date": "2027-03-06T06:00:00Z", "departure_date": "2027-03-07T06:00:00Z"},
    {"port_name": "KAOHSIUNG", "port_code": "TWKHH", "country": "TAIWAN",
     "arrival_date": "2027-03-09T06:00:00Z", "departure_date": "2027-03-10T06:00:00Z"},
    {"port_name": "BUSAN", "port_code": "KRPUS", "country": "SOUTH KOREA",
     "arrival_date": "2027-03-13T06:00:00Z", "departure_date": "2027-03-14T06:00:00Z"},
    {"port_name": "TOKYO, TOKYO", "port_code": "JPTYO", "country": "JAPAN",
     "arrival_date": "2027-03-16T06:00:00Z", "departure_date": "2027-03-17T06:00:00Z"},
    {"port_name": "LOS ANGELES", "port_code": "USLAX", "country": "UNITED STATES",
     "arrival_date": "2027-03-28T06:00:00Z", "departure_date": "2027-03-30T06:00:00Z"},
]

# Long price table. Kaohsiung has no offer at all; Tokyo only quotes HS cylinder oil.
SAMPLE_PRICES: List[Dict[str, Any]] = [
    # Singapore
    {"port": "SINGAPORE", "country": "SINGAPORE", "supplier": "Gulf Oil Marine", "grade": "cylinder_oil_ls",
     "product": "GulfSea Cylcare 5040", "price": 2.05, "differential_per_100l": 4.0},
    {"port": "SINGAPORE", "country": "SINGAPORE", "supplier": "Gulf Oil Marine", "grade": "cylinder_oil_ls",
     "product": "GulfSea Cylcare 4040", "price": 2.11},
    {"port": "SINGAPORE", "country": "SINGAPORE", "supplier": "Gulf Oil Marine", "grade": "me_system_oil",
     "product": "GulfSea SuperBear 3008", "price": 1.52},
    {"port": "SINGAPORE", "country": "SINGAPORE", "supplier": "Gulf Oil Marine", "grade": "ae_system_oil",
     "product": "GulfSea Power MDL 4030", "price": 1.66},
    # Hong Kong
    {"port": "HONG KONG", "country": "HONG KONG", "supplier": "Gulf Oil Marine", "grade": "cylinder_oil_ls",
     "product": "GulfSea Cylcare 5040", "price": 2.24},
    {"port": "HONG KONG", "country": "HONG KONG", "supplier": "Gulf Oil Marine", "grade": "me_system_oil",
     "product": "GulfSea SuperBear 3008", "price": 1.61},
    # Busan
    {"port": "BUSAN", "country": "SOUTH KOREA", "supplier": "Gulf Oil Marine", "grade": "cylinder_oil_ls",
     "product": "GulfSea Cylcare 5040", "price": 1.79, "differential_per_100l": 3.5,
     "lead_time_days": 3, "small_order_threshold_l": 5000},
    {"port": "BUSAN", "country": "SOUTH KOREA", "supplier": "Gulf Oil Marine", "grade": "me_system_oil",
     "product": "GulfSea SuperBear 3008", "price": 1.38},
    {"port": "BUSAN", "country": "SOUTH KOREA", "supplier": "Gulf Oil Marine", "grade": "ae_system_oil",
     "product": "GulfSea Power MDL 4030", "price": 1.49},
    # Tokyo (short name in the price table)
    {"port": "TOKYO", "country": "JAPAN", "supplier": "Gulf Oil Marine", "grade": "cylinder_oil_hs",
     "product": "GulfSea Cylcare 7040", "price": 2.31},
    {"port": "TOKYO", "country": "JAPAN", "supplier": "Gulf Oil Marine", "grade": "ae_system_oil",
     "product": "GulfSea Power MDL 4030", "price": 1.83},
    # Los Angeles
    {"port": "LOS ANGELES", "country": "UNITED STATES", "supplier": "Gulf Oil Marine", "grade": "cylinder_oil_ls",
     "product": "GulfSea Cylcare 5040", "price": 2.42},
    {"port": "LOS ANGELES", "country": "UNITED STATES", "supplier": "Gulf Oil Marine", "grade": "me_system_oil",
     "product": "GulfSea SuperBear 3008", "price": 1.88},
    {"port": "LOS ANGELES", "country": "UNITED STATES", "supplier": "Gulf Oil Marine", "grade": "ae_system_oil",
     "product": "GulfSea Power MDL 4030", "price": 1.95},
    # Another supplier: prices ignored for this vessel, delivery terms still apply at the port
    {"port": "LOS ANGELES", "country": "UNITED STATES", "supplier": "Chevron Marine", "grade": "me_system_oil",
     "product": "Veritas 800", "price": 1.71, "differential_per_100l": 6.0, "urgent_order_surcharge": 450},
]


def get_schedule_df() -> pd.DataFrame:
    return pd.DataFrame(SAMPLE_SCHEDULE)


def get_prices_df() -> pd.DataFrame:
    return pd.DataFrame(SAMPLE_PRICES)


def build_sample_input(**kwargs) -> OptimizerInput:
    """Sample voyage as an OptimizerInput; keyword arguments go to build_optimizer_input."""
    return build_optimizer_input(
        SAMPLE_VESSEL,
        get_schedule_df(),
        get_prices_df(),
        SAMPLE_CURRENT_ROB,
        SAMPLE_AVG_DAILY_CONSUMPTION,
        **kwargs,
    )
