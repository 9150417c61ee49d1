"""
Delivery cost model for lube-oil bunkering events.

Components (supplier pricing model):
  1. Port price differential: (rate / 100) x total liters
  2. Small order surcharge when the bulk order is below the port threshold
  3. Urgent order surcharge when available working days < supplier lead time

Ports without delivery terms fall back to a flat per-event charge.
"""

import math
from datetime import datetime, timezone
from typing import Any, Optional

from lube_models import DeliveryBreakdown, PortDeliveryConfig


def compute_delivery_cost(
    config: Optional[PortDeliveryConfig],
    total_liters: float,
    available_days: float,
    fallback_flat: float,
) -> DeliveryBreakdown:
    """
    Args:
        config: port delivery terms, or None for the flat fallback
        total_liters: liters delivered at this port across all grades
        available_days: working days until arrival (-1 = unknown, never urgent)
        fallback_flat: flat USD charge used when config is None
    """
    if total_liters <= 0:
        return DeliveryBreakdown()

    if config is None:
        return DeliveryBreakdown(differential=fallback_flat, total=fallback_flat)

    differential = (config.differential_per_100l / 100.0) * total_liters
    small_order = config.small_order_surcharge if 0 < total_liters < config.small_order_threshold_l else 0.0
    urgent = config.urgent_order_surcharge if 0 <= available_days < config.lead_time_days else 0.0

    return DeliveryBreakdown(
        differential=differential,
        small_order_surcharge=small_order,
        urgent_surcharge=urgent,
        total=differential + small_order + urgent,
    )


def estimate_delivery_cost(
    config: Optional[PortDeliveryConfig],
    estimated_liters: float,
    fallback_flat: float,
) -> float:
    """Scoring-only estimate: assumes standard lead time, so no urgent surcharge."""
    if config is None:
        return fallback_flat
    if estimated_liters <= 0:
        return 0.0

    differential = (config.differential_per_100l / 100.0) * estimated_liters
    small_order = config.small_order_surcharge if estimated_liters < config.small_order_threshold_l else 0.0
    return differential + small_order


def _parse_arrival(d: Any) -> Optional[datetime]:
    if d is None:
        return None
    if isinstance(d, datetime):
        return d
    s = str(d).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def compute_available_days(arrival_date: Any, now: Optional[datetime] = None) -> int:
    """
    Working days between now and a port arrival (calendar days x 5/7, floored).
    Returns -1 when the arrival date is missing or unparseable.
    """
    arrival = _parse_arrival(arrival_date)
    if arrival is None:
        return -1

    if arrival.tzinfo is None:
        arrival = arrival.replace(tzinfo=timezone.utc)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    diff_days = (arrival - now).total_seconds() / 86400.0
    return max(0, int(math.floor(diff_days * (5.0 / 7.0))))
