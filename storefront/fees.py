"""
Fee and rate primitives.

This module holds the tenant-scoped fee configuration and the two fee
formulas the pricing engine builds on:

- Platform fee: the operator's commission on the discounted subtotal. It is
  charged to the customer as the service fee and passed to the payment
  processor as the application fee, so both always carry the same value.
- Processor fee estimate: the expected card processing cost (2.9% + $0.30 by
  default). Only used for merchant payout transparency; the processor
  decides the real amount at capture time.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import config
from .money import clamp_cents, clamp_rate, round_cents


@dataclass(frozen=True)
class DeliveryZone:
    """One step of the zone-based delivery fee schedule."""
    max_distance_km: float
    fee_cents: int
    label: str = ""
    min_order_cents: int = 0
    eta_minutes: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeliveryZone":
        return cls(
            max_distance_km=float(data["max_distance_km"]),
            fee_cents=int(data["fee_cents"]),
            label=data.get("label", ""),
            min_order_cents=int(data.get("min_order_cents", 0) or 0),
            eta_minutes=data.get("eta_minutes"),
        )


def _default_zones() -> List[DeliveryZone]:
    return [
        DeliveryZone(max_distance_km=distance, fee_cents=fee, label=f"Within {distance:g} km")
        for distance, fee in config.DELIVERY_ZONES
    ]


@dataclass(frozen=True)
class FeeConfig:
    """
    Tenant fee configuration, read-only during pricing.

    Attributes:
        tax_rate: Sales tax as a fraction (0.0875)
        platform_fee_rate: Platform fee as a fraction; 0 means "use default"
        processor_percent_rate: Processor percentage component (0.029)
        processor_fixed_fee_cents: Processor fixed component (30)
        max_courier_tip_cents: Courier tip ceiling for delivery orders
        delivery_zones: Distance thresholds -> flat fee, ascending
        courier_provider: Courier name recorded on delivery breakdowns
    """
    tax_rate: float = config.DEFAULT_TAX_RATE
    platform_fee_rate: float = config.DEFAULT_PLATFORM_FEE_RATE
    processor_percent_rate: float = config.PROCESSOR_PERCENT_FEE
    processor_fixed_fee_cents: int = config.PROCESSOR_FIXED_FEE_CENTS
    max_courier_tip_cents: int = config.MAX_COURIER_TIP_CENTS
    delivery_zones: List[DeliveryZone] = field(default_factory=_default_zones)
    courier_provider: str = config.COURIER_PROVIDER

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FeeConfig":
        """Build from a tenant JSON block; missing keys fall back to env defaults."""
        data = data or {}
        defaults = cls()
        zones = data.get("delivery_zones")
        return cls(
            tax_rate=clamp_rate(data.get("tax_rate", defaults.tax_rate)),
            platform_fee_rate=clamp_rate(data.get("platform_fee_rate", defaults.platform_fee_rate)),
            processor_percent_rate=clamp_rate(
                data.get("processor_percent_rate", defaults.processor_percent_rate)
            ),
            processor_fixed_fee_cents=clamp_cents(
                data.get("processor_fixed_fee_cents", defaults.processor_fixed_fee_cents)
            ),
            max_courier_tip_cents=clamp_cents(
                data.get("max_courier_tip_cents", defaults.max_courier_tip_cents)
            ),
            delivery_zones=(
                sorted((DeliveryZone.from_dict(z) for z in zones), key=lambda z: z.max_distance_km)
                if zones is not None
                else defaults.delivery_zones
            ),
            courier_provider=data.get("courier_provider", defaults.courier_provider),
        )


def effective_platform_fee_rate(rate: Optional[float]) -> float:
    """Configured platform fee rate, or the default when zero/absent."""
    rate = clamp_rate(rate)
    return rate if rate > 0 else config.DEFAULT_PLATFORM_FEE_RATE


def calculate_platform_fee(subtotal_cents: int, fee_rate: Optional[float] = None) -> int:
    """Platform fee in cents for a (discounted) subtotal."""
    subtotal_cents = clamp_cents(subtotal_cents)
    if subtotal_cents <= 0:
        return 0
    return max(round_cents(subtotal_cents * effective_platform_fee_rate(fee_rate)), 0)


def estimate_processor_fee(
    amount_cents: int,
    percent_rate: float = config.PROCESSOR_PERCENT_FEE,
    fixed_fee_cents: int = config.PROCESSOR_FIXED_FEE_CENTS,
) -> int:
    """Estimated processor fee for a charge; 0 for a non-positive amount."""
    amount_cents = clamp_cents(amount_cents)
    if amount_cents <= 0:
        return 0
    return max(
        round_cents(amount_cents * clamp_rate(percent_rate) + clamp_cents(fixed_fee_cents)),
        0,
    )
