"""
Pricing Engine for Cart Totals.

This module turns a cart (line items, modifiers, quantities, units) plus the
tenant's fee configuration into a complete fee breakdown: subtotal, discount,
tax, platform fee, delivery fee, tip, grand total, processor fee estimate and
the merchant's estimated net payout.

Rules:
------
- Line totals are rounded per line, never on the aggregate. A weight item
  such as 0.25 lb at $22.99/lb is 574.75 cents and becomes 575 on its own
  line regardless of what else is in the cart.
- The promo discount is capped at the subtotal. Tax, platform fee and a
  percentage tip are all computed from the discounted subtotal.
- A custom tip amount wins over a percentage tip. Delivery tips are capped at
  the courier's maximum; pickup tips are not.
- The platform fee doubles as the payment application fee, so both always
  use the value on the breakdown.
- Everything is clamped instead of raising: negative, NaN or missing inputs
  count as zero and the engine always returns a breakdown.

The engine is pure: the same inputs always produce the same breakdown.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Union

from .fees import DeliveryZone, FeeConfig, calculate_platform_fee, estimate_processor_fee
from .fulfillment import FulfillmentType, coerce_fulfillment
from .money import clamp_cents, clamp_quantity, clamp_rate, round_cents
from .units import CanonicalUnit, normalize_unit

logger = logging.getLogger(__name__)


# =============================================================================
# Cart Data
# =============================================================================

@dataclass
class CartModifier:
    """A selected option on a line item (extra shot, sauce on the side...)."""
    id: str
    name: str
    price_cents: int = 0


@dataclass
class CartLineItem:
    """
    One line in the cart.

    unit_price_cents is the price per unit (per each, per lb, ...); quantity
    may be fractional for weight units.
    """
    sku: str
    name: str
    unit_price_cents: int
    quantity: float = 1
    unit: CanonicalUnit = CanonicalUnit.EACH
    modifiers: List[CartModifier] = field(default_factory=list)
    note: str = ""
    unit_label: Optional[str] = None
    image: Optional[str] = None
    line_id: Optional[str] = None

    def __post_init__(self):
        self.unit = normalize_unit(self.unit)

    @property
    def line_key(self) -> str:
        """
        Deduplication key: sku + modifiers sorted by id + trimmed note.

        Two lines with the same key are the same product configuration and
        must be merged.
        """
        mods = sorted(
            (
                {"id": mod.id, "name": mod.name, "price": clamp_cents(mod.price_cents)}
                for mod in self.modifiers
            ),
            key=lambda mod: mod["id"],
        )
        return json.dumps(
            {"sku": self.sku, "mods": mods, "note": (self.note or "").strip()},
            separators=(",", ":"),
        )

    def unit_total_cents(self) -> int:
        """Unit price plus all modifier prices."""
        return clamp_cents(self.unit_price_cents) + sum(
            clamp_cents(mod.price_cents) for mod in self.modifiers
        )

    def line_total_cents(self) -> int:
        return calculate_line_total(self)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["unit"] = self.unit.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "CartLineItem":
        return cls(
            sku=data["sku"],
            name=data.get("name", ""),
            unit_price_cents=data.get("unit_price_cents", 0),
            quantity=data.get("quantity", 1),
            unit=data.get("unit"),
            modifiers=[CartModifier(**mod) for mod in data.get("modifiers") or []],
            note=data.get("note") or "",
            unit_label=data.get("unit_label"),
            image=data.get("image"),
            line_id=data.get("line_id"),
        )


@dataclass
class TipSelection:
    """
    Customer's tip choice: a percentage of the subtotal or a fixed amount.

    A custom amount greater than zero takes precedence over the percentage.
    """
    percentage: float = 0.0
    custom_cents: int = 0

    @property
    def mode(self) -> str:
        return "amount" if clamp_cents(self.custom_cents) > 0 else "percent"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


@dataclass
class Promo:
    """A validated promo code."""
    code: str
    discount_type: DiscountType
    discount_value: float
    max_discount_cents: Optional[int] = None
    id: Optional[str] = None
    name: str = ""

    def __post_init__(self):
        self.discount_type = DiscountType(self.discount_type)


# =============================================================================
# Fee Breakdown
# =============================================================================

@dataclass(frozen=True)
class FeeBreakdown:
    """
    Output of the pricing engine. All amounts in cents.

    Invariants:
        total == subtotal + tax + platform_fee + delivery_fee + tip
        net_payout_estimate == max(total - processor_fee_estimate - platform_fee
                                   - delivery_fee - courier_tip, 0)
    """
    raw_subtotal: int
    discount: int
    subtotal: int
    tax: int
    platform_fee: int
    delivery_fee: int
    tip: int
    tip_was_capped: bool
    total: int
    processor_fee_estimate: int
    net_payout_estimate: int
    fulfillment_type: FulfillmentType
    courier: Optional[str] = None

    @property
    def service_fee(self) -> int:
        """Fee shown to the customer; identical to the platform fee."""
        return self.platform_fee

    @property
    def application_fee(self) -> int:
        """Processor application fee; identical to the platform fee."""
        return self.platform_fee

    @property
    def courier_tip(self) -> int:
        return self.tip if self.fulfillment_type == FulfillmentType.DELIVERY else 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["fulfillment_type"] = self.fulfillment_type.value
        data["service_fee"] = self.service_fee
        data["application_fee"] = self.application_fee
        return data


# =============================================================================
# Calculations
# =============================================================================

def calculate_line_total(item: CartLineItem) -> int:
    """(unit price + modifiers) x quantity, rounded for this line alone."""
    return max(0, round_cents(item.unit_total_cents() * clamp_quantity(item.quantity)))


def calculate_subtotal(items: Iterable[CartLineItem]) -> int:
    """Sum of per-line rounded totals."""
    return sum(calculate_line_total(item) for item in items)


def resolve_promo_discount(promo: Optional[Promo], subtotal_cents: int) -> int:
    """
    Discount in cents for a promo against a subtotal.

    Result is min(computed discount, max cap if set, subtotal), never negative.
    """
    subtotal_cents = clamp_cents(subtotal_cents)
    if promo is None or subtotal_cents <= 0:
        return 0

    if promo.discount_type == DiscountType.PERCENTAGE:
        discount = round_cents(subtotal_cents * clamp_rate(promo.discount_value) / 100)
    else:
        discount = clamp_cents(promo.discount_value)

    if promo.max_discount_cents is not None:
        discount = min(discount, clamp_cents(promo.max_discount_cents))

    return max(0, min(discount, subtotal_cents))


def calculate_tip(
    tip: Optional[TipSelection],
    discounted_subtotal_cents: int,
    fulfillment_type: FulfillmentType,
    max_courier_tip_cents: int,
) -> tuple:
    """
    Tip in cents and whether the courier cap was applied.

    Returns:
        (tip_cents, was_capped)
    """
    if tip is None:
        return 0, False

    custom = clamp_cents(tip.custom_cents)
    if custom > 0:
        raw_tip = custom
    else:
        raw_tip = max(
            0,
            round_cents(clamp_cents(discounted_subtotal_cents) * clamp_rate(tip.percentage) / 100),
        )

    if fulfillment_type == FulfillmentType.DELIVERY:
        cap = clamp_cents(max_courier_tip_cents)
        if raw_tip > cap:
            return cap, True
    return raw_tip, False


def find_delivery_zone(distance_km: float, zones: Iterable[DeliveryZone]) -> Optional[DeliveryZone]:
    """
    The delivery zone covering a straight-line distance.

    Zones are checked from nearest to farthest; the first zone whose
    threshold covers the distance wins. Returns None when the address is out
    of range (or the distance is unusable).
    """
    if distance_km is None:
        return None
    try:
        distance = float(distance_km)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(distance):
        return None
    distance = max(0.0, distance)

    for zone in sorted(zones, key=lambda z: z.max_distance_km):
        if distance <= zone.max_distance_km:
            return zone
    return None


def zone_delivery_fee(distance_km: float, zones: Iterable[DeliveryZone]) -> Optional[int]:
    """Flat delivery fee for a distance, or None when out of range."""
    zone = find_delivery_zone(distance_km, zones)
    if zone is None:
        return None
    return clamp_cents(zone.fee_cents)


def calculate_fee_breakdown(
    items: Iterable[CartLineItem],
    tip: Optional[TipSelection] = None,
    promo_discount_cents: int = 0,
    fee_config: Optional[FeeConfig] = None,
    fulfillment_type: Union[str, FulfillmentType, None] = FulfillmentType.PICKUP,
    delivery_fee_cents: Optional[int] = 0,
) -> FeeBreakdown:
    """
    Compute the full fee breakdown for a cart.

    Args:
        items: Cart line items
        tip: Tip selection (percentage or custom amount)
        promo_discount_cents: Promo discount already resolved to cents
        fee_config: Tenant fee configuration (defaults from env)
        fulfillment_type: "pickup" or "delivery"
        delivery_fee_cents: Delivery fee for delivery orders, usually the
            courier quote's fee taken as-is. Ignored for pickup.

    Returns:
        FeeBreakdown
    """
    fee_config = fee_config or FeeConfig()
    fulfillment = coerce_fulfillment(fulfillment_type)
    is_delivery = fulfillment == FulfillmentType.DELIVERY

    raw_subtotal = calculate_subtotal(items)
    discount = min(clamp_cents(promo_discount_cents), raw_subtotal)
    subtotal = max(0, raw_subtotal - discount)

    tax = round_cents(subtotal * clamp_rate(fee_config.tax_rate))
    tip_cents, tip_was_capped = calculate_tip(
        tip, subtotal, fulfillment, fee_config.max_courier_tip_cents
    )
    platform_fee = calculate_platform_fee(subtotal, fee_config.platform_fee_rate)
    delivery_fee = clamp_cents(delivery_fee_cents) if is_delivery else 0

    total = subtotal + tax + tip_cents + platform_fee + delivery_fee
    processor_fee = estimate_processor_fee(
        total,
        fee_config.processor_percent_rate,
        fee_config.processor_fixed_fee_cents,
    )
    courier_tip = tip_cents if is_delivery else 0
    net_payout = max(total - processor_fee - platform_fee - delivery_fee - courier_tip, 0)

    if tip_was_capped:
        logger.debug("Delivery tip capped at %d cents", fee_config.max_courier_tip_cents)

    return FeeBreakdown(
        raw_subtotal=raw_subtotal,
        discount=discount,
        subtotal=subtotal,
        tax=tax,
        platform_fee=platform_fee,
        delivery_fee=delivery_fee,
        tip=tip_cents,
        tip_was_capped=tip_was_capped,
        total=total,
        processor_fee_estimate=processor_fee,
        net_payout_estimate=net_payout,
        fulfillment_type=fulfillment,
        courier=fee_config.courier_provider if is_delivery else None,
    )


class PricingEngine:
    """
    Pricing calculations bound to one tenant's fee configuration.

    Stateless apart from the (read-only) configuration, so a single instance
    can be shared across requests.
    """

    def __init__(self, fee_config: Optional[FeeConfig] = None):
        self._fee_config = fee_config or FeeConfig()

    @property
    def fee_config(self) -> FeeConfig:
        return self._fee_config

    def breakdown(
        self,
        items: Iterable[CartLineItem],
        tip: Optional[TipSelection] = None,
        promo_discount_cents: int = 0,
        fulfillment_type: Union[str, FulfillmentType, None] = FulfillmentType.PICKUP,
        delivery_fee_cents: Optional[int] = 0,
    ) -> FeeBreakdown:
        return calculate_fee_breakdown(
            items,
            tip=tip,
            promo_discount_cents=promo_discount_cents,
            fee_config=self._fee_config,
            fulfillment_type=fulfillment_type,
            delivery_fee_cents=delivery_fee_cents,
        )

    def zone_fee(self, distance_km: float) -> Optional[int]:
        """Zone-based delivery fee, or None when out of range."""
        return zone_delivery_fee(distance_km, self._fee_config.delivery_zones)
