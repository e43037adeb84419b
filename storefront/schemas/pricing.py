"""
Pricing Schemas
===============

Request/response models for the pricing endpoints and the shared line item,
tip and promo shapes reused by the cart and order schemas.

Endpoint Coverage:
------------------
- POST /pricing/breakdown: Full fee breakdown for an ad-hoc cart
- POST /pricing/delivery-fee: Zone-based delivery fee for a distance

All money fields are integer cents.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..pricing import CartLineItem, CartModifier, DiscountType, Promo, TipSelection


class ModifierIn(BaseModel):
    """A selected modifier on a line item."""
    id: str
    name: str
    price_cents: int = 0

    def to_modifier(self) -> CartModifier:
        return CartModifier(id=self.id, name=self.name, price_cents=self.price_cents)


class LineItemIn(BaseModel):
    """
    A product line as sent by the client.

    Attributes:
        sku: Menu item identifier
        name: Display name
        unit_price_cents: Price per unit (per each, per lb, ...)
        quantity: Fractional for weight units (0.25 lb)
        unit: Any unit spelling ("lbs", "fl. oz"); normalized server-side
        modifiers: Selected options
        note: Special instructions
    """
    sku: str
    name: str
    unit_price_cents: int
    quantity: float = Field(default=1, gt=0)
    unit: Optional[str] = None
    modifiers: List[ModifierIn] = Field(default_factory=list)
    note: str = ""
    unit_label: Optional[str] = None
    image: Optional[str] = None

    def to_line_item(self) -> CartLineItem:
        return CartLineItem(
            sku=self.sku,
            name=self.name,
            unit_price_cents=self.unit_price_cents,
            quantity=self.quantity,
            unit=self.unit,
            modifiers=[mod.to_modifier() for mod in self.modifiers],
            note=self.note,
            unit_label=self.unit_label,
            image=self.image,
        )


class TipIn(BaseModel):
    percentage: float = 0
    custom_cents: int = 0

    def to_selection(self) -> TipSelection:
        return TipSelection(percentage=self.percentage, custom_cents=self.custom_cents)


class PromoIn(BaseModel):
    """A promo that has already been validated by the promo service."""
    code: str
    discount_type: Literal["percentage", "fixed_amount"]
    discount_value: float
    max_discount_cents: Optional[int] = None
    id: Optional[str] = None
    name: str = ""

    def to_promo(self) -> Promo:
        return Promo(
            code=self.code,
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            max_discount_cents=self.max_discount_cents,
            id=self.id,
            name=self.name,
        )


class FeeBreakdownOut(BaseModel):
    """
    Response model for a fee breakdown.

    service_fee and application_fee always equal platform_fee.
    """
    model_config = ConfigDict(from_attributes=True)

    raw_subtotal: int
    discount: int
    subtotal: int
    tax: int
    platform_fee: int
    service_fee: int
    application_fee: int
    delivery_fee: int
    tip: int
    tip_was_capped: bool
    total: int
    processor_fee_estimate: int
    net_payout_estimate: int
    fulfillment_type: str
    courier: Optional[str] = None


class BreakdownRequest(BaseModel):
    """
    Request body for POST /pricing/breakdown.

    For delivery, delivery_fee_cents (the courier quote fee) is used as-is.
    Without it, distance_km is priced against the tenant's delivery zones.
    """
    items: List[LineItemIn] = Field(default_factory=list)
    tip: Optional[TipIn] = None
    promo: Optional[PromoIn] = None
    promo_discount_cents: int = 0
    fulfillment_type: Literal["pickup", "delivery"] = "pickup"
    delivery_fee_cents: Optional[int] = None
    distance_km: Optional[float] = None


class DeliveryFeeRequest(BaseModel):
    """Either distance_km or both coordinates of the drop-off point."""
    distance_km: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class DeliveryFeeResponse(BaseModel):
    available: bool
    fee_cents: Optional[int] = None
    distance_km: Optional[float] = None
    zone_label: Optional[str] = None
    min_order_cents: Optional[int] = None
    eta_minutes: Optional[int] = None
    reason: Optional[str] = None
