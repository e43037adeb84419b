"""
Cart Schemas
============

Request/response models for the cart endpoints.

Endpoint Coverage:
------------------
- GET/DELETE /cart/{cart_id}
- POST /cart/{cart_id}/items
- PATCH/DELETE /cart/{cart_id}/items/{line_id}
- PUT /cart/{cart_id}/tip
- PUT/DELETE /cart/{cart_id}/promo
- PUT /cart/{cart_id}/fulfillment
- POST /cart/{cart_id}/delivery-quote
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .orders import DeliveryAddressIn, DeliveryQuoteIn, DeliveryQuoteOut
from .pricing import FeeBreakdownOut, ModifierIn


class CartItemUpdate(BaseModel):
    """Either field may be sent; quantity below the unit minimum removes the line."""
    quantity: Optional[float] = None
    note: Optional[str] = None


class TipUpdate(BaseModel):
    """A custom amount wins over a percentage when both are sent."""
    percentage: Optional[float] = None
    custom_cents: Optional[int] = None


class FulfillmentUpdate(BaseModel):
    fulfillment_type: Optional[Literal["pickup", "delivery"]] = None
    delivery_address: Optional[DeliveryAddressIn] = None
    delivery_quote: Optional[DeliveryQuoteIn] = None


class CartLineOut(BaseModel):
    line_id: str
    sku: str
    name: str
    unit_price_cents: int
    quantity: float
    unit: str
    unit_label: Optional[str] = None
    quantity_display: str
    modifiers: List[ModifierIn] = Field(default_factory=list)
    note: str = ""
    image: Optional[str] = None
    line_total_cents: int


class TipOut(BaseModel):
    mode: Literal["percent", "amount"]
    percentage: float
    custom_cents: int


class CartOut(BaseModel):
    cart_id: str
    items: List[CartLineOut]
    item_count: float
    tip: TipOut
    promo_code: Optional[str] = None
    promo_discount_cents: int = 0
    fulfillment_type: Optional[str] = None
    delivery_address: Optional[DeliveryAddressIn] = None
    delivery_quote: Optional[DeliveryQuoteOut] = None
    totals: FeeBreakdownOut
