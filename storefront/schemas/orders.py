"""
Order Schemas
=============

This module defines Pydantic models for placing and tracking orders, the
payment intent payload handed to the payment processor, and the admin order
views.

Endpoint Coverage:
------------------
- POST /orders: Place an order from a cart
- GET /orders/{id}: Order status and details
- POST /orders/{id}/status: Apply a status update (kitchen, POS, courier)
- POST /orders/{id}/cancel: Customer cancel within the cancel window
- GET /orders/{id}/cancel-window: Time left to cancel
- GET /admin/orders, GET /admin/orders/{id}: Admin views

Order Lifecycle:
----------------
created -> accepted -> in_kitchen -> ready, then either handed to the
customer (pickup) or to a courier (delivery). See storefront.order_status.

Money:
------
Every amount is integer cents. The order payload carries both the customer
totals and the payment breakdown; the payment intent's application fee is
the breakdown's platform fee, never recomputed.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .pricing import ModifierIn

PaymentMethod = Literal["card", "apple_pay", "google_pay", "pos"]


# =============================================================================
# Shared Shapes
# =============================================================================

class CustomerIn(BaseModel):
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""


class DeliveryAddressIn(BaseModel):
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    instructions: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    country: str = "US"


class DeliveryQuoteIn(BaseModel):
    quote_id: str
    fee_cents: int
    expires_at: Optional[datetime] = None
    provider: str = "uber_direct"
    currency: str = "usd"
    eta_minutes: Optional[int] = None


class DeliveryQuoteOut(DeliveryQuoteIn):
    expired: bool = False


# =============================================================================
# Order Payload
# =============================================================================

class OrderItemPayload(BaseModel):
    """One line of the order as sent to the order service."""
    sku: str
    name: str
    price_cents: int
    quantity: float
    unit: str
    unit_label: Optional[str] = None
    quantity_display: str
    line_total_cents: int
    modifiers: List[ModifierIn] = Field(default_factory=list)
    note: Optional[str] = None
    image: Optional[str] = None


class OrderItemMetadata(BaseModel):
    """Compact per-item record attached to payment metadata."""
    sku: Optional[str] = None
    name: str
    quantity: float
    unit: str
    unit_label: Optional[str] = None
    quantity_display: str
    unit_price_cents: int
    total_price_cents: int
    modifiers: List[str] = Field(default_factory=list)
    note: Optional[str] = None


class OrderTotals(BaseModel):
    """Customer-facing totals."""
    subtotal: int
    tax: int
    service_fee: int
    delivery_fee: int = 0
    tip: int
    discount: int = 0
    total: int


class PaymentBreakdown(BaseModel):
    """Merchant-facing breakdown of where the total goes."""
    subtotal: int
    delivery_fee: int
    platform_fee: int
    processor_fee_estimate: int
    tax: int
    tip: int
    discount: int
    total: int
    net_payout_estimate: int


class OrderCreate(BaseModel):
    """
    Complete order payload built from a validated cart.

    Built by storefront.orders.build_order_payload; persisted by
    storefront.services.order.create_order.
    """
    fulfillment_type: Literal["pickup", "delivery"]
    items: List[OrderItemPayload]
    customer: CustomerIn
    delivery: Optional[DeliveryAddressIn] = None
    totals: OrderTotals
    breakdown: PaymentBreakdown
    tip_mode: Literal["percent", "amount"] = "percent"
    promo_code: Optional[str] = None
    promo_id: Optional[str] = None
    order_items_summary: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    delivery_quote: Optional[DeliveryQuoteIn] = None
    payment_method: PaymentMethod = "card"
    payment_intent_id: Optional[str] = None


class PaymentIntentRequest(BaseModel):
    """
    Payload for creating a payment intent.

    amount is the grand total. application_fee_cents is the platform fee
    from the same breakdown the customer saw.
    """
    amount: int
    subtotal: int
    tax: int
    service_fee: int
    delivery_fee: int = 0
    tip: int
    discount: int = 0
    currency: str = "usd"
    platform_fee: int
    application_fee_cents: int
    processor_fee_estimate: int
    delivery_provider: Optional[str] = None
    fulfillment_type: Literal["pickup", "delivery"]
    breakdown: PaymentBreakdown
    order_items: List[OrderItemMetadata] = Field(default_factory=list)
    order_items_summary: str = ""
    payment_intent_id: Optional[str] = None
    customer: CustomerIn


# =============================================================================
# HTTP Requests
# =============================================================================

class PlaceOrderRequest(BaseModel):
    """
    Request body for POST /orders.

    The cart is loaded server-side; totals are never taken from the client.
    """
    cart_id: str
    customer: CustomerIn
    payment_method: PaymentMethod = "card"
    payment_intent_id: Optional[str] = None


class PaymentIntentPayloadRequest(BaseModel):
    """Request body for POST /orders/payment-intent."""
    cart_id: str
    customer: CustomerIn = Field(default_factory=CustomerIn)
    payment_intent_id: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    """
    Status update from the kitchen, POS or courier.

    status may be a canonical status or a known alias ("confirmed",
    "preparing", "out_for_delivery").
    """
    status: str
    source: str = "system"
    note: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


# =============================================================================
# Responses
# =============================================================================

class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: Optional[str] = None
    name: str
    quantity: float
    unit: str
    unit_label: Optional[str] = None
    quantity_display: Optional[str] = None
    unit_price_cents: int
    line_total_cents: int
    modifiers: Optional[List[Dict[str, Any]]] = None
    note: Optional[str] = None


class OrderEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_status: Optional[str] = None
    to_status: str
    source: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime


class OrderSummaryOut(BaseModel):
    """Order list row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    fulfillment_type: str
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    phone: Optional[str] = None
    customer_email: Optional[str] = None
    total_cents: int
    payment_method: Optional[str] = None
    tenant_slug: Optional[str] = None
    created_at: datetime


class OrderOut(OrderSummaryOut):
    """
    Full order view: totals, status display, expected next status, items and
    status history.
    """
    status_label: str
    status_description: str
    next_status: Optional[str] = None
    is_terminal: bool
    delivery_address: Optional[Dict[str, Any]] = None
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    platform_fee_cents: int
    delivery_fee_cents: int
    tip_cents: int
    processor_fee_estimate_cents: int
    net_payout_estimate_cents: int
    tip_mode: Optional[str] = None
    promo_code: Optional[str] = None
    delivery_quote_id: Optional[str] = None
    items_summary: Optional[str] = None
    items: List[OrderItemOut] = Field(default_factory=list)
    events: List[OrderEventOut] = Field(default_factory=list)


class OrderListResponse(BaseModel):
    """
    Paginated response for order listing.

    Example:
        {
            "items": [...],
            "page": 1,
            "page_size": 20,
            "total": 157,
            "has_next": true
        }
    """
    items: List[OrderSummaryOut]
    page: int
    page_size: int
    total: int
    has_next: bool


class CancelWindowOut(BaseModel):
    remaining_seconds: int
    remaining_ms: int
    expired: bool
    formatted_time: str
