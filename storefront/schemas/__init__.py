"""
Schemas Package for the Storefront
==================================

Pydantic models used for API request validation and response serialization.

Schema Organization:
--------------------
- **pricing.py**: Line items, tips, promos, fee breakdowns, delivery fee
- **cart.py**: Cart actions and cart views
- **orders.py**: Order payloads, payment intent payload, order views

Naming Conventions:
-------------------
- *In: Shapes accepted from clients
- *Out: Response models
- *Create: Payloads for creating a record
- *Request / *Response: Endpoint-specific bodies

Usage:
------
    from storefront.schemas import FeeBreakdownOut, OrderOut
"""

from .pricing import (
    ModifierIn,
    LineItemIn,
    TipIn,
    PromoIn,
    FeeBreakdownOut,
    BreakdownRequest,
    DeliveryFeeRequest,
    DeliveryFeeResponse,
)

from .orders import (
    CustomerIn,
    DeliveryAddressIn,
    DeliveryQuoteIn,
    DeliveryQuoteOut,
    OrderItemPayload,
    OrderItemMetadata,
    OrderTotals,
    PaymentBreakdown,
    OrderCreate,
    PaymentIntentRequest,
    PlaceOrderRequest,
    PaymentIntentPayloadRequest,
    StatusUpdateRequest,
    CancelRequest,
    OrderItemOut,
    OrderEventOut,
    OrderSummaryOut,
    OrderOut,
    OrderListResponse,
    CancelWindowOut,
)

from .cart import (
    CartItemUpdate,
    TipUpdate,
    FulfillmentUpdate,
    CartLineOut,
    TipOut,
    CartOut,
)
