"""
Order Routes
============

Customer-facing checkout and order tracking endpoints, plus the status
update endpoint used by the kitchen, POS and courier integrations.

Endpoints:
----------
- POST /orders: Place an order from a cart
- POST /orders/payment-intent: Payment intent payload for a cart
- GET /orders/{id}: Order status and details
- POST /orders/{id}/status: Apply a status update (admin auth)
- POST /orders/{id}/cancel: Customer cancel within the cancel window
- GET /orders/{id}/cancel-window: Time left to cancel

Placing an Order:
-----------------
1. The cart is loaded server-side and its fee breakdown computed
2. Pre-placement checks run (see storefront.orders.validate_order_submission);
   a failed check returns 400 with a message the customer can act on
3. The order is persisted in "created" status with its items
4. The customer's contact details are remembered on the cart and the cart
   is cleared

Status Updates:
---------------
Updates are guarded by the order state machine. A refused update returns
409 with the reason ("Invalid state transition", "Pickup orders do not use
courier", ...). Unknown status strings are refused, never applied.

Rate Limiting:
--------------
POST /orders is rate limited per client IP (RATE_LIMIT_ORDERS).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import config
from ..auth import verify_admin_credentials
from ..cart import GuestInfo
from ..db import get_db
from ..errors import InvalidTransitionError, OrderSubmissionError, get_friendly_order_error
from ..fees import FeeConfig
from ..middleware import get_fee_config, get_tenant_from_request
from ..models import Order
from ..order_status import is_terminal, next_status, normalize_order_status, status_display
from ..orders import (
    CustomerContact,
    build_order_payload,
    build_payment_intent_payload,
    cancel_window_remaining,
    validate_order_submission,
)
from ..schemas.orders import (
    CancelRequest,
    CancelWindowOut,
    OrderEventOut,
    OrderItemOut,
    OrderOut,
    PaymentIntentPayloadRequest,
    PaymentIntentRequest,
    PlaceOrderRequest,
    StatusUpdateRequest,
)
from ..services.cart_store import load_cart, save_cart
from ..services.order import (
    apply_status_update,
    cancel_order_by_customer,
    create_order,
    get_order,
)


logger = logging.getLogger(__name__)

orders_router = APIRouter(prefix="/orders", tags=["Orders"])


# =============================================================================
# Rate Limiting Setup
# =============================================================================

limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)


# =============================================================================
# Helper Functions
# =============================================================================

def order_to_out(order: Order) -> OrderOut:
    """Full order view with status display and the expected next status."""
    display = status_display(order.status)
    upcoming = next_status(order.status, order.fulfillment_type)
    return OrderOut(
        id=order.id,
        status=normalize_order_status(order.status).value,
        fulfillment_type=order.fulfillment_type,
        customer_first_name=order.customer_first_name,
        customer_last_name=order.customer_last_name,
        phone=order.phone,
        customer_email=order.customer_email,
        total_cents=order.total_cents,
        payment_method=order.payment_method,
        tenant_slug=order.tenant_slug,
        created_at=order.created_at,
        status_label=display["label"],
        status_description=display["description"],
        next_status=upcoming.value if upcoming else None,
        is_terminal=is_terminal(order.status),
        delivery_address=order.delivery_address,
        subtotal_cents=order.subtotal_cents,
        discount_cents=order.discount_cents,
        tax_cents=order.tax_cents,
        platform_fee_cents=order.platform_fee_cents,
        delivery_fee_cents=order.delivery_fee_cents,
        tip_cents=order.tip_cents,
        processor_fee_estimate_cents=order.processor_fee_estimate_cents,
        net_payout_estimate_cents=order.net_payout_estimate_cents,
        tip_mode=order.tip_mode,
        promo_code=order.promo_code,
        delivery_quote_id=order.delivery_quote_id,
        items_summary=order.items_summary,
        items=[OrderItemOut.model_validate(item) for item in order.items],
        events=[OrderEventOut.model_validate(event) for event in order.events],
    )


def _get_order_or_404(db: Session, order_id: int) -> Order:
    order = get_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# =============================================================================
# Checkout Endpoints
# =============================================================================

@orders_router.post("", response_model=OrderOut, status_code=201)
@limiter.limit(config.get_rate_limit_orders)
def place_order(
    request: Request,
    payload: PlaceOrderRequest,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
) -> OrderOut:
    """
    Place an order from a cart.

    Totals come from the server-side cart only. The cart is cleared once the
    order is saved; the customer's contact details are kept on it.
    """
    tenant_slug = get_tenant_from_request(request)

    cart = load_cart(db, payload.cart_id, tenant_slug=tenant_slug)
    if cart is None:
        raise HTTPException(status_code=404, detail="Cart not found")

    breakdown = cart.totals(fee_config)
    contact = CustomerContact(**payload.customer.model_dump())

    try:
        contact = validate_order_submission(
            cart,
            contact,
            breakdown,
            payment_method=payload.payment_method,
            payment_intent_id=payload.payment_intent_id,
        )
    except OrderSubmissionError as e:
        logger.info("Order submission rejected for cart %s: %s (%s)", cart.cart_id, e.message, e.field)
        raise HTTPException(status_code=400, detail=e.message)

    order_payload = build_order_payload(
        cart,
        contact,
        breakdown,
        payment_method=payload.payment_method,
        payment_intent_id=payload.payment_intent_id,
    )

    try:
        order = create_order(db, order_payload, tenant_slug=tenant_slug)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to save order for cart %s", cart.cart_id)
        raise HTTPException(status_code=500, detail=get_friendly_order_error(e))

    cart.guest = GuestInfo(name=contact.full_name, email=contact.email, phone=contact.phone)
    cart.clear()
    save_cart(db, cart, tenant_slug=tenant_slug)

    return order_to_out(order)


@orders_router.post("/payment-intent", response_model=PaymentIntentRequest)
def payment_intent_payload(
    payload: PaymentIntentPayloadRequest,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> PaymentIntentRequest:
    """
    Build the payment intent request for a cart.

    application_fee_cents equals the platform fee shown to the customer as
    the service fee.
    """
    cart = load_cart(db, payload.cart_id, tenant_slug=tenant_slug)
    if cart is None:
        raise HTTPException(status_code=404, detail="Cart not found")
    if not cart.items:
        raise HTTPException(status_code=400, detail="Your cart is empty")

    return build_payment_intent_payload(
        cart,
        CustomerContact(**payload.customer.model_dump()),
        cart.totals(fee_config),
        payment_intent_id=payload.payment_intent_id,
    )


# =============================================================================
# Order Tracking Endpoints
# =============================================================================

@orders_router.get("/{order_id}", response_model=OrderOut)
def read_order(order_id: int, db: Session = Depends(get_db)) -> OrderOut:
    return order_to_out(_get_order_or_404(db, order_id))


@orders_router.post("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> OrderOut:
    """
    Apply a status update from the kitchen, POS or courier.

    Aliases such as "confirmed" or "out_for_delivery" are accepted.
    """
    order = _get_order_or_404(db, order_id)
    current = order.status

    result = apply_status_update(db, order, payload.status, source=payload.source, note=payload.note)
    if not result:
        raise InvalidTransitionError(current, payload.status, result.reason)

    return order_to_out(order)


@orders_router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
) -> OrderOut:
    order = _get_order_or_404(db, order_id)
    current = order.status

    result = cancel_order_by_customer(db, order, reason=payload.reason if payload else None)
    if not result:
        raise InvalidTransitionError(current, "canceled", result.reason)

    return order_to_out(order)


@orders_router.get("/{order_id}/cancel-window", response_model=CancelWindowOut)
def read_cancel_window(order_id: int, db: Session = Depends(get_db)) -> CancelWindowOut:
    order = _get_order_or_404(db, order_id)
    window = cancel_window_remaining(order.created_at)
    if is_terminal(order.status):
        return CancelWindowOut(remaining_seconds=0, remaining_ms=0, expired=True, formatted_time="0:00")
    return CancelWindowOut(
        remaining_seconds=window.remaining_seconds,
        remaining_ms=window.remaining_ms,
        expired=window.expired,
        formatted_time=window.formatted_time,
    )
