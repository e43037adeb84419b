"""
Order Persistence Service
=========================

Persists placed orders and applies status changes to them.

Key Functions:
--------------
- create_order: Save an OrderCreate payload with its items and the initial
  "created" event
- apply_status_update: Normalize an inbound status, guard the transition,
  record an OrderEvent and update the order
- cancel_order_by_customer: Customer cancel, allowed only inside the cancel
  window and only where the state machine allows "canceled"

Status Updates:
---------------
Inbound status strings come from kitchen tablets, POS integrations and
courier webhooks, in whatever order the transport delivers them. Each one
is checked against the order's current status at the time it is applied, so
a late "accepted" arriving after "in_kitchen" is rejected instead of moving
the order backwards.

A raw status that is neither a canonical status nor a known alias is never
applied. Normalization alone would read it as "created", which must not
reset a live order.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Order, OrderEvent, OrderItem
from ..order_status import (
    INITIAL_STATUS,
    TransitionResult,
    guard_transition,
    is_known_status,
    normalize_order_status,
)
from ..orders import cancel_window_remaining
from ..schemas.orders import OrderCreate


logger = logging.getLogger(__name__)


def create_order(
    db: Session,
    payload: OrderCreate,
    tenant_slug: Optional[str] = None,
) -> Order:
    """
    Persist a new order in the initial status.

    Args:
        db: Database session
        payload: Order payload built from a validated cart
        tenant_slug: Tenant the order belongs to

    Returns:
        The created Order with items and its creation event
    """
    order = Order(
        status=INITIAL_STATUS.value,
        fulfillment_type=payload.fulfillment_type,
        tenant_slug=tenant_slug,
        customer_first_name=payload.customer.first_name,
        customer_last_name=payload.customer.last_name,
        phone=payload.customer.phone,
        customer_email=payload.customer.email,
        delivery_address=payload.delivery.model_dump() if payload.delivery else None,
        subtotal_cents=payload.totals.subtotal,
        discount_cents=payload.totals.discount,
        tax_cents=payload.totals.tax,
        platform_fee_cents=payload.breakdown.platform_fee,
        delivery_fee_cents=payload.totals.delivery_fee,
        tip_cents=payload.totals.tip,
        total_cents=payload.totals.total,
        processor_fee_estimate_cents=payload.breakdown.processor_fee_estimate,
        net_payout_estimate_cents=payload.breakdown.net_payout_estimate,
        tip_mode=payload.tip_mode,
        promo_code=payload.promo_code,
        payment_method=payload.payment_method,
        payment_intent_id=payload.payment_intent_id,
        delivery_provider=payload.metadata.get("delivery_provider"),
        delivery_quote_id=payload.delivery_quote.quote_id if payload.delivery_quote else None,
        items_summary=payload.order_items_summary,
        extra_metadata=payload.metadata,
    )

    for item in payload.items:
        order.items.append(OrderItem(
            sku=item.sku,
            name=item.name,
            quantity=item.quantity,
            unit=item.unit,
            unit_label=item.unit_label,
            quantity_display=item.quantity_display,
            unit_price_cents=item.price_cents,
            line_total_cents=item.line_total_cents,
            modifiers=[mod.model_dump() for mod in item.modifiers],
            note=item.note,
        ))

    order.events.append(OrderEvent(
        from_status=None,
        to_status=INITIAL_STATUS.value,
        source="customer",
    ))

    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info(
        "Created order %d (%s, %d items, total=%d cents)",
        order.id,
        order.fulfillment_type,
        len(payload.items),
        order.total_cents,
    )
    return order


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return db.query(Order).filter(Order.id == order_id).first()


def apply_status_update(
    db: Session,
    order: Order,
    raw_status: str,
    source: str = "system",
    note: Optional[str] = None,
) -> TransitionResult:
    """
    Apply an inbound status to an order if the state machine allows it.

    Returns:
        TransitionResult; on rejection nothing is written.
    """
    if not is_known_status(raw_status):
        logger.warning(
            "Ignoring unrecognized status %r for order %d from %s", raw_status, order.id, source
        )
        return TransitionResult(False, "Unrecognized status")

    current = normalize_order_status(order.status)
    target = normalize_order_status(raw_status)

    result = guard_transition(current, target, order.fulfillment_type)
    if not result.allowed:
        logger.info(
            "Rejected transition for order %d: %s -> %s (%s)",
            order.id,
            current.value,
            target.value,
            result.reason,
        )
        return result

    order.status = target.value
    order.events.append(OrderEvent(
        from_status=current.value,
        to_status=target.value,
        source=source,
        note=note,
    ))
    db.commit()
    db.refresh(order)

    logger.info("Order %d moved %s -> %s (source=%s)", order.id, current.value, target.value, source)
    return result


def cancel_order_by_customer(
    db: Session,
    order: Order,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Cancel an order on the customer's behalf.

    Refused once the cancel window has passed, or when the order is already
    in a status that cannot be canceled (picked up, delivered, ...).
    """
    window = cancel_window_remaining(order.created_at, now=now)
    if window.expired:
        logger.info("Cancel window expired for order %d", order.id)
        return TransitionResult(False, "Cancel window has expired")

    return apply_status_update(db, order, "canceled", source="customer", note=reason)
