"""
Cart Routes
===========

Customer-facing cart endpoints. Every request loads the cart, applies one
action and saves it back, returning the full cart view with fresh totals.

Endpoints:
----------
- GET /cart/{cart_id}: Cart view with totals (an unknown id is an empty cart)
- DELETE /cart/{cart_id}: Drop the cart
- POST /cart/{cart_id}/items: Add a product (merges identical lines)
- PATCH /cart/{cart_id}/items/{line_id}: Change quantity and/or note
- DELETE /cart/{cart_id}/items/{line_id}: Remove a line
- PUT /cart/{cart_id}/tip: Percentage or custom tip
- PUT /cart/{cart_id}/promo: Attach a validated promo
- DELETE /cart/{cart_id}/promo: Remove the promo
- PUT /cart/{cart_id}/fulfillment: Pickup/delivery, address, quote
- POST /cart/{cart_id}/delivery-quote: Fetch (or reuse) a courier quote

Totals:
-------
Totals are always computed server-side from the cart and the tenant's fee
configuration; clients never send amounts other than a custom tip.

Tenants:
--------
A cart belongs to the tenant that created it. Any request for it under
another tenant returns 404.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..cart import Cart
from ..db import get_db
from ..delivery import DeliveryAddress, DeliveryQuote, quote_cache, request_delivery_quote
from ..errors import DeliveryQuoteError, InvalidQuantityError, get_friendly_delivery_error
from ..fees import FeeConfig
from ..middleware import get_fee_config, get_tenant_config, get_tenant_from_request
from ..schemas.cart import (
    CartItemUpdate,
    CartLineOut,
    CartOut,
    FulfillmentUpdate,
    TipOut,
    TipUpdate,
)
from ..schemas.orders import DeliveryAddressIn, DeliveryQuoteOut
from ..schemas.pricing import FeeBreakdownOut, LineItemIn, ModifierIn, PromoIn
from ..services.cart_store import delete_cart, get_or_create_cart, save_cart
from ..tenant import TenantConfig
from ..units import format_quantity_display


logger = logging.getLogger(__name__)

cart_router = APIRouter(prefix="/cart", tags=["Cart"])


# =============================================================================
# Helper Functions
# =============================================================================

def _quote_out(quote: Optional[DeliveryQuote]) -> Optional[DeliveryQuoteOut]:
    if quote is None:
        return None
    return DeliveryQuoteOut(
        quote_id=quote.quote_id,
        fee_cents=quote.fee_cents,
        expires_at=quote.expires_at,
        provider=quote.provider,
        currency=quote.currency,
        eta_minutes=quote.eta_minutes,
        expired=quote.is_expired(),
    )


def cart_to_out(cart: Cart, fee_config: FeeConfig) -> CartOut:
    """Cart view with line totals and the current fee breakdown."""
    items = [
        CartLineOut(
            line_id=item.line_id,
            sku=item.sku,
            name=item.name,
            unit_price_cents=item.unit_price_cents,
            quantity=item.quantity,
            unit=item.unit.value,
            unit_label=item.unit_label,
            quantity_display=format_quantity_display(item.quantity, item.unit),
            modifiers=[
                ModifierIn(id=mod.id, name=mod.name, price_cents=mod.price_cents)
                for mod in item.modifiers
            ],
            note=item.note,
            image=item.image,
            line_total_cents=item.line_total_cents(),
        )
        for item in cart.items
    ]

    address = cart.delivery_address
    return CartOut(
        cart_id=cart.cart_id,
        items=items,
        item_count=cart.item_count,
        tip=TipOut(mode=cart.tip.mode, percentage=cart.tip.percentage, custom_cents=cart.tip.custom_cents),
        promo_code=cart.promo.code if cart.promo else None,
        promo_discount_cents=cart.promo_discount_cents,
        fulfillment_type=cart.fulfillment_type.value if cart.fulfillment_type else None,
        delivery_address=DeliveryAddressIn(**address.to_dict()) if address else None,
        delivery_quote=_quote_out(cart.delivery_quote),
        totals=FeeBreakdownOut(**cart.totals(fee_config).to_dict()),
    )


# =============================================================================
# Cart Endpoints
# =============================================================================

@cart_router.get("/{cart_id}", response_model=CartOut)
def get_cart(
    cart_id: str,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.delete("/{cart_id}", status_code=204)
def remove_cart(
    cart_id: str,
    db: Session = Depends(get_db),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> None:
    if not delete_cart(db, cart_id, tenant_slug=tenant_slug):
        raise HTTPException(status_code=404, detail="Cart not found")
    logger.info("Deleted cart %s", cart_id)


@cart_router.post("/{cart_id}/items", response_model=CartOut, status_code=201)
def add_cart_item(
    cart_id: str,
    payload: LineItemIn,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    """
    Add a product to the cart.

    A line with the same sku, modifiers and note is merged into the existing
    line instead of being added twice. A quantity below the unit minimum
    (0.1 lb, say) is rejected with 422.
    """
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    try:
        cart.add_item(
            sku=payload.sku,
            name=payload.name,
            unit_price_cents=payload.unit_price_cents,
            quantity=payload.quantity,
            unit=payload.unit,
            modifiers=[mod.to_modifier() for mod in payload.modifiers],
            note=payload.note,
            unit_label=payload.unit_label,
            image=payload.image,
        )
    except InvalidQuantityError as e:
        raise HTTPException(status_code=422, detail=str(e))
    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.patch("/{cart_id}/items/{line_id}", response_model=CartOut)
def update_cart_item(
    cart_id: str,
    line_id: str,
    payload: CartItemUpdate,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    """
    Change a line's quantity and/or note.

    A quantity below the unit minimum removes the line. A note that makes
    the line identical to another merges the two.
    """
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    if cart.get_item(line_id) is None:
        raise HTTPException(status_code=404, detail="Cart item not found")

    if payload.quantity is not None:
        if cart.set_item_quantity(line_id, payload.quantity) is None:
            logger.debug("Removed line %s from cart %s", line_id, cart_id)
            line_id = None

    if payload.note is not None and line_id is not None:
        cart.update_item_note(line_id, payload.note)

    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.delete("/{cart_id}/items/{line_id}", response_model=CartOut)
def remove_cart_item(
    cart_id: str,
    line_id: str,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    if not cart.remove_item(line_id):
        raise HTTPException(status_code=404, detail="Cart item not found")
    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.put("/{cart_id}/tip", response_model=CartOut)
def update_tip(
    cart_id: str,
    payload: TipUpdate,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    """Set the tip. A positive custom amount replaces any percentage."""
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    if payload.custom_cents is not None and payload.custom_cents > 0:
        cart.set_custom_tip(payload.custom_cents)
    else:
        cart.set_tip_percentage(payload.percentage or 0)
    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.put("/{cart_id}/promo", response_model=CartOut)
def apply_promo(
    cart_id: str,
    payload: PromoIn,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    discount = cart.apply_promo(payload.to_promo())
    logger.info("Applied promo %s to cart %s (discount=%d)", cart.promo.code, cart_id, discount)
    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.delete("/{cart_id}/promo", response_model=CartOut)
def remove_promo(
    cart_id: str,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    cart.clear_promo()
    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.put("/{cart_id}/fulfillment", response_model=CartOut)
def update_fulfillment(
    cart_id: str,
    payload: FulfillmentUpdate,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
) -> CartOut:
    """
    Choose pickup or delivery and set the drop-off address.

    Fields are applied in order: fulfillment type, address, quote. Switching
    to pickup or changing the address drops the existing quote.
    """
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)

    if payload.fulfillment_type is not None:
        cart.set_fulfillment_type(payload.fulfillment_type)

    if payload.delivery_address is not None:
        cart.set_delivery_address(DeliveryAddress(**payload.delivery_address.model_dump()))

    if payload.delivery_quote is not None:
        if not cart.is_delivery:
            raise HTTPException(status_code=400, detail="Delivery quote requires delivery fulfillment")
        quote = DeliveryQuote(**payload.delivery_quote.model_dump())
        if cart.delivery_address is not None:
            quote.address_fingerprint = cart.delivery_address.fingerprint()
        cart.set_delivery_quote(quote)

    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)


@cart_router.post("/{cart_id}/delivery-quote", response_model=CartOut)
def fetch_delivery_quote(
    cart_id: str,
    db: Session = Depends(get_db),
    fee_config: FeeConfig = Depends(get_fee_config),
    tenant_slug: Optional[str] = Depends(get_tenant_from_request),
    tenant: TenantConfig = Depends(get_tenant_config),
) -> CartOut:
    """
    Get a courier quote for the cart's delivery address.

    Quotes are cached per tenant and address, so repeated calls for the same
    address reuse the quote until it expires. The courier picks up from the
    tenant's store location when one is configured. Courier errors are
    returned as 502 with a customer-friendly message.
    """
    cart = get_or_create_cart(db, cart_id, tenant_slug=tenant_slug)
    if not cart.is_delivery:
        raise HTTPException(status_code=400, detail="Choose delivery before requesting a quote")

    address = cart.delivery_address
    if address is None or not address.is_complete():
        raise HTTPException(status_code=400, detail="Please enter a complete delivery address")

    pickup = (tenant.store_latitude, tenant.store_longitude) if tenant.has_store_location else None

    try:
        quote = quote_cache.get_or_fetch(
            address,
            lambda: request_delivery_quote(
                address,
                cart.items,
                tenant_slug=tenant_slug,
                pickup_location=pickup,
            ),
            tenant_slug=tenant_slug,
        )
    except DeliveryQuoteError as e:
        logger.warning("Delivery quote failed for cart %s: %s", cart_id, e)
        raise HTTPException(status_code=502, detail=get_friendly_delivery_error(e))

    cart.set_delivery_quote(quote)
    save_cart(db, cart, tenant_slug=tenant_slug)
    return cart_to_out(cart, fee_config)
