"""
Pricing Routes
==============

Stateless price calculations for clients that keep their own cart (kiosk,
POS, mobile app) and for previewing delivery fees before a courier quote is
requested.

Endpoints:
----------
- POST /pricing/breakdown: Full fee breakdown for a list of line items
- POST /pricing/delivery-fee: Zone-based delivery fee for a distance or a
  drop-off location

Delivery Fees:
--------------
A courier quote's fee is authoritative; send it as delivery_fee_cents. If it
is absent, distance_km is priced against the tenant's delivery zones. An
address outside every zone gets 422 from /pricing/breakdown and
available=false from /pricing/delivery-fee.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..delivery import haversine_km
from ..middleware import get_pricing_engine, get_tenant_config
from ..money import clamp_cents
from ..pricing import PricingEngine, calculate_subtotal, find_delivery_zone, resolve_promo_discount
from ..schemas.pricing import (
    BreakdownRequest,
    DeliveryFeeRequest,
    DeliveryFeeResponse,
    FeeBreakdownOut,
)
from ..tenant import TenantConfig


logger = logging.getLogger(__name__)

pricing_router = APIRouter(prefix="/pricing", tags=["Pricing"])


@pricing_router.post("/breakdown", response_model=FeeBreakdownOut)
def price_breakdown(
    payload: BreakdownRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
) -> FeeBreakdownOut:
    """
    Compute the fee breakdown for a set of line items.

    A promo in the body is resolved against the items' subtotal; otherwise
    promo_discount_cents is used as given.
    """
    items = [item.to_line_item() for item in payload.items]

    discount = payload.promo_discount_cents
    if payload.promo is not None:
        discount = resolve_promo_discount(payload.promo.to_promo(), calculate_subtotal(items))

    delivery_fee = payload.delivery_fee_cents
    if payload.fulfillment_type == "delivery" and delivery_fee is None:
        if payload.distance_km is None:
            raise HTTPException(
                status_code=422,
                detail="Delivery pricing needs a quote fee or a distance",
            )
        delivery_fee = engine.zone_fee(payload.distance_km)
        if delivery_fee is None:
            raise HTTPException(status_code=422, detail="Address is outside the delivery area")

    breakdown = engine.breakdown(
        items,
        tip=payload.tip.to_selection() if payload.tip else None,
        promo_discount_cents=discount,
        fulfillment_type=payload.fulfillment_type,
        delivery_fee_cents=delivery_fee or 0,
    )
    return FeeBreakdownOut(**breakdown.to_dict())


@pricing_router.post("/delivery-fee", response_model=DeliveryFeeResponse)
def delivery_fee(
    payload: DeliveryFeeRequest,
    tenant: TenantConfig = Depends(get_tenant_config),
) -> DeliveryFeeResponse:
    """
    Look up the zone delivery fee for a distance or drop-off coordinates.

    Coordinates are measured from the tenant's store location.
    """
    distance = payload.distance_km
    if distance is None:
        if payload.latitude is None or payload.longitude is None:
            raise HTTPException(status_code=422, detail="Provide distance_km or latitude and longitude")
        if not tenant.has_store_location:
            raise HTTPException(status_code=422, detail="Store location is not configured")
        distance = haversine_km(
            tenant.store_latitude,
            tenant.store_longitude,
            payload.latitude,
            payload.longitude,
        )

    zones = tenant.fee_config.delivery_zones
    if not zones:
        return DeliveryFeeResponse(available=False, distance_km=distance, reason="NO_ZONES_CONFIGURED")

    zone = find_delivery_zone(distance, zones)
    if zone is None:
        logger.debug("Distance %.2f km is outside all delivery zones", distance)
        return DeliveryFeeResponse(available=False, distance_km=distance, reason="OUT_OF_ZONE")

    return DeliveryFeeResponse(
        available=True,
        fee_cents=clamp_cents(zone.fee_cents),
        distance_km=distance,
        zone_label=zone.label,
        min_order_cents=zone.min_order_cents,
        eta_minutes=zone.eta_minutes,
    )
