"""
Admin Orders Routes
===================

Admin endpoints for viewing placed orders.

Endpoints:
----------
- GET /admin/orders: List orders with pagination and filtering
- GET /admin/orders/{id}: Full order with items and status history

Authentication:
---------------
All endpoints require admin authentication via HTTP Basic Auth.

Filtering:
----------
Orders can be filtered by any canonical status:
- ?status=in_kitchen - Only orders being prepared
- ?status=delivered - Only completed orders
- No status parameter (or an unknown one) - All orders

Pagination:
-----------
Uses page/page_size parameters:
- ?page=1&page_size=10 (defaults)
- Returns total count and has_next flag for navigation

Usage:
------
    # Orders waiting for the kitchen
    GET /admin/orders?status=accepted&page=1&page_size=20

    # Order details
    GET /admin/orders/123
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import verify_admin_credentials
from ..db import get_db
from ..models import Order
from ..order_status import OrderStatus
from ..schemas.orders import OrderListResponse, OrderOut, OrderSummaryOut
from .orders import order_to_out


logger = logging.getLogger(__name__)

admin_orders_router = APIRouter(prefix="/admin/orders", tags=["Admin - Orders"])

_STATUS_FILTERS = {status.value for status in OrderStatus}


# =============================================================================
# Order Endpoints
# =============================================================================

@admin_orders_router.get("", response_model=OrderListResponse)
def list_orders(
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
    status: Optional[str] = Query(
        None,
        description="Filter by status: created, accepted, in_kitchen, ... or leave empty for all",
    ),
    tenant: Optional[str] = Query(None, description="Filter by tenant slug"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
) -> OrderListResponse:
    """
    Return a paginated list of orders.

    Requires admin authentication. Orders are sorted by creation date
    (newest first).
    """
    query = db.query(Order)

    if status in _STATUS_FILTERS:
        query = query.filter(Order.status == status)
    if tenant:
        query = query.filter(Order.tenant_slug == tenant)

    total = query.count()
    offset = (page - 1) * page_size

    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(page_size)
        .all()
    )

    items = [OrderSummaryOut.model_validate(o) for o in orders]
    has_next = offset + len(items) < total

    return OrderListResponse(
        items=items,
        page=page,
        page_size=page_size,
        total=total,
        has_next=has_next,
    )


@admin_orders_router.get("/{order_id}", response_model=OrderOut)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    _admin: str = Depends(verify_admin_credentials),
) -> OrderOut:
    """Return the full order including items and the status event history."""
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order_to_out(order)
