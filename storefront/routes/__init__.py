"""
Routes Package for the Storefront
=================================

This package contains all API route definitions organized by domain. Each
module defines a FastAPI APIRouter with related endpoints grouped together.

Architecture Overview:
----------------------
**Customer-Facing Routes:**
- pricing.py: Stateless fee breakdowns and zone delivery fees
- cart.py: Cart actions (items, tip, promo, fulfillment, delivery quote)
- orders.py: Checkout, order tracking and customer cancel

**Admin Routes (require authentication):**
- admin_orders.py: Order listing and details
- orders.py: POST /orders/{id}/status for kitchen, POS and courier updates

Router Registration:
--------------------
All routers are registered in app_factory.py under two prefixes:
1. /api/v1/* - Versioned API (recommended)
2. /* - Root paths

Route Dependencies:
-------------------
Common dependencies are injected via FastAPI's Depends():
- get_db: Database session
- get_fee_config / get_tenant_config: The request tenant's fee settings
- verify_admin_credentials: Admin authentication
- limiter.limit(): Rate limiting

Error Handling:
---------------
Routes raise HTTPException for error conditions:
- 400: Checkout checks failed, or an action doesn't fit the cart
- 401: Unauthorized (invalid credentials)
- 404: Not found (unknown cart, line or order)
- 409: Status change refused by the order state machine
- 422: Request can't be priced (no distance, outside the delivery area)
- 429: Too many requests (rate limited)
- 502: Courier quote service failed
- 503: Service unavailable (missing configuration)
"""

from .pricing import pricing_router
from .cart import cart_router
from .orders import orders_router, limiter
from .admin_orders import admin_orders_router

__all__ = [
    "pricing_router",
    "cart_router",
    "orders_router",
    "admin_orders_router",
    "limiter",
]
