"""
Services Package for the Storefront
===================================

Service modules that sit between the HTTP routes and the database.

Available Services:
-------------------
- **order**: Order persistence, status updates, customer cancel
- **cart_store**: Cart cache with database persistence

Usage:
------
    from storefront.services.order import create_order, apply_status_update
    from storefront.services.cart_store import get_or_create_cart, save_cart
"""
