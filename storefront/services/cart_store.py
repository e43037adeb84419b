"""
Cart Store Service
==================

Keeps carts with a two-tier storage strategy:
1. **In-Memory Cache**: Fast access for active carts
2. **Database Persistence**: Durable storage so carts survive restarts

Architecture Overview:
----------------------
Write-through cache:
- Reads check the cache first, then fall back to the database
- Writes update both the cache and the database
- Cache entries have a TTL and LRU eviction to bound memory use

The cache holds serialized carts (Cart.to_dict()), and every read returns a
fresh Cart object, so callers can mutate what they get without touching the
cached copy until they save it.

Cache Eviction Strategy:
------------------------
1. **TTL-based**: Carts not accessed within CART_TTL_SECONDS are dropped.
   Checked probabilistically (~1% of reads).
2. **LRU-based**: When the cache reaches CART_MAX_CACHE_SIZE, the oldest 10%
   of entries (by last access) are evicted.

Tenant Ownership:
-----------------
Each cart belongs to the tenant that first saved it. Reads, saves and deletes
under another tenant treat the cart as missing.

Thread Safety:
--------------
All cache operations run under a threading.Lock.

Usage:
------
    from storefront.services.cart_store import get_or_create_cart, save_cart

    cart = get_or_create_cart(db, cart_id, tenant_slug="default")
    cart.add_item("bagel-plain", "Plain Bagel", 250)
    save_cart(db, cart, tenant_slug="default")
"""

import copy
import logging
import random
import threading
import time
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from .. import config
from ..cart import Cart
from ..errors import CartNotFoundError
from ..models import CartSession


logger = logging.getLogger(__name__)


# =============================================================================
# Cart Cache
# =============================================================================
# {cart_id: {"data": {...cart dict...}, "tenant_slug": str, "last_access": timestamp}}

CART_CACHE: Dict[str, Dict[str, Any]] = {}
_cache_lock = threading.Lock()


# =============================================================================
# Cache Maintenance Functions
# =============================================================================

def _cleanup_expired_carts() -> int:
    """
    Remove carts not accessed within CART_TTL_SECONDS from the cache.

    Database rows are untouched; an evicted cart is reloaded on next access.
    """
    now = time.time()

    with _cache_lock:
        expired = [
            cart_id
            for cart_id, entry in CART_CACHE.items()
            if now - entry.get("last_access", 0) > config.CART_TTL_SECONDS
        ]
        for cart_id in expired:
            del CART_CACHE[cart_id]

    if expired:
        logger.debug("Cleaned up %d expired carts from cache", len(expired))

    return len(expired)


def _evict_oldest_carts_locked(count: int) -> None:
    """LRU eviction. Caller must hold _cache_lock."""
    oldest = sorted(CART_CACHE.items(), key=lambda x: x[1].get("last_access", 0))[:count]
    for cart_id, _ in oldest:
        del CART_CACHE[cart_id]
    logger.debug("Evicted %d oldest carts from cache", len(oldest))


def _cache_put_locked(cart_id: str, data: Dict[str, Any], tenant_slug: Optional[str]) -> None:
    if len(CART_CACHE) >= config.CART_MAX_CACHE_SIZE and cart_id not in CART_CACHE:
        _evict_oldest_carts_locked(max(1, config.CART_MAX_CACHE_SIZE // 10))
    CART_CACHE[cart_id] = {"data": data, "tenant_slug": tenant_slug, "last_access": time.time()}


# =============================================================================
# Public Cart Store Functions
# =============================================================================

def _owned_by(owner: Optional[str], tenant_slug: Optional[str]) -> bool:
    """A cart saved without a tenant, or read without one, is not checked."""
    return owner is None or tenant_slug is None or owner == tenant_slug


def _lookup(db: Session, cart_id: str) -> Optional[Tuple[Dict[str, Any], Optional[str]]]:
    """Cart data and owning tenant from the cache, then the database."""
    if random.randint(1, 100) == 1:
        _cleanup_expired_carts()

    with _cache_lock:
        entry = CART_CACHE.get(cart_id)
        if entry is not None:
            entry["last_access"] = time.time()
            return copy.deepcopy(entry["data"]), entry.get("tenant_slug")

    row = db.query(CartSession).filter(CartSession.cart_id == cart_id).first()
    if row is None:
        return None

    data = row.cart_state or {}
    data["cart_id"] = cart_id
    with _cache_lock:
        _cache_put_locked(cart_id, copy.deepcopy(data), row.tenant_slug)

    return data, row.tenant_slug


def load_cart(db: Session, cart_id: str, tenant_slug: Optional[str] = None) -> Optional[Cart]:
    """
    Get a cart from the cache or the database.

    A cart saved under another tenant is reported as missing.

    Returns:
        Cart if found, None otherwise
    """
    found = _lookup(db, cart_id)
    if found is None:
        return None

    data, owner = found
    if not _owned_by(owner, tenant_slug):
        logger.warning("Cart %s belongs to tenant %s, not %s", cart_id, owner, tenant_slug)
        return None

    return Cart.from_dict(data)


def get_or_create_cart(db: Session, cart_id: str, tenant_slug: Optional[str] = None) -> Cart:
    """
    Load a cart, or return a new empty one with this id (not yet saved).

    Raises:
        CartNotFoundError: The id is taken by another tenant's cart
    """
    found = _lookup(db, cart_id)
    if found is None:
        logger.debug("Starting new cart %s (tenant=%s)", cart_id, tenant_slug)
        return Cart(cart_id=cart_id)

    data, owner = found
    if not _owned_by(owner, tenant_slug):
        logger.warning("Cart %s belongs to tenant %s, not %s", cart_id, owner, tenant_slug)
        raise CartNotFoundError(cart_id)

    return Cart.from_dict(data)


def save_cart(db: Session, cart: Cart, tenant_slug: Optional[str] = None) -> None:
    """
    Save a cart to both the cache and the database.

    A cart saved without a tenant is claimed by the first tenant that saves it.
    Uses flag_modified() so in-place JSON changes are persisted.

    Raises:
        CartNotFoundError: The id is taken by another tenant's cart
    """
    data = cart.to_dict()

    row = db.query(CartSession).filter(CartSession.cart_id == cart.cart_id).first()
    if row:
        if not _owned_by(row.tenant_slug, tenant_slug):
            raise CartNotFoundError(cart.cart_id)
        row.cart_state = data
        if tenant_slug:
            row.tenant_slug = tenant_slug
        flag_modified(row, "cart_state")
        owner = row.tenant_slug
    else:
        db.add(CartSession(cart_id=cart.cart_id, tenant_slug=tenant_slug, cart_state=data))
        owner = tenant_slug

    db.commit()

    with _cache_lock:
        _cache_put_locked(cart.cart_id, copy.deepcopy(data), owner)


def delete_cart(db: Session, cart_id: str, tenant_slug: Optional[str] = None) -> bool:
    """
    Remove a cart from the cache and the database. Returns True if it existed.

    Another tenant's cart is left alone and reported as missing.
    """
    row = db.query(CartSession).filter(CartSession.cart_id == cart_id).first()
    if row is not None and not _owned_by(row.tenant_slug, tenant_slug):
        return False

    with _cache_lock:
        entry = CART_CACHE.get(cart_id)
        if entry is not None and not _owned_by(entry.get("tenant_slug"), tenant_slug):
            return False
        cached = CART_CACHE.pop(cart_id, None) is not None

    deleted = db.query(CartSession).filter(CartSession.cart_id == cart_id).delete()
    db.commit()
    return cached or bool(deleted)


def clear_cache() -> int:
    """
    Clear all carts from the in-memory cache. Database storage is untouched.

    Returns:
        Number of carts that were cached
    """
    with _cache_lock:
        count = len(CART_CACHE)
        CART_CACHE.clear()
    logger.info("Cleared %d carts from cache", count)
    return count


def get_cache_stats() -> Dict[str, Any]:
    """Size, limits and access-time range of the cart cache."""
    with _cache_lock:
        access_times = [entry["last_access"] for entry in CART_CACHE.values()]
        return {
            "size": len(CART_CACHE),
            "max_size": config.CART_MAX_CACHE_SIZE,
            "ttl_seconds": config.CART_TTL_SECONDS,
            "oldest_access": min(access_times) if access_times else None,
            "newest_access": max(access_times) if access_times else None,
        }
