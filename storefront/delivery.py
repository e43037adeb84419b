"""
Delivery addresses, courier quotes and distance helpers.

A delivery order is priced with the courier's quote fee taken as-is. Quotes
are fetched from the courier quote endpoint and cached per tenant and
address so that re-rendering the checkout (or the customer retyping the same
address) does not fetch a new quote each time. The cache key is the tenant
slug plus a normalized address fingerprint: case, punctuation and extra
whitespace are ignored.

A cached quote is reused until either the cache TTL passes or the courier's
own expires_at is reached, whichever comes first. Changing the address
invalidates the quote.
"""

import logging
import math
import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests

from . import config
from .errors import DeliveryQuoteError
from .money import clamp_cents
from .units import format_quantity_for_courier

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def _normalize_part(value: Optional[str]) -> str:
    if not value:
        return ""
    cleaned = _PUNCTUATION.sub("", value.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable quote expiry: %r", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class DeliveryAddress:
    """Customer drop-off address."""
    line1: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    line2: str = ""
    instructions: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    country: str = "US"

    def is_complete(self) -> bool:
        """Street, city, state and ZIP are all present."""
        return all(
            (part or "").strip()
            for part in (self.line1, self.city, self.state, self.zip)
        )

    def fingerprint(self) -> str:
        """
        Normalized cache key for this address.

        "123 Main St., Apt 4" and "123  main st apt 4" produce the same key.
        Instructions and coordinates are not part of the key.
        """
        return "|".join(
            _normalize_part(part)
            for part in (self.line1, self.line2, self.city, self.state, self.zip)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "instructions": self.instructions,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "country": self.country,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DeliveryAddress"]:
        if not data:
            return None
        return cls(
            line1=data.get("line1") or "",
            line2=data.get("line2") or "",
            city=data.get("city") or "",
            state=data.get("state") or "",
            zip=data.get("zip") or "",
            instructions=data.get("instructions") or "",
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            country=data.get("country") or "US",
        )


@dataclass
class DeliveryQuote:
    """A courier's price for delivering to one address."""
    quote_id: str
    fee_cents: int
    expires_at: Optional[datetime] = None
    provider: str = config.COURIER_PROVIDER
    currency: str = "usd"
    eta_minutes: Optional[int] = None
    address_fingerprint: Optional[str] = None

    def __post_init__(self):
        self.fee_cents = clamp_cents(self.fee_cents)
        self.expires_at = _parse_timestamp(self.expires_at)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """A quote with no expiry never expires on its own."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "quote_id": self.quote_id,
            "fee_cents": self.fee_cents,
            "currency": self.currency,
            "eta_minutes": self.eta_minutes,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "address_fingerprint": self.address_fingerprint,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DeliveryQuote"]:
        if not data:
            return None
        return cls(
            quote_id=str(data.get("quote_id") or data.get("quoteId") or ""),
            fee_cents=data.get("fee_cents", data.get("feeCents", 0)),
            expires_at=data.get("expires_at") or data.get("expiresAt"),
            provider=data.get("provider") or config.COURIER_PROVIDER,
            currency=data.get("currency") or "usd",
            eta_minutes=data.get("eta_minutes", data.get("etaMinutes")),
            address_fingerprint=data.get("address_fingerprint"),
        )


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(km: float) -> str:
    """Meters below one kilometer (850m), otherwise kilometers (3.2km)."""
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"


# =============================================================================
# Quote Cache
# =============================================================================

@dataclass
class _CacheEntry:
    quote: DeliveryQuote
    fetched_at: float = field(default_factory=time.time)
    last_access: float = field(default_factory=time.time)


CacheKey = Tuple[str, str]


class DeliveryQuoteCache:
    """
    Thread-safe cache of courier quotes keyed by tenant and address fingerprint.

    Each tenant ships from its own store, so the same address gets a separate
    quote per tenant.

    Eviction:
    - Stale entries (past the TTL or the courier's expires_at) are swept on
      every put, and dropped on read.
    - When the cache holds max_size quotes, the oldest 10% by last access
      are evicted.

    Usage:
        cache = DeliveryQuoteCache(ttl_seconds=300)
        quote = cache.get_or_fetch(
            address,
            lambda: request_delivery_quote(address, items),
            tenant_slug="default",
        )
    """

    def __init__(
        self,
        ttl_seconds: int = config.DELIVERY_QUOTE_TTL_SECONDS,
        max_size: int = config.DELIVERY_QUOTE_CACHE_MAX_SIZE,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._entries: Dict[CacheKey, _CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _key(address: DeliveryAddress, tenant_slug: Optional[str]) -> CacheKey:
        return (tenant_slug or "", address.fingerprint())

    def _is_fresh(self, entry: _CacheEntry, now: float) -> bool:
        if now - entry.fetched_at > self.ttl_seconds:
            return False
        return not entry.quote.is_expired()

    def _sweep_stale_locked(self, now: float) -> int:
        """Drop stale entries. Caller must hold _lock."""
        stale = [key for key, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Swept %d stale delivery quotes", len(stale))
        return len(stale)

    def _evict_oldest_locked(self, count: int) -> None:
        """LRU eviction. Caller must hold _lock."""
        oldest = sorted(self._entries.items(), key=lambda x: x[1].last_access)[:count]
        for key, _ in oldest:
            del self._entries[key]
        logger.debug("Evicted %d oldest delivery quotes", len(oldest))

    def get(self, address: DeliveryAddress, tenant_slug: Optional[str] = None) -> Optional[DeliveryQuote]:
        """Cached quote for the address, or None if missing or stale."""
        key = self._key(address, tenant_slug)
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not self._is_fresh(entry, now):
                del self._entries[key]
                logger.debug("Dropped stale delivery quote %s", entry.quote.quote_id)
                return None
            entry.last_access = now
            return entry.quote

    def put(self, address: DeliveryAddress, quote: DeliveryQuote, tenant_slug: Optional[str] = None) -> None:
        key = self._key(address, tenant_slug)
        quote.address_fingerprint = key[1]
        now = time.time()
        with self._lock:
            self._sweep_stale_locked(now)
            if len(self._entries) >= self.max_size and key not in self._entries:
                self._evict_oldest_locked(max(1, self.max_size // 10))
            self._entries[key] = _CacheEntry(quote=quote, fetched_at=now, last_access=now)

    def get_or_fetch(
        self,
        address: DeliveryAddress,
        fetcher: Callable[[], DeliveryQuote],
        tenant_slug: Optional[str] = None,
    ) -> DeliveryQuote:
        """
        Return the cached quote for an address or fetch and cache a new one.

        The fetcher runs outside the lock; errors from it propagate and
        nothing is cached.
        """
        cached = self.get(address, tenant_slug)
        if cached is not None:
            return cached

        logger.info("Delivery quote cache miss for %s (tenant=%s)", address.fingerprint(), tenant_slug)
        quote = fetcher()
        self.put(address, quote, tenant_slug)
        return quote

    def invalidate(self, address: DeliveryAddress, tenant_slug: Optional[str] = None) -> bool:
        """Drop the quote for an address. Returns True if one was cached."""
        with self._lock:
            return self._entries.pop(self._key(address, tenant_slug), None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared %d delivery quotes from cache", count)
        return count


# =============================================================================
# Courier Quote Client
# =============================================================================

def build_quote_items(items: Iterable[Any]) -> List[Dict[str, Any]]:
    """Courier manifest entries for cart line items."""
    manifest = []
    for item in items:
        courier_qty = format_quantity_for_courier(item.quantity, item.unit)
        name = item.name
        if courier_qty.description_suffix:
            name = f"{name} {courier_qty.description_suffix}"
        manifest.append({
            "name": name,
            "quantity": courier_qty.quantity,
            "price": item.unit_total_cents(),
            "unit": courier_qty.unit.value,
            "quantity_display": courier_qty.quantity_display,
            "raw_quantity": courier_qty.raw_quantity,
        })
    return manifest


def request_delivery_quote(
    address: DeliveryAddress,
    items: Iterable[Any] = (),
    base_url: Optional[str] = None,
    tenant_slug: Optional[str] = None,
    pickup_location: Optional[Tuple[float, float]] = None,
) -> DeliveryQuote:
    """
    Fetch a delivery quote from the courier quote endpoint.

    Args:
        address: Complete drop-off address
        items: Cart line items for the courier manifest
        base_url: Quote service base URL (defaults to DELIVERY_QUOTE_URL)
        tenant_slug: Tenant the quote is for
        pickup_location: Store (latitude, longitude) the courier picks up from

    Returns:
        DeliveryQuote

    Raises:
        DeliveryQuoteError: On a missing endpoint, network failure, error
            response or a response without a quote.
    """
    base_url = base_url or config.DELIVERY_QUOTE_URL
    if not base_url:
        raise DeliveryQuoteError("Delivery quote service is not configured")
    if not address.is_complete():
        raise DeliveryQuoteError("Delivery address is incomplete", code="invalid_address")

    url = f"{base_url.rstrip('/')}/delivery/quote"
    payload: Dict[str, Any] = {"address": address.to_dict(), "items": build_quote_items(items)}
    if tenant_slug:
        payload["tenant"] = tenant_slug
    if pickup_location is not None:
        payload["pickup"] = {"latitude": pickup_location[0], "longitude": pickup_location[1]}

    logger.debug("Requesting delivery quote: %s", url)

    try:
        response = requests.post(url, json=payload, timeout=config.DELIVERY_QUOTE_TIMEOUT)
    except requests.RequestException as e:
        logger.error("Delivery quote request failed: %s", e)
        raise DeliveryQuoteError(f"Quote request failed: {e}") from e

    try:
        data = response.json() if response.content else {}
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    if not response.ok:
        message = (
            data.get("error")
            or data.get("message")
            or data.get("details")
            or f"Request failed ({response.status_code})"
        )
        logger.warning("Delivery quote rejected (%d): %s", response.status_code, message)
        raise DeliveryQuoteError(message, code=data.get("code"), status_code=response.status_code)

    quote = DeliveryQuote.from_dict(data.get("quote"))
    if quote is None or not quote.quote_id:
        raise DeliveryQuoteError("Quote response did not include a quote")

    quote.address_fingerprint = address.fingerprint()
    logger.info("Received delivery quote %s: %d cents", quote.quote_id, quote.fee_cents)
    return quote


# Shared quote cache for the HTTP layer
quote_cache = DeliveryQuoteCache()
