"""
Configuration Module for the Storefront
=======================================

This module centralizes the configuration settings, environment variables and
constants used throughout the storefront service. Values are parsed once at
import time so misconfiguration shows up early.

Configuration Categories:
-------------------------
- **Fees**: Platform fee rate, payment processor fee model, tax rate default and
  the courier's maximum tip. These are the defaults for a tenant that does not
  override them in its tenant JSON.

- **Delivery**: Zone schedule (distance thresholds -> flat fee), courier quote
  endpoint and how long fetched quotes stay cached.

- **Orders**: Customer cancel window after placement.

- **Cart Store**: TTL and cache size for the in-memory cart cache.

- **Rate Limiting / CORS / Admin**: HTTP surface settings.

Environment Variables:
----------------------
- DATABASE_URL: SQLAlchemy URL (default: "sqlite:///./storefront.db")
- TENANT_CONFIG: Path to tenants JSON (default: "tenants.json")
- TAX_RATE: Default tax rate as a fraction (default: 0.0875)
- PLATFORM_FEE_RATE: Platform fee rate as a fraction (default: 0.01)
- PROCESSOR_PERCENT_FEE: Processor percentage fee (default: 0.029)
- PROCESSOR_FIXED_FEE_CENTS: Processor fixed fee in cents (default: 30)
- MAX_COURIER_TIP_CENTS: Courier tip ceiling in cents (default: 2000)
- DELIVERY_ZONES: "km:fee_cents" pairs, comma separated (default: "2:299,5:499,10:799")
- DELIVERY_QUOTE_URL: Courier quote endpoint (default: "")
- DELIVERY_QUOTE_TTL_SECONDS: Quote cache TTL (default: 300)
- DELIVERY_QUOTE_CACHE_MAX_SIZE: Most quotes kept in memory (default: 500)
- CANCEL_WINDOW_SECONDS: Customer cancel window (default: 180)
- CART_TTL_SECONDS / CART_MAX_CACHE_SIZE: Cart cache settings
- RATE_LIMIT_ORDERS / RATE_LIMIT_ENABLED: Order placement throttling
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")
- ADMIN_USERNAME / ADMIN_PASSWORD: Admin console credentials

Usage:
------
    from storefront.config import DEFAULT_PLATFORM_FEE_RATE, CANCEL_WINDOW_SECONDS
"""

import os
from typing import List, Tuple


# =============================================================================
# Database / Tenants
# =============================================================================

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")

# Path to the tenants JSON file. When the file is missing a single default
# tenant is built from the fee settings below.
TENANT_CONFIG_PATH: str = os.getenv("TENANT_CONFIG", "tenants.json")
DEFAULT_TENANT_SLUG: str = os.getenv("DEFAULT_TENANT", "default")


# =============================================================================
# Fee Configuration
# =============================================================================
# All monetary amounts are integer cents. Rates are fractions (0.01 == 1%).

DEFAULT_TAX_RATE: float = float(os.getenv("TAX_RATE", "0.0875"))

# Platform fee charged to the customer and kept by the platform. Also passed
# to the payment processor as the application fee.
DEFAULT_PLATFORM_FEE_RATE: float = float(os.getenv("PLATFORM_FEE_RATE", "0.01"))

# Processor fee model (2.9% + $0.30), used for payout estimates only
PROCESSOR_PERCENT_FEE: float = float(os.getenv("PROCESSOR_PERCENT_FEE", "0.029"))
PROCESSOR_FIXED_FEE_CENTS: int = int(os.getenv("PROCESSOR_FIXED_FEE_CENTS", "30"))

# Courier API rejects tips above this amount ("Tip exceeds max amount of 2000")
MAX_COURIER_TIP_CENTS: int = int(os.getenv("MAX_COURIER_TIP_CENTS", "2000"))

COURIER_PROVIDER: str = os.getenv("COURIER_PROVIDER", "uber_direct")


# =============================================================================
# Delivery Configuration
# =============================================================================

def parse_delivery_zones(raw: str) -> List[Tuple[float, int]]:
    """
    Parse a zone schedule string into (max_distance_km, fee_cents) pairs.

    Format: "2:299,5:499,10:799". Malformed entries are skipped.
    Pairs are returned sorted by distance.
    """
    zones = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk or ":" not in chunk:
            continue
        distance, fee = chunk.split(":", 1)
        try:
            zones.append((float(distance), int(fee)))
        except ValueError:
            continue
    return sorted(zones)


DELIVERY_ZONES: List[Tuple[float, int]] = parse_delivery_zones(
    os.getenv("DELIVERY_ZONES", "2:299,5:499,10:799")
)

DELIVERY_QUOTE_URL: str = os.getenv("DELIVERY_QUOTE_URL", "")
DELIVERY_QUOTE_TIMEOUT: int = int(os.getenv("DELIVERY_QUOTE_TIMEOUT", "10"))

# How long a fetched courier quote is reused for the same address
DELIVERY_QUOTE_TTL_SECONDS: int = int(os.getenv("DELIVERY_QUOTE_TTL_SECONDS", "300"))
DELIVERY_QUOTE_CACHE_MAX_SIZE: int = int(os.getenv("DELIVERY_QUOTE_CACHE_MAX_SIZE", "500"))


# =============================================================================
# Order Configuration
# =============================================================================

# Customers may cancel within this many seconds of placing an order
CANCEL_WINDOW_SECONDS: int = int(os.getenv("CANCEL_WINDOW_SECONDS", "180"))


# =============================================================================
# Cart Store Configuration
# =============================================================================

CART_TTL_SECONDS: int = int(os.getenv("CART_TTL_SECONDS", "3600"))
CART_MAX_CACHE_SIZE: int = int(os.getenv("CART_MAX_CACHE_SIZE", "1000"))


# =============================================================================
# Rate Limiting Configuration
# =============================================================================
# Rate limit format: "X per Y" where Y is second, minute, hour, or day

RATE_LIMIT_ORDERS: str = os.getenv("RATE_LIMIT_ORDERS", "30 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_orders() -> str:
    """Return the current order placement rate limit (patchable in tests)."""
    return RATE_LIMIT_ORDERS


# =============================================================================
# CORS Configuration
# =============================================================================

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]


# =============================================================================
# Admin Authentication Configuration
# =============================================================================

ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")
