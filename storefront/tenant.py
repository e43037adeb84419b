"""
Multi-tenant configuration.

This module handles:
- Loading tenant configuration (name, domains, fee settings, store location)
  from JSON
- Building a single default tenant from environment settings when no JSON
  file exists
- Resolving the tenant for an incoming request (header/domain/port)

Example tenants.json:

    {
      "default_tenant": "zuckers",
      "tenants": {
        "zuckers": {
          "name": "Zucker's Bagels",
          "port": 8001,
          "domains": ["order.zuckers.example"],
          "store_location": {"latitude": 40.7163, "longitude": -74.0086},
          "fees": {
            "tax_rate": 0.08875,
            "platform_fee_rate": 0.01,
            "delivery_zones": [
              {"max_distance_km": 2, "fee_cents": 299, "label": "Nearby"},
              {"max_distance_km": 5, "fee_cents": 499, "label": "Local"}
            ]
          }
        }
      }
    }
"""

import json
import logging
from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Any

from . import config
from .fees import FeeConfig

logger = logging.getLogger(__name__)

# Context variable to track current tenant in async/threaded contexts
_current_tenant: ContextVar[Optional[str]] = ContextVar("current_tenant", default=None)


@dataclass
class TenantConfig:
    """Configuration for a single tenant."""
    slug: str
    name: str
    port: int = 8000
    domains: list = field(default_factory=list)
    fee_config: FeeConfig = field(default_factory=FeeConfig)
    store_latitude: Optional[float] = None
    store_longitude: Optional[float] = None

    @classmethod
    def from_dict(cls, slug: str, data: Dict[str, Any]) -> "TenantConfig":
        location = data.get("store_location") or {}
        return cls(
            slug=slug,
            name=data.get("name", slug),
            port=data.get("port", 8000),
            domains=data.get("domains", []),
            fee_config=FeeConfig.from_dict(data.get("fees")),
            store_latitude=location.get("latitude"),
            store_longitude=location.get("longitude"),
        )

    @property
    def has_store_location(self) -> bool:
        return self.store_latitude is not None and self.store_longitude is not None


class TenantManager:
    """
    Holds tenant configurations and resolves requests to tenants.

    Usage:
        manager = TenantManager.from_json("tenants.json")
        tenant = manager.get_tenant("zuckers")
        fees = tenant.fee_config
    """

    def __init__(self):
        self.tenants: Dict[str, TenantConfig] = {}
        self.default_tenant: Optional[str] = None
        self._port_to_tenant: Dict[int, str] = {}
        self._domain_to_tenant: Dict[str, str] = {}

    @classmethod
    def from_json(cls, config_path: str) -> "TenantManager":
        """Load tenant configuration from a JSON file."""
        manager = cls()

        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Tenant config not found: {config_path}")

        with open(path, "r") as f:
            data = json.load(f)

        for slug, tenant_data in data.get("tenants", {}).items():
            manager.register_tenant(TenantConfig.from_dict(slug, tenant_data))

        manager.default_tenant = data.get("default_tenant") or next(iter(manager.tenants), None)

        logger.info(
            "Loaded %d tenant(s) from %s, default: %s",
            len(manager.tenants),
            config_path,
            manager.default_tenant,
        )

        return manager

    @classmethod
    def from_env(cls) -> "TenantManager":
        """Single tenant built from environment defaults."""
        manager = cls()
        manager.register_tenant(TenantConfig(slug=config.DEFAULT_TENANT_SLUG, name=config.DEFAULT_TENANT_SLUG))
        manager.default_tenant = config.DEFAULT_TENANT_SLUG
        return manager

    def register_tenant(self, tenant: TenantConfig) -> None:
        """Register a tenant configuration."""
        self.tenants[tenant.slug] = tenant

        # Build lookup indexes
        self._port_to_tenant[tenant.port] = tenant.slug
        for domain in tenant.domains:
            self._domain_to_tenant[domain.lower()] = tenant.slug

        logger.debug(
            "Registered tenant: %s (port=%d, domains=%s)",
            tenant.slug,
            tenant.port,
            tenant.domains,
        )

    def get_tenant(self, slug: Optional[str]) -> Optional[TenantConfig]:
        """Get tenant configuration by slug."""
        if not slug:
            return None
        return self.tenants.get(slug)

    def get_default_tenant(self) -> Optional[TenantConfig]:
        return self.get_tenant(self.default_tenant)

    def resolve_tenant_from_request(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> Optional[str]:
        """
        Resolve tenant slug from request information.

        Resolution order:
        1. Full host:port match in domains
        2. Host-only match in domains
        3. Port match
        4. Default tenant
        """
        if host:
            host_lower = host.lower()
            if host_lower in self._domain_to_tenant:
                return self._domain_to_tenant[host_lower]

            host_without_port = host_lower.split(":")[0]
            if host_without_port in self._domain_to_tenant:
                return self._domain_to_tenant[host_without_port]

        if port and port in self._port_to_tenant:
            return self._port_to_tenant[port]

        return self.default_tenant

    def list_tenants(self) -> list:
        """List all registered tenant slugs."""
        return list(self.tenants.keys())


# Global tenant manager instance (initialized on first use)
_tenant_manager: Optional[TenantManager] = None


def get_tenant_manager() -> TenantManager:
    """
    Get the global tenant manager instance.

    Loads TENANT_CONFIG if the file exists, otherwise builds one tenant from
    environment defaults.
    """
    global _tenant_manager
    if _tenant_manager is None:
        if Path(config.TENANT_CONFIG_PATH).exists():
            _tenant_manager = TenantManager.from_json(config.TENANT_CONFIG_PATH)
        else:
            logger.info("No tenant config at %s, using environment defaults", config.TENANT_CONFIG_PATH)
            _tenant_manager = TenantManager.from_env()
    return _tenant_manager


def set_tenant_manager(manager: Optional[TenantManager]) -> None:
    """Set the global tenant manager instance (for testing)."""
    global _tenant_manager
    _tenant_manager = manager


def get_current_tenant() -> Optional[str]:
    """Get the current tenant slug from context."""
    return _current_tenant.get()


def set_current_tenant(tenant_slug: str) -> None:
    """Set the current tenant slug in context."""
    _current_tenant.set(tenant_slug)


def clear_current_tenant() -> None:
    """Clear the current tenant from context."""
    _current_tenant.set(None)
